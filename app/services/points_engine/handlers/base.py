"""
Shared handler types and checks.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from app.repositories.task_completion_log_repository import (
    TaskCompletionLogRepository,
)
from app.services.points_engine.config import TaskConfig


@dataclass(frozen=True)
class TaskHandlerResult:
    """Verdict of a handler on one event for one task config."""

    is_valid: bool
    partner_id: int
    uid: str
    related_partner_id: int | None = None
    related_uid: str | None = None
    business_params: dict[str, Any] | None = None
    reason: str | None = None

    @classmethod
    def rejected(cls, partner_id: int, uid: str, reason: str) -> "TaskHandlerResult":
        return cls(is_valid=False, partner_id=partner_id, uid=uid, reason=reason)


# (ledger, event, config) -> result
TaskHandler = Callable[
    [TaskCompletionLogRepository, Any, TaskConfig], Awaitable[TaskHandlerResult]
]


async def completion_limit_reason(
    ledger: TaskCompletionLogRepository,
    config: TaskConfig,
    partner_id: int,
) -> str | None:
    """
    Check the per-partner completion limit of a task.

    Args:
        ledger: Ledger repository
        config: Task configuration
        partner_id: Actor partner ID

    Returns:
        Rejection reason if the limit is reached, None otherwise
    """
    if config.max_completion_count <= 0:
        return None

    completed = await ledger.count_completed(config.task_code, partner_id)
    if completed < config.max_completion_count:
        return None

    logger.warning(
        f"Task limit reached: {config.task_code}",
        extra={
            "task_code": config.task_code,
            "partner_id": partner_id,
            "completed": completed,
            "max_count": config.max_completion_count,
        },
    )
    return (
        f"Task {config.task_code} reached its limit "
        f"({config.max_completion_count} completions)"
    )
