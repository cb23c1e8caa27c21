"""
Register task handler.
"""

from app.repositories.task_completion_log_repository import (
    TaskCompletionLogRepository,
)
from app.services.points_engine.config import TaskConfig
from app.services.points_engine.events import RegisterSelfEvent
from app.services.points_engine.handlers.base import (
    TaskHandlerResult,
    completion_limit_reason,
)


async def handle_register(
    ledger: TaskCompletionLogRepository,
    event: RegisterSelfEvent,
    config: TaskConfig,
) -> TaskHandlerResult:
    """Reward the partner for joining, at most max_completion_count times."""
    reason = await completion_limit_reason(ledger, config, event.partner_id)
    if reason:
        return TaskHandlerResult.rejected(event.partner_id, event.uid, reason)

    return TaskHandlerResult(
        is_valid=True,
        partner_id=event.partner_id,
        uid=event.uid,
        business_params={
            "partner_code": event.partner_code,
            "register_time": event.timestamp,
        },
    )
