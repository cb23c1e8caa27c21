"""
External task handler.

Approved submissions are rewarded with the points chosen by the reviewer.
"""

from app.repositories.task_completion_log_repository import (
    TaskCompletionLogRepository,
)
from app.services.points_engine.config import TaskConfig
from app.services.points_engine.events import ExternalTaskApprovedEvent
from app.services.points_engine.handlers.base import (
    TaskHandlerResult,
    completion_limit_reason,
)
from app.services.points_engine.point_rule import POINTS_REWARD_KEY


async def handle_external_task(
    ledger: TaskCompletionLogRepository,
    event: ExternalTaskApprovedEvent,
    config: TaskConfig,
) -> TaskHandlerResult:
    """Validate reward amount and the (usually unlimited) task limit."""
    if isinstance(event.points_reward, bool) or not isinstance(event.points_reward, int):
        return TaskHandlerResult.rejected(
            event.partner_id,
            event.uid,
            f"points_reward must be an integer, got {event.points_reward!r}",
        )
    if event.points_reward < 0:
        return TaskHandlerResult.rejected(
            event.partner_id,
            event.uid,
            f"points_reward must not be negative, got {event.points_reward}",
        )

    reason = await completion_limit_reason(ledger, config, event.partner_id)
    if reason:
        return TaskHandlerResult.rejected(event.partner_id, event.uid, reason)

    return TaskHandlerResult(
        is_valid=True,
        partner_id=event.partner_id,
        uid=event.uid,
        business_params={
            "submission_id": event.submission_id,
            "external_task_type": event.task_type,
            POINTS_REWARD_KEY: event.points_reward,
        },
    )
