"""
Invite task handler.

Rewards the inviter when a direct downline joins.
"""

from loguru import logger

from app.repositories.task_completion_log_repository import (
    TaskCompletionLogRepository,
)
from app.services.points_engine.config import TaskConfig
from app.services.points_engine.events import RegisterDownlineL1Event
from app.services.points_engine.handlers.base import (
    TaskHandlerResult,
    completion_limit_reason,
)


async def handle_invite(
    ledger: TaskCompletionLogRepository,
    event: RegisterDownlineL1Event,
    config: TaskConfig,
) -> TaskHandlerResult:
    """
    Validate an invite reward.

    Checks:
    1. Inviter has not reached the task limit
    2. The (inviter, downline) pair was never rewarded for this task code,
       whatever the event timestamp

    Args:
        ledger: Ledger repository
        event: Downline registration event
        config: Task configuration

    Returns:
        Handler verdict; the downline is recorded as the related party
    """
    reason = await completion_limit_reason(ledger, config, event.partner_id)
    if reason:
        return TaskHandlerResult.rejected(event.partner_id, event.uid, reason)

    existing = await ledger.find_by_related(
        config.task_code, event.partner_id, event.downline_partner_id
    )
    if existing:
        logger.warning(
            "Invite already rewarded",
            extra={
                "task_code": config.task_code,
                "partner_id": event.partner_id,
                "downline_partner_id": event.downline_partner_id,
                "ledger_entry_id": existing.id,
            },
        )
        return TaskHandlerResult.rejected(
            event.partner_id,
            event.uid,
            f"Invite of partner {event.downline_partner_id} already rewarded",
        )

    return TaskHandlerResult(
        is_valid=True,
        partner_id=event.partner_id,
        uid=event.uid,
        related_partner_id=event.downline_partner_id,
        related_uid=event.downline_uid,
        business_params={
            "inviter_partner_code": event.partner_code,
            "downline_partner_code": event.downline_partner_code,
            "source_channel_id": event.source_channel_id,
            "invite_time": event.timestamp,
        },
    )
