"""
Game action task handler.

Handles in-game actions reported by the client (level up, recharge, ...).
"""

from app.repositories.task_completion_log_repository import (
    TaskCompletionLogRepository,
)
from app.services.points_engine.config import TaskConfig
from app.services.points_engine.events import GameActionEvent
from app.services.points_engine.handlers.base import (
    TaskHandlerResult,
    completion_limit_reason,
)


async def handle_game_action(
    ledger: TaskCompletionLogRepository,
    event: GameActionEvent,
    config: TaskConfig,
) -> TaskHandlerResult:
    reason = await completion_limit_reason(ledger, config, event.partner_id)
    if reason:
        return TaskHandlerResult.rejected(event.partner_id, event.uid, reason)

    return TaskHandlerResult(
        is_valid=True,
        partner_id=event.partner_id,
        uid=event.uid,
        business_params=dict(event.business_params),
    )
