"""
Task handlers.

One coroutine per task type, selected through TASK_HANDLERS.
"""

from types import MappingProxyType

from app.models.enums import TaskType
from app.services.points_engine.handlers.base import (
    TaskHandler,
    TaskHandlerResult,
    completion_limit_reason,
)
from app.services.points_engine.handlers.external_task import (
    handle_external_task,
)
from app.services.points_engine.handlers.game_action import handle_game_action
from app.services.points_engine.handlers.invite import handle_invite
from app.services.points_engine.handlers.register import handle_register


TASK_HANDLERS: MappingProxyType[TaskType, TaskHandler] = MappingProxyType({
    TaskType.REGISTER: handle_register,
    TaskType.INVITE_SUCCESS: handle_invite,
    TaskType.GAME_ACTION: handle_game_action,
    TaskType.EXTERNAL_TASK: handle_external_task,
})


__all__ = [
    "TASK_HANDLERS",
    "TaskHandler",
    "TaskHandlerResult",
    "completion_limit_reason",
    "handle_external_task",
    "handle_game_action",
    "handle_invite",
    "handle_register",
]
