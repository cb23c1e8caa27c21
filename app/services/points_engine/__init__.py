"""
Points engine.

Task configuration, event processing into the completion ledger and
cached point aggregation.
"""

from app.services.points_engine.config import (
    TASK_CONFIGS,
    EventType,
    PointRule,
    TaskConfig,
    TaskConfigRegistry,
    default_registry,
)
from app.services.points_engine.events import (
    ExternalTaskApprovedEvent,
    GameActionEvent,
    RegisterDownlineL1Event,
    RegisterSelfEvent,
    TaskEvent,
)
from app.services.points_engine.point_rule import calculate_points
from app.services.points_engine.points_cache import PointsCache
from app.services.points_engine.points_service import (
    PointsDetailItem,
    PointsService,
    TaskLogItem,
    TaskLogPage,
)
from app.services.points_engine.task_engine import (
    ProcessStatus,
    TaskEngine,
    TaskOutcome,
)

__all__ = [
    "TASK_CONFIGS",
    "EventType",
    "ExternalTaskApprovedEvent",
    "GameActionEvent",
    "PointRule",
    "PointsCache",
    "PointsDetailItem",
    "PointsService",
    "ProcessStatus",
    "RegisterDownlineL1Event",
    "RegisterSelfEvent",
    "TaskConfig",
    "TaskConfigRegistry",
    "TaskEngine",
    "TaskEvent",
    "TaskLogItem",
    "TaskLogPage",
    "TaskOutcome",
    "calculate_points",
    "default_registry",
]
