"""
Points engine configuration.

Static task table and read-only registry over it. Task definitions are
maintained here; they are immutable at runtime.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from app.models.enums import PointRuleType, TaskType

# Cache configuration
POINTS_CACHE_TTL_SECONDS = 5 * 60
POINTS_CACHE_MAX_ENTRIES = 1000
DETAIL_CACHE_MAX_ENTRIES = 500


class EventType:
    """Trigger event type constants."""

    REGISTER_SELF = "partner.register_self"
    REGISTER_DOWNLINE_L1 = "partner.register_downline_L1"
    GAME_ACTION = "game_action"
    EXTERNAL_TASK_APPROVED = "external_task.approved"


@dataclass(frozen=True)
class PointRule:
    """
    Point rule descriptor.

    FIXED uses value, PER_AMOUNT uses rate against business_params["amount"].
    """

    type: PointRuleType | str
    value: int = 0
    rate: Decimal = Decimal("0")


@dataclass(frozen=True)
class TaskConfig:
    """Static task definition."""

    task_code: str
    task_type: TaskType
    trigger_event_type: str
    point_rule: PointRule
    max_completion_count: int = 0  # 0 = unlimited
    enabled: bool = True
    description: str = field(default="", compare=False)


TASK_CONFIGS: tuple[TaskConfig, ...] = (
    # Partner tasks
    TaskConfig(
        task_code="REGISTER_V1",
        task_type=TaskType.REGISTER,
        trigger_event_type=EventType.REGISTER_SELF,
        point_rule=PointRule(type=PointRuleType.FIXED, value=300),
        max_completion_count=1,
        description="Joined the partner program",
    ),
    TaskConfig(
        task_code="INVITE_V1",
        task_type=TaskType.INVITE_SUCCESS,
        trigger_event_type=EventType.REGISTER_DOWNLINE_L1,
        point_rule=PointRule(type=PointRuleType.FIXED, value=300),
        max_completion_count=50,
        description="Invited a team member",
    ),
    # In-game actions, reported by the client notify call
    TaskConfig(
        task_code="GAME_LEVEL_UP_10",
        task_type=TaskType.GAME_ACTION,
        trigger_event_type=EventType.GAME_ACTION,
        point_rule=PointRule(type=PointRuleType.FIXED, value=50),
        max_completion_count=1,
        description="Character reached level 10",
    ),
    TaskConfig(
        task_code="GAME_LEVEL_UP_50",
        task_type=TaskType.GAME_ACTION,
        trigger_event_type=EventType.GAME_ACTION,
        point_rule=PointRule(type=PointRuleType.FIXED, value=200),
        max_completion_count=1,
        description="Character reached level 50",
    ),
    TaskConfig(
        task_code="FIRST_RECHARGE",
        task_type=TaskType.GAME_ACTION,
        trigger_event_type=EventType.GAME_ACTION,
        point_rule=PointRule(type=PointRuleType.FIXED, value=500),
        max_completion_count=1,
        description="First recharge",
    ),
    TaskConfig(
        task_code="FIRST_DUNGEON_CLEAR",
        task_type=TaskType.GAME_ACTION,
        trigger_event_type=EventType.GAME_ACTION,
        point_rule=PointRule(type=PointRuleType.FIXED, value=100),
        max_completion_count=1,
        description="First dungeon cleared",
    ),
    # Externally reviewed submissions; reward comes with each approval
    TaskConfig(
        task_code="EXTERNAL_TASK_V1",
        task_type=TaskType.EXTERNAL_TASK,
        trigger_event_type=EventType.EXTERNAL_TASK_APPROVED,
        point_rule=PointRule(type=PointRuleType.FIXED, value=0),
        max_completion_count=0,
        description="External task approved by reviewer",
    ),
)


class TaskConfigRegistry:
    """
    Read-only lookup over task configurations.

    Safe for concurrent reads: the table is copied into a tuple at
    construction and never mutated.
    """

    def __init__(self, configs: Iterable[TaskConfig] = TASK_CONFIGS) -> None:
        """
        Initialize registry.

        Args:
            configs: Task configurations

        Raises:
            ValueError: If a task code appears twice
        """
        self._configs = tuple(configs)
        self._by_code: dict[str, TaskConfig] = {}
        for config in self._configs:
            if config.task_code in self._by_code:
                raise ValueError(f"Duplicate task code: {config.task_code}")
            self._by_code[config.task_code] = config

    def all(self) -> tuple[TaskConfig, ...]:
        """Get all configurations in declaration order."""
        return self._configs

    def get_by_code(self, task_code: str) -> TaskConfig | None:
        """Get configuration by task code, enabled or not."""
        return self._by_code.get(task_code)

    def get_enabled_by_event_type(self, event_type: str) -> list[TaskConfig]:
        """
        Get enabled configurations triggered by an event type.

        Several task codes may share one trigger (all game actions do).
        """
        return [
            config
            for config in self._configs
            if config.trigger_event_type == event_type and config.enabled
        ]

    def __len__(self) -> int:
        return len(self._configs)


default_registry = TaskConfigRegistry()
