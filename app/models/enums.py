"""
Enum definitions for partner program models.
"""

from enum import StrEnum


class PartnerStatus(StrEnum):
    """Partner profile status."""

    ACTIVE = "active"
    FROZEN = "frozen"


class TaskType(StrEnum):
    """Task category, selects the handler in the dispatch table."""

    REGISTER = "REGISTER"
    INVITE_SUCCESS = "INVITE_SUCCESS"
    GAME_ACTION = "GAME_ACTION"
    EXTERNAL_TASK = "EXTERNAL_TASK"


class TaskStatus(StrEnum):
    """Ledger entry status."""

    COMPLETED = "completed"


class PointRuleType(StrEnum):
    """Point rule kinds."""

    FIXED = "FIXED"
    PER_AMOUNT = "PER_AMOUNT"


class HierarchyLevel:
    """Hierarchy edge levels."""

    DIRECT = 1  # parent -> child
    INDIRECT = 2  # grandparent -> child (materialized)
