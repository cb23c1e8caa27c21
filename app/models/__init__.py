"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.admin_operation_log import (
    AdminOperationLog,
    AdminOperationType,
)
from app.models.base import Base
from app.models.enums import (
    HierarchyLevel,
    PartnerStatus,
    PointRuleType,
    TaskStatus,
    TaskType,
)
from app.models.partner_hierarchy import PartnerHierarchy
from app.models.partner_profile import PartnerProfile
from app.models.task_completion_log import TaskCompletionLog

__all__ = [
    # Base
    "Base",
    # Enums
    "HierarchyLevel",
    "PartnerStatus",
    "PointRuleType",
    "TaskStatus",
    "TaskType",
    "AdminOperationType",
    # Partner Models
    "PartnerProfile",
    "PartnerHierarchy",
    # Points Models
    "TaskCompletionLog",
    # Audit Models
    "AdminOperationLog",
]
