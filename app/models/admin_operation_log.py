"""
AdminOperationLog model.

Before/after snapshots of administrative changes to partners.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, JSONType


class AdminOperationType:
    """Admin operation type constants."""

    CORRECT_UPLINK = "correct_uplink"
    FREEZE = "freeze"
    UNFREEZE = "unfreeze"
    UPDATE_REMARK = "update_remark"
    FIX_INVITE_TASKS = "fix_invite_tasks"


class AdminOperationLog(Base):
    """Audit record of an admin operation on a partner."""

    __tablename__ = "admin_operation_logs"
    __table_args__ = (
        Index(
            "idx_admin_operation_logs_partner_created",
            "partner_id",
            "created_at",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    partner_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    operation_type: Mapped[str] = mapped_column(String(50), nullable=False)
    admin_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    before_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType, nullable=True
    )
    after_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
