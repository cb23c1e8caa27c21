"""
TaskCompletionLog model.

Append-only ledger of completed tasks. Point totals are always derived
from these rows.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, JSONType
from app.models.enums import TaskStatus


class TaskCompletionLog(Base):
    """
    Task completion ledger entry.

    The unique key (task_code, partner_id, event_id) collapses repeated
    deliveries of one logical event into a single row.

    Attributes:
        id: Primary key
        task_code: Task configuration code
        task_type: Task category
        partner_id: Partner receiving the points
        uid: External user ID of that partner
        related_partner_id: Other party (e.g. invited downline)
        related_uid: External user ID of the other party
        event_type: Triggering event type
        event_id: Idempotency key derived from the event
        business_params: Event-specific data used for point calculation
        status: Entry status (always completed)
        created_at: Write time
    """

    __tablename__ = "task_completion_logs"
    __table_args__ = (
        UniqueConstraint(
            "task_code",
            "partner_id",
            "event_id",
            name="uq_task_completion_logs_task_partner_event",
        ),
        Index(
            "idx_task_completion_logs_partner_status",
            "partner_id",
            "status",
        ),
        Index(
            "idx_task_completion_logs_task_partner_related",
            "task_code",
            "partner_id",
            "related_partner_id",
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Task
    task_code: Mapped[str] = mapped_column(String(64), nullable=False)
    task_type: Mapped[str] = mapped_column(String(32), nullable=False)

    # Actor
    partner_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("partner_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    uid: Mapped[str] = mapped_column(String(64), nullable=False)

    # Related party
    related_partner_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )
    related_uid: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )

    # Event
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    event_id: Mapped[str] = mapped_column(String(255), nullable=False)
    business_params: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType, nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TaskStatus.COMPLETED.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<TaskCompletionLog(id={self.id}, task={self.task_code}, "
            f"partner_id={self.partner_id}, event_id={self.event_id})>"
        )
