"""
PartnerHierarchy model.

Directed invitation edges. Level 1 is the direct inviter, level 2 is the
inviter's inviter, materialized when the level 1 edge is created.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class PartnerHierarchy(Base):
    """
    Hierarchy edge (parent -> child).

    Edges are never deleted: a correction flips is_active to False and
    appends new edges.

    Attributes:
        id: Primary key
        parent_partner_id: Upline partner
        child_partner_id: Downline partner
        level: 1 (direct) or 2 (grandparent)
        source_channel_id: Invitation channel (level 1 only)
        is_active: Whether the edge is current
        bind_time: When the edge was created
        deactivated_at: When the edge was superseded
    """

    __tablename__ = "partner_hierarchy"
    __table_args__ = (
        CheckConstraint(
            "level IN (1, 2)", name="check_partner_hierarchy_level"
        ),
        CheckConstraint(
            "parent_partner_id <> child_partner_id",
            name="check_partner_hierarchy_no_self_edge",
        ),
        # One active edge per child and level: serializes concurrent binds
        Index(
            "uq_partner_hierarchy_active_child_level",
            "child_partner_id",
            "level",
            unique=True,
            postgresql_where=text("is_active IS TRUE"),
            sqlite_where=text("is_active = 1"),
        ),
        Index(
            "idx_partner_hierarchy_parent_level_active",
            "parent_partner_id",
            "level",
            "is_active",
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Edge
    parent_partner_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("partner_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    child_partner_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("partner_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    source_channel_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )

    # State
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    bind_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PartnerHierarchy(id={self.id}, "
            f"{self.parent_partner_id}->{self.child_partner_id}, "
            f"level={self.level}, active={self.is_active})>"
        )
