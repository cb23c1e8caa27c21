"""
PartnerProfile model.

Represents a participant of the partner program.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import PartnerStatus


class PartnerProfile(Base):
    """
    Partner profile.

    Attributes:
        id: Stable partner ID (never reused)
        partner_code: Public invitation code, e.g. LP123456
        uid: External user ID the profile belongs to
        username: Optional display name
        status: active or frozen
        team_name: Globally unique team name, immutable once set
        remark: Admin remark
        created_at: Program join time
        updated_at: Last modification time
    """

    __tablename__ = "partner_profiles"

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Identity
    partner_code: Mapped[str] = mapped_column(
        String(20), nullable=False, unique=True, index=True
    )
    uid: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )
    username: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PartnerStatus.ACTIVE.value
    )

    # Team
    team_name: Mapped[str | None] = mapped_column(
        String(100), nullable=True, unique=True
    )
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def is_active(self) -> bool:
        """Check if partner is not frozen."""
        return self.status == PartnerStatus.ACTIVE

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PartnerProfile(id={self.id}, code={self.partner_code}, "
            f"status={self.status})>"
        )
