"""
Partner repository.

Data access layer for PartnerProfile model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.partner_profile import PartnerProfile
from app.repositories.base import BaseRepository


class PartnerRepository(BaseRepository[PartnerProfile]):
    """Partner profile repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize partner repository."""
        super().__init__(PartnerProfile, session)

    async def get_by_uid(self, uid: str) -> PartnerProfile | None:
        """Get profile by external user ID."""
        return await self.get_by(uid=uid)

    async def get_by_code(self, partner_code: str) -> PartnerProfile | None:
        """Get profile by partner code."""
        return await self.get_by(partner_code=partner_code)

    async def get_by_team_name(self, team_name: str) -> PartnerProfile | None:
        """Get profile owning the team name."""
        return await self.get_by(team_name=team_name)

    async def code_exists(self, partner_code: str) -> bool:
        """Check if partner code is taken."""
        return await self.exists(partner_code=partner_code)
