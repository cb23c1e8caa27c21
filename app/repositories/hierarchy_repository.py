"""
Hierarchy repository.

Data access layer for PartnerHierarchy model. Every read of the current
graph filters on is_active; inactive rows are history.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import HierarchyLevel
from app.models.partner_hierarchy import PartnerHierarchy
from app.models.partner_profile import PartnerProfile
from app.repositories.base import BaseRepository
from app.utils.datetime_utils import utc_now


class HierarchyRepository(BaseRepository[PartnerHierarchy]):
    """Hierarchy edge repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize hierarchy repository."""
        super().__init__(PartnerHierarchy, session)

    async def get_active_uplink(
        self, child_partner_id: int, level: int = HierarchyLevel.DIRECT
    ) -> PartnerHierarchy | None:
        """
        Get the active edge pointing at a child.

        Args:
            child_partner_id: Downline partner ID
            level: Edge level (1 or 2)

        Returns:
            Active edge or None
        """
        return await self.get_by(
            child_partner_id=child_partner_id,
            level=level,
            is_active=True,
        )

    async def has_active_edge(
        self,
        parent_partner_id: int,
        child_partner_id: int,
        level: int = HierarchyLevel.DIRECT,
    ) -> bool:
        """
        Check if an active edge parent -> child exists.

        Args:
            parent_partner_id: Upline partner ID
            child_partner_id: Downline partner ID
            level: Edge level

        Returns:
            True if edge exists
        """
        stmt = (
            select(PartnerHierarchy.id)
            .where(
                PartnerHierarchy.parent_partner_id == parent_partner_id,
                PartnerHierarchy.child_partner_id == child_partner_id,
                PartnerHierarchy.level == level,
                PartnerHierarchy.is_active.is_(True),
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def add_edge(
        self,
        parent_partner_id: int,
        child_partner_id: int,
        level: int,
        source_channel_id: str | None = None,
    ) -> PartnerHierarchy:
        """
        Append an active edge.

        Raises:
            IntegrityError: If the child already has an active edge at
                this level
        """
        return await self.create(
            parent_partner_id=parent_partner_id,
            child_partner_id=child_partner_id,
            level=level,
            source_channel_id=source_channel_id,
            is_active=True,
        )

    async def deactivate(self, edge: PartnerHierarchy) -> None:
        """Mark edge as superseded. The row is kept."""
        edge.is_active = False
        edge.deactivated_at = utc_now()
        self.session.add(edge)
        await self.session.flush()

    async def get_downlines(
        self,
        parent_partner_id: int,
        level: int,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[PartnerHierarchy], int]:
        """
        Get active downline edges of a partner at one level.

        Newest binds first.

        Args:
            parent_partner_id: Upline partner ID
            level: Edge level (1 or 2)
            offset: Rows to skip
            limit: Max rows

        Returns:
            Tuple of (edges, total_count)
        """
        conditions = (
            PartnerHierarchy.parent_partner_id == parent_partner_id,
            PartnerHierarchy.level == level,
            PartnerHierarchy.is_active.is_(True),
        )

        count_stmt = select(func.count(PartnerHierarchy.id)).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar() or 0

        stmt = (
            select(PartnerHierarchy)
            .where(*conditions)
            .order_by(
                PartnerHierarchy.bind_time.desc(),
                PartnerHierarchy.id.desc(),
            )
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def get_edge_history(
        self, child_partner_id: int
    ) -> list[PartnerHierarchy]:
        """Get all edges (active and superseded) of a child, oldest first."""
        return await self.find_by(child_partner_id=child_partner_id)

    async def count_active_downlines(self, parent_partner_id: int, level: int) -> int:
        """Count active downline edges of a partner at one level."""
        return await self.count(
            parent_partner_id=parent_partner_id,
            level=level,
            is_active=True,
        )

    async def is_active_ancestor(
        self, parent_partner_id: int, child_partner_id: int
    ) -> bool:
        """Check for an active edge parent -> child at any level."""
        return await self.exists(
            parent_partner_id=parent_partner_id,
            child_partner_id=child_partner_id,
            is_active=True,
        )

    async def get_direct_downline_profiles(
        self, parent_partner_id: int
    ) -> list[tuple[PartnerHierarchy, PartnerProfile]]:
        """
        Get active level 1 edges of a partner with the child profiles.

        Oldest binds first.

        Returns:
            List of (edge, child profile) pairs
        """
        stmt = (
            select(PartnerHierarchy, PartnerProfile)
            .join(
                PartnerProfile,
                PartnerProfile.id == PartnerHierarchy.child_partner_id,
            )
            .where(
                PartnerHierarchy.parent_partner_id == parent_partner_id,
                PartnerHierarchy.level == HierarchyLevel.DIRECT,
                PartnerHierarchy.is_active.is_(True),
            )
            .order_by(PartnerHierarchy.bind_time.asc(), PartnerHierarchy.id.asc())
        )
        result = await self.session.execute(stmt)
        return [(edge, profile) for edge, profile in result.all()]
