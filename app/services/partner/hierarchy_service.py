"""
Hierarchy service.

Maintains the two-level partner graph:
- one active direct (level 1) parent per partner, set once
- a materialized level 2 edge grandparent -> child for every direct edge
  whose parent has a parent itself
- no direct cycles of length 1 or 2 (longer cycles are not checked)

Superseded edges are deactivated, never deleted.
"""

from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.admin_operation_log import AdminOperationType
from app.models.enums import HierarchyLevel
from app.models.partner_hierarchy import PartnerHierarchy
from app.repositories.admin_operation_log_repository import (
    AdminOperationLogRepository,
)
from app.repositories.hierarchy_repository import HierarchyRepository
from app.repositories.partner_repository import PartnerRepository
from app.services.base_service import BaseService, transaction
from app.utils.exceptions import (
    CircularReferenceError,
    InvalidPartnerIdError,
    UplinkImmutableError,
)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class DownlinePage:
    """One page of active downline edges."""

    items: list[PartnerHierarchy]
    total: int
    page: int
    page_size: int


@dataclass(frozen=True)
class TeamOverview:
    """Active downline counts of a partner."""

    total_l1: int
    total_l2: int


class HierarchyService(BaseService):
    """Partner hierarchy integrity service."""

    def __init__(
        self, session: AsyncSession, max_page_size: int = MAX_PAGE_SIZE
    ) -> None:
        """
        Initialize hierarchy service.

        Args:
            session: Database session
            max_page_size: Upper bound for downline page size
        """
        super().__init__(session)
        self.max_page_size = max_page_size
        self.hierarchy_repo = HierarchyRepository(session)
        self.partner_repo = PartnerRepository(session)
        self.admin_log_repo = AdminOperationLogRepository(session)

    async def check_short_cycle(
        self, candidate_parent_id: int, candidate_child_id: int
    ) -> bool:
        """
        Check if binding child under parent would close a short cycle.

        Detects self reference and A -> B -> A. Fails closed: when the
        lookup itself fails the binding is treated as cyclic.

        Args:
            candidate_parent_id: Proposed parent
            candidate_child_id: Proposed child

        Returns:
            True if the binding must be rejected
        """
        if candidate_parent_id == candidate_child_id:
            return True

        try:
            return await self.hierarchy_repo.has_active_edge(
                parent_partner_id=candidate_child_id,
                child_partner_id=candidate_parent_id,
                level=HierarchyLevel.DIRECT,
            )
        except SQLAlchemyError as e:
            self.logger.error(
                "Cycle check failed, rejecting binding",
                extra={
                    "parent_id": candidate_parent_id,
                    "child_id": candidate_child_id,
                    "error": str(e),
                },
            )
            return True

    async def _require_partners(self, *partner_ids: int) -> None:
        for partner_id in partner_ids:
            if await self.partner_repo.get_by_id(partner_id) is None:
                raise InvalidPartnerIdError(partner_id)

    async def _bind_grandparent(
        self, parent_id: int, child_id: int
    ) -> PartnerHierarchy | None:
        """Add level 2 edge to the parent's own parent, if any."""
        grand_edge = await self.hierarchy_repo.get_active_uplink(parent_id)
        if grand_edge is None:
            return None
        return await self.hierarchy_repo.add_edge(
            grand_edge.parent_partner_id, child_id, HierarchyLevel.INDIRECT
        )

    async def _sync_downline_grandparent(
        self, partner_id: int, grandparent_id: int | None
    ) -> int:
        """
        Point level 2 edges of the partner's direct downlines at
        grandparent_id (the partner's new parent).

        Returns:
            Number of downlines re-pointed
        """
        direct_edges = await self.hierarchy_repo.find_by(
            parent_partner_id=partner_id,
            level=HierarchyLevel.DIRECT,
            is_active=True,
        )
        for edge in direct_edges:
            stale = await self.hierarchy_repo.get_active_uplink(
                edge.child_partner_id, HierarchyLevel.INDIRECT
            )
            if stale is not None:
                await self.hierarchy_repo.deactivate(stale)
            if grandparent_id is not None and grandparent_id != edge.child_partner_id:
                await self.hierarchy_repo.add_edge(
                    grandparent_id, edge.child_partner_id, HierarchyLevel.INDIRECT
                )
        return len(direct_edges)

    @transaction
    async def create_relationship(
        self,
        parent_id: int,
        child_id: int,
        source_channel_id: str | None = None,
    ) -> PartnerHierarchy:
        """
        Bind child under parent.

        Args:
            parent_id: Inviter partner ID
            child_id: Invitee partner ID
            source_channel_id: Channel the invitation came through

        Returns:
            The new level 1 edge

        Raises:
            CircularReferenceError: If the binding closes a short cycle
            InvalidPartnerIdError: If either partner does not exist
            UplinkImmutableError: If the child already has a parent
        """
        if await self.check_short_cycle(parent_id, child_id):
            raise CircularReferenceError(parent_id, child_id)

        await self._require_partners(parent_id, child_id)

        if await self.hierarchy_repo.get_active_uplink(child_id) is not None:
            raise UplinkImmutableError(child_id)

        try:
            edge = await self.hierarchy_repo.add_edge(
                parent_id, child_id, HierarchyLevel.DIRECT, source_channel_id
            )
            await self._bind_grandparent(parent_id, child_id)
            # Child may already have invited partners of its own
            await self._sync_downline_grandparent(child_id, parent_id)
        except IntegrityError as e:
            # Concurrent binding of the same child won
            raise UplinkImmutableError(child_id) from e

        self.logger.info(
            "Partner relationship created",
            extra={
                "parent_id": parent_id,
                "child_id": child_id,
                "source_channel_id": source_channel_id,
            },
        )
        return edge

    @transaction
    async def correct_uplink(
        self,
        child_id: int,
        new_parent_id: int,
        admin_id: str,
        reason: str | None = None,
    ) -> dict[str, Any]:
        """
        Replace the parent of a partner (admin operation).

        Current edges are deactivated and kept as history, new ones are
        appended and a before/after snapshot goes to the admin log.

        Args:
            child_id: Partner to move
            new_parent_id: New direct parent
            admin_id: Operator ID
            reason: Correction reason

        Returns:
            Dict with "before" and "after" snapshots

        Raises:
            CircularReferenceError: If the new binding closes a short cycle
            InvalidPartnerIdError: If either partner does not exist
        """
        if await self.check_short_cycle(new_parent_id, child_id):
            raise CircularReferenceError(new_parent_id, child_id)

        await self._require_partners(new_parent_id, child_id)

        old_direct = await self.hierarchy_repo.get_active_uplink(
            child_id, HierarchyLevel.DIRECT
        )
        old_indirect = await self.hierarchy_repo.get_active_uplink(
            child_id, HierarchyLevel.INDIRECT
        )
        before = {
            "parent_partner_id": (
                old_direct.parent_partner_id if old_direct else None
            ),
            "grandparent_partner_id": (
                old_indirect.parent_partner_id if old_indirect else None
            ),
        }

        for edge in (old_direct, old_indirect):
            if edge is not None:
                await self.hierarchy_repo.deactivate(edge)

        # Corrected edges carry no invitation channel
        await self.hierarchy_repo.add_edge(
            new_parent_id, child_id, HierarchyLevel.DIRECT
        )
        new_indirect = await self._bind_grandparent(new_parent_id, child_id)
        moved = await self._sync_downline_grandparent(child_id, new_parent_id)

        after = {
            "parent_partner_id": new_parent_id,
            "grandparent_partner_id": (
                new_indirect.parent_partner_id if new_indirect else None
            ),
        }
        await self.admin_log_repo.record(
            partner_id=child_id,
            operation_type=AdminOperationType.CORRECT_UPLINK,
            admin_id=admin_id,
            reason=reason,
            before_data=before,
            after_data=after,
        )

        self.logger.info(
            "Partner uplink corrected",
            extra={
                "child_id": child_id,
                "admin_id": admin_id,
                "before": before,
                "after": after,
                "downlines_updated": moved,
            },
        )
        return {"before": before, "after": after}

    async def rebuild_hierarchy(
        self,
        child_id: int,
        new_parent_id: int,
        admin_id: str,
        reason: str | None = None,
    ) -> dict[str, Any]:
        """Alias of correct_uplink."""
        return await self.correct_uplink(child_id, new_parent_id, admin_id, reason)

    async def get_uplink(self, partner_id: int) -> PartnerHierarchy | None:
        """Get active direct parent edge of a partner."""
        return await self.hierarchy_repo.get_active_uplink(partner_id)

    async def get_downlines(
        self,
        partner_id: int,
        level: int,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> DownlinePage:
        """
        Get active downlines of a partner at one level, newest first.

        Args:
            partner_id: Upline partner ID
            level: 1 (direct) or 2 (indirect)
            page: Page number, starting at 1
            page_size: Items per page, capped at max_page_size

        Returns:
            Downline page

        Raises:
            ValueError: If level is not 1 or 2
        """
        if level not in (HierarchyLevel.DIRECT, HierarchyLevel.INDIRECT):
            raise ValueError(f"Invalid hierarchy level: {level}")

        page = max(page, 1)
        page_size = min(max(page_size, 1), self.max_page_size)

        items, total = await self.hierarchy_repo.get_downlines(
            partner_id,
            level,
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        return DownlinePage(
            items=items, total=total, page=page, page_size=page_size
        )

    async def get_edge_history(
        self, child_id: int
    ) -> list[PartnerHierarchy]:
        """Get every edge ever pointing at a partner, oldest first."""
        return await self.hierarchy_repo.get_edge_history(child_id)

    async def get_team_overview(self, partner_id: int) -> TeamOverview:
        """Count active direct and indirect downlines of a partner."""
        overview = TeamOverview(
            total_l1=await self.hierarchy_repo.count_active_downlines(
                partner_id, HierarchyLevel.DIRECT
            ),
            total_l2=await self.hierarchy_repo.count_active_downlines(
                partner_id, HierarchyLevel.INDIRECT
            ),
        )
        self.logger.debug(
            f"Team overview of partner {partner_id}",
            extra={
                "partner_id": partner_id,
                "total_l1": overview.total_l1,
                "total_l2": overview.total_l2,
            },
        )
        return overview

    async def is_downline(self, partner_id: int, target_partner_id: int) -> bool:
        """
        Check if target is an active downline of partner at level 1 or 2.

        Used to authorize a partner viewing a team member's data.
        """
        return await self.hierarchy_repo.is_active_ancestor(
            partner_id, target_partner_id
        )
