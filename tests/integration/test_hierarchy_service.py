"""
Integration tests for HierarchyService on SQLite.

Tests cover:
- Short cycle rejection
- Write-once upline
- Level 2 materialization on create and correction
- Edge history and admin log on correction
"""

from unittest.mock import AsyncMock, patch

import pytest

from app.models.enums import HierarchyLevel
from app.repositories.admin_operation_log_repository import (
    AdminOperationLogRepository,
)
from app.services.partner.hierarchy_service import HierarchyService
from app.utils.exceptions import (
    CircularReferenceError,
    InvalidPartnerIdError,
    UplinkImmutableError,
)


@pytest.fixture
def hierarchy(db_session):
    return HierarchyService(db_session)


async def _downline_ids(hierarchy, partner_id, level):
    page = await hierarchy.get_downlines(partner_id, level)
    return {edge.child_partner_id for edge in page.items}


class TestCreateRelationship:
    """Test create_relationship."""

    @pytest.mark.asyncio
    async def test_binds_child(self, hierarchy, make_partner):
        parent = await make_partner()
        child = await make_partner()

        edge = await hierarchy.create_relationship(parent.id, child.id, "channel-1")

        assert edge.level == HierarchyLevel.DIRECT
        assert edge.is_active is True
        uplink = await hierarchy.get_uplink(child.id)
        assert uplink.parent_partner_id == parent.id
        assert uplink.source_channel_id == "channel-1"

    @pytest.mark.asyncio
    async def test_self_binding_rejected(self, hierarchy, make_partner):
        partner = await make_partner()

        with pytest.raises(CircularReferenceError):
            await hierarchy.create_relationship(partner.id, partner.id)

    @pytest.mark.asyncio
    async def test_two_cycle_rejected(self, hierarchy, make_partner):
        a_id = (await make_partner()).id
        b_id = (await make_partner()).id
        await hierarchy.create_relationship(b_id, a_id)

        assert await hierarchy.check_short_cycle(a_id, b_id) is True
        with pytest.raises(CircularReferenceError):
            await hierarchy.create_relationship(a_id, b_id)
        assert await hierarchy.get_uplink(b_id) is None

    @pytest.mark.asyncio
    async def test_three_cycle_allowed(self, hierarchy, make_partner):
        """Only cycles of length 1 and 2 are checked."""
        a = await make_partner()
        b = await make_partner()
        c = await make_partner()
        await hierarchy.create_relationship(c.id, b.id)
        await hierarchy.create_relationship(b.id, a.id)

        assert await hierarchy.check_short_cycle(a.id, c.id) is False
        edge = await hierarchy.create_relationship(a.id, c.id)
        assert edge.parent_partner_id == a.id

    @pytest.mark.asyncio
    async def test_unknown_partner(self, hierarchy, make_partner):
        parent = await make_partner()

        with pytest.raises(InvalidPartnerIdError):
            await hierarchy.create_relationship(parent.id, 9999)

    @pytest.mark.asyncio
    async def test_upline_write_once(self, hierarchy, make_partner):
        first_id = (await make_partner()).id
        second_id = (await make_partner()).id
        child_id = (await make_partner()).id
        await hierarchy.create_relationship(first_id, child_id)

        with pytest.raises(UplinkImmutableError):
            await hierarchy.create_relationship(second_id, child_id)

        uplink = await hierarchy.get_uplink(child_id)
        assert uplink.parent_partner_id == first_id

    @pytest.mark.asyncio
    async def test_unique_index_keeps_first_uplink(self, hierarchy, make_partner):
        """A bind that slips past the uplink lookup hits the unique index."""
        first_id = (await make_partner()).id
        second_id = (await make_partner()).id
        child_id = (await make_partner()).id
        await hierarchy.create_relationship(first_id, child_id)

        with patch.object(
            hierarchy.hierarchy_repo,
            "get_active_uplink",
            AsyncMock(return_value=None),
        ):
            with pytest.raises(UplinkImmutableError):
                await hierarchy.create_relationship(second_id, child_id)

        uplink = await hierarchy.get_uplink(child_id)
        assert uplink.parent_partner_id == first_id
        history = await hierarchy.get_edge_history(child_id)
        assert [edge.parent_partner_id for edge in history] == [first_id]

    @pytest.mark.asyncio
    async def test_level_two_edge_materialized(self, hierarchy, make_partner):
        grand = await make_partner()
        parent = await make_partner()
        child = await make_partner()
        await hierarchy.create_relationship(grand.id, parent.id)

        await hierarchy.create_relationship(parent.id, child.id)

        assert await _downline_ids(hierarchy, grand.id, 1) == {parent.id}
        assert await _downline_ids(hierarchy, grand.id, 2) == {child.id}
        assert await _downline_ids(hierarchy, parent.id, 1) == {child.id}

    @pytest.mark.asyncio
    async def test_no_level_two_without_grandparent(self, hierarchy, make_partner):
        parent = await make_partner()
        child = await make_partner()

        await hierarchy.create_relationship(parent.id, child.id)

        history = await hierarchy.get_edge_history(child.id)
        assert [edge.level for edge in history] == [1]

    @pytest.mark.asyncio
    async def test_late_binding_updates_existing_downlines(self, hierarchy, make_partner):
        """A partner that already invited others gets an upline later."""
        new_parent = await make_partner()
        partner = await make_partner()
        downline = await make_partner()
        await hierarchy.create_relationship(partner.id, downline.id)

        await hierarchy.create_relationship(new_parent.id, partner.id)

        assert await _downline_ids(hierarchy, new_parent.id, 2) == {downline.id}

    @pytest.mark.asyncio
    async def test_channel_kept_on_direct_edge_only(self, hierarchy, make_partner):
        grand_id = (await make_partner()).id
        parent_id = (await make_partner()).id
        child_id = (await make_partner()).id
        await hierarchy.create_relationship(grand_id, parent_id, "channel-1")

        await hierarchy.create_relationship(parent_id, child_id, "channel-2")

        channels = {
            edge.level: edge.source_channel_id
            for edge in await hierarchy.get_edge_history(child_id)
        }
        assert channels == {1: "channel-2", 2: None}


class TestCorrectUplink:
    """Test admin uplink correction."""

    @pytest.mark.asyncio
    async def test_moves_child_and_keeps_history(self, hierarchy, make_partner, db_session):
        g1 = await make_partner()
        p1 = await make_partner()
        g2 = await make_partner()
        p2 = await make_partner()
        child = await make_partner()
        await hierarchy.create_relationship(g1.id, p1.id)
        await hierarchy.create_relationship(g2.id, p2.id)
        await hierarchy.create_relationship(p1.id, child.id)

        snapshot = await hierarchy.correct_uplink(child.id, p2.id, "admin-1", "wrong inviter")

        assert snapshot == {
            "before": {"parent_partner_id": p1.id, "grandparent_partner_id": g1.id},
            "after": {"parent_partner_id": p2.id, "grandparent_partner_id": g2.id},
        }
        assert (await hierarchy.get_uplink(child.id)).parent_partner_id == p2.id
        assert await _downline_ids(hierarchy, g2.id, 2) == {child.id}
        assert await _downline_ids(hierarchy, g1.id, 2) == set()
        assert await _downline_ids(hierarchy, p1.id, 1) == set()

        history = await hierarchy.get_edge_history(child.id)
        assert len(history) == 4
        inactive = [edge for edge in history if not edge.is_active]
        assert len(inactive) == 2
        assert all(edge.deactivated_at is not None for edge in inactive)

        logs = await AdminOperationLogRepository(db_session).get_for_partner(child.id)
        assert len(logs) == 1
        assert logs[0].operation_type == "correct_uplink"
        assert logs[0].admin_id == "admin-1"
        assert logs[0].before_data["parent_partner_id"] == p1.id

    @pytest.mark.asyncio
    async def test_corrected_edges_have_no_channel(self, hierarchy, make_partner):
        g2_id = (await make_partner()).id
        p1_id = (await make_partner()).id
        p2_id = (await make_partner()).id
        child_id = (await make_partner()).id
        await hierarchy.create_relationship(g2_id, p2_id, "channel-1")
        await hierarchy.create_relationship(p1_id, child_id, "channel-2")

        await hierarchy.correct_uplink(child_id, p2_id, "admin-1")

        active = [
            edge
            for edge in await hierarchy.get_edge_history(child_id)
            if edge.is_active
        ]
        assert {edge.level for edge in active} == {1, 2}
        assert all(edge.source_channel_id is None for edge in active)

    @pytest.mark.asyncio
    async def test_new_parent_without_parent(self, hierarchy, make_partner):
        g1 = await make_partner()
        p1 = await make_partner()
        p2 = await make_partner()
        child = await make_partner()
        await hierarchy.create_relationship(g1.id, p1.id)
        await hierarchy.create_relationship(p1.id, child.id)

        snapshot = await hierarchy.correct_uplink(child.id, p2.id, "admin-1", None)

        assert snapshot["after"]["grandparent_partner_id"] is None
        history = await hierarchy.get_edge_history(child.id)
        assert [e.level for e in history if e.is_active] == [1]

    @pytest.mark.asyncio
    async def test_downlines_follow_correction(self, hierarchy, make_partner):
        old_parent = await make_partner()
        new_parent = await make_partner()
        partner = await make_partner()
        downline = await make_partner()
        await hierarchy.create_relationship(old_parent.id, partner.id)
        await hierarchy.create_relationship(partner.id, downline.id)

        await hierarchy.rebuild_hierarchy(partner.id, new_parent.id, "admin-1", "merge")

        assert await _downline_ids(hierarchy, new_parent.id, 2) == {downline.id}
        assert await _downline_ids(hierarchy, old_parent.id, 2) == set()

    @pytest.mark.asyncio
    async def test_correction_into_cycle_rejected(self, hierarchy, make_partner):
        a_id = (await make_partner()).id
        b_id = (await make_partner()).id
        c_id = (await make_partner()).id
        await hierarchy.create_relationship(c_id, a_id)
        await hierarchy.create_relationship(a_id, b_id)

        with pytest.raises(CircularReferenceError):
            await hierarchy.correct_uplink(a_id, b_id, "admin-1", None)

        assert (await hierarchy.get_uplink(a_id)).parent_partner_id == c_id

    @pytest.mark.asyncio
    async def test_unknown_new_parent(self, hierarchy, make_partner):
        child = await make_partner()

        with pytest.raises(InvalidPartnerIdError):
            await hierarchy.correct_uplink(child.id, 9999, "admin-1", None)


class TestGetDownlines:
    """Test downline listing."""

    @pytest.mark.asyncio
    async def test_paging_newest_first(self, hierarchy, make_partner):
        parent = await make_partner()
        children = [await make_partner() for _ in range(5)]
        for child in children:
            await hierarchy.create_relationship(parent.id, child.id)

        first = await hierarchy.get_downlines(parent.id, 1, page=1, page_size=2)
        last = await hierarchy.get_downlines(parent.id, 1, page=3, page_size=2)

        assert first.total == 5
        assert [e.child_partner_id for e in first.items] == [children[4].id, children[3].id]
        assert [e.child_partner_id for e in last.items] == [children[0].id]

    @pytest.mark.asyncio
    async def test_empty(self, hierarchy, make_partner):
        partner = await make_partner()

        page = await hierarchy.get_downlines(partner.id, 2)

        assert page.items == []
        assert page.total == 0


class TestTeamStatistics:
    """Test team overview and downline checks."""

    @pytest.mark.asyncio
    async def test_team_overview_counts_active_edges(self, hierarchy, make_partner):
        root = await make_partner()
        direct = [await make_partner() for _ in range(2)]
        indirect = await make_partner()
        other = await make_partner()
        for partner in direct:
            await hierarchy.create_relationship(root.id, partner.id)
        await hierarchy.create_relationship(direct[0].id, indirect.id)

        overview = await hierarchy.get_team_overview(root.id)
        assert (overview.total_l1, overview.total_l2) == (2, 1)

        # Moving the indirect downline away leaves root with direct ones only
        await hierarchy.correct_uplink(indirect.id, other.id, "admin-1")

        overview = await hierarchy.get_team_overview(root.id)
        assert (overview.total_l1, overview.total_l2) == (2, 0)

    @pytest.mark.asyncio
    async def test_is_downline_at_either_level(self, hierarchy, make_partner):
        grand = await make_partner()
        parent = await make_partner()
        child = await make_partner()
        await hierarchy.create_relationship(grand.id, parent.id)
        await hierarchy.create_relationship(parent.id, child.id)

        assert await hierarchy.is_downline(grand.id, parent.id) is True
        assert await hierarchy.is_downline(grand.id, child.id) is True
        assert await hierarchy.is_downline(child.id, grand.id) is False
        assert await hierarchy.is_downline(parent.id, grand.id) is False

    @pytest.mark.asyncio
    async def test_is_downline_ignores_superseded_edges(self, hierarchy, make_partner):
        old_parent = await make_partner()
        new_parent = await make_partner()
        child = await make_partner()
        await hierarchy.create_relationship(old_parent.id, child.id)

        await hierarchy.correct_uplink(child.id, new_parent.id, "admin-1")

        assert await hierarchy.is_downline(old_parent.id, child.id) is False
        assert await hierarchy.is_downline(new_parent.id, child.id) is True
