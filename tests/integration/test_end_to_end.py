"""
End-to-end flow through the PartnerProgram bundle.

Three generations join by invitation; points, downlines and caches are
checked from the outside.
"""

import pytest

from app.services.points_engine.events import (
    ExternalTaskApprovedEvent,
    GameActionEvent,
)


@pytest.mark.asyncio
async def test_register_plus_invite_gives_600(program):
    inviter = await program.partners.join_partner("alice")
    inviter_id = inviter.id

    # Cache the pre-invite total to make sure it is invalidated
    assert await program.points.get_user_points(inviter_id) == 300

    await program.partners.join_partner("bob", inviter_code=inviter.partner_code)

    assert await program.points.get_user_points(inviter_id) == 600
    assert await program.points.get_user_monthly_points(inviter_id) == 600


@pytest.mark.asyncio
async def test_three_generations(program):
    grand = await program.partners.join_partner("alice")
    parent = await program.partners.join_partner("bob", inviter_code=grand.partner_code)
    child = await program.partners.join_partner("carol", inviter_code=parent.partner_code)

    level_one = await program.hierarchy.get_downlines(grand.id, 1)
    level_two = await program.hierarchy.get_downlines(grand.id, 2)

    assert [e.child_partner_id for e in level_one.items] == [parent.id]
    assert [e.child_partner_id for e in level_two.items] == [child.id]
    # Only direct invites are rewarded
    assert await program.points.get_user_points(grand.id) == 600
    assert await program.points.get_user_points(parent.id) == 600
    assert await program.points.get_user_points(child.id) == 300


@pytest.mark.asyncio
async def test_game_action_and_review(program):
    partner = await program.partners.join_partner("alice")
    partner_id = partner.id

    outcome = await program.task_engine.process_notified_action_event(
        GameActionEvent(
            task_code="FIRST_RECHARGE",
            partner_id=partner_id,
            partner_code=partner.partner_code,
            uid=partner.uid,
            timestamp=1700000000000,
            business_params={"amount": 30},
        )
    )
    assert outcome.is_recorded

    await program.task_engine.process_reviewed_task_event(
        ExternalTaskApprovedEvent(
            submission_id="sub-9",
            partner_id=partner_id,
            uid="alice",
            task_type="SHARE_POST",
            points_reward=45,
            timestamp=1700000000001,
        )
    )

    assert await program.points.get_user_points(partner_id) == 300 + 500 + 45
    details = await program.points.get_user_points_detail(partner_id)
    assert {d.task_code for d in details} == {
        "REGISTER_V1",
        "FIRST_RECHARGE",
        "EXTERNAL_TASK_V1",
    }
