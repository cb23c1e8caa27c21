"""
Integration tests for TaskEngine on SQLite.

Tests cover:
- Ledger writes and idempotency
- Completion limits and invite uniqueness
- Game action and reviewed task entry points
- Per-config failure isolation
- Cache invalidation of the actor
"""

from dataclasses import dataclass
from typing import ClassVar
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.models.enums import PointRuleType, TaskType
from app.repositories.task_completion_log_repository import (
    TaskCompletionLogRepository,
)
from app.services.points_engine.config import (
    EventType,
    PointRule,
    TaskConfig,
    TaskConfigRegistry,
)
from app.services.points_engine.events import (
    ExternalTaskApprovedEvent,
    GameActionEvent,
    RegisterDownlineL1Event,
    RegisterSelfEvent,
)
from app.services.points_engine.handlers import TASK_HANDLERS
from app.services.points_engine.task_engine import ProcessStatus, TaskEngine
from app.utils.exceptions import TaskValidationFailedError


@pytest.fixture
def engine(db_session, points_cache):
    return TaskEngine(db_session, points_cache)


@pytest.fixture
def ledger(db_session):
    return TaskCompletionLogRepository(db_session)


@dataclass(frozen=True)
class CustomEvent:
    """Event with a trigger type unknown to the default table."""

    event_type: ClassVar[str] = "custom.event"

    partner_id: int
    partner_code: str
    uid: str
    timestamp: int

    def event_id(self) -> str:
        return f"{self.partner_id}_{self.timestamp}"


def _register(partner, timestamp=1700000000000):
    return RegisterSelfEvent(
        partner_id=partner.id,
        partner_code=partner.partner_code,
        uid=partner.uid,
        timestamp=timestamp,
    )


def _invite(inviter, downline, timestamp=1700000000000):
    return RegisterDownlineL1Event(
        partner_id=inviter.id,
        partner_code=inviter.partner_code,
        uid=inviter.uid,
        downline_partner_id=downline.id,
        downline_partner_code=downline.partner_code,
        downline_uid=downline.uid,
        timestamp=timestamp,
    )


def _approval(partner_id, submission_id="sub-1", points_reward=100, timestamp=1):
    return ExternalTaskApprovedEvent(
        submission_id=submission_id,
        partner_id=partner_id,
        uid=f"user-{partner_id}",
        task_type="SHARE_POST",
        points_reward=points_reward,
        timestamp=timestamp,
    )


class TestProcessEvent:
    """Test process_event."""

    @pytest.mark.asyncio
    async def test_register_writes_entry(self, engine, ledger, make_partner):
        partner = await make_partner()

        outcomes = await engine.process_event(_register(partner))

        assert len(outcomes) == 1
        assert outcomes[0].task_code == "REGISTER_V1"
        assert outcomes[0].status == ProcessStatus.COMPLETED
        entry = await ledger.get_by_id(outcomes[0].ledger_entry_id)
        assert entry.partner_id == partner.id
        assert entry.event_type == EventType.REGISTER_SELF
        assert entry.event_id == f"{partner.id}_1700000000000"
        assert entry.status == "completed"

    @pytest.mark.asyncio
    async def test_redelivered_event_writes_once(self, engine, ledger, make_partner):
        partner = await make_partner()
        event = _register(partner)

        await engine.process_event(event)
        second = await engine.process_event(event)

        assert second[0].status in (ProcessStatus.DUPLICATE, ProcessStatus.REJECTED)
        assert await ledger.count_completed("REGISTER_V1", partner.id) == 1

    @pytest.mark.asyncio
    async def test_limit_rejects_distinct_event(self, engine, ledger, make_partner):
        partner = await make_partner()

        await engine.process_event(_register(partner, timestamp=1))
        outcomes = await engine.process_event(_register(partner, timestamp=2))

        assert outcomes[0].status == ProcessStatus.REJECTED
        assert "limit" in outcomes[0].reason
        assert await ledger.count_completed("REGISTER_V1", partner.id) == 1

    @pytest.mark.asyncio
    async def test_invite_rewards_inviter_once_per_downline(self, engine, ledger, make_partner):
        inviter = await make_partner()
        downline = await make_partner()

        first = await engine.process_event(_invite(inviter, downline, timestamp=1))
        second = await engine.process_event(_invite(inviter, downline, timestamp=2))

        assert first[0].status == ProcessStatus.COMPLETED
        assert second[0].status == ProcessStatus.REJECTED
        entry = await ledger.get_by_id(first[0].ledger_entry_id)
        assert entry.partner_id == inviter.id
        assert entry.related_partner_id == downline.id

    @pytest.mark.asyncio
    async def test_unconfigured_event_ignored(self, engine, make_partner):
        partner = await make_partner()
        event = GameActionEvent(
            task_code="NOT_A_TASK",
            partner_id=partner.id,
            partner_code=partner.partner_code,
            uid=partner.uid,
            timestamp=1,
        )

        assert await engine.process_event(event) == []

    @pytest.mark.asyncio
    async def test_actor_cache_invalidated(self, engine, points_cache, make_partner):
        inviter = await make_partner()
        downline = await make_partner()
        points_cache.set_total_points(inviter.id, 999)
        points_cache.set_total_points(downline.id, 111)

        await engine.process_event(_invite(inviter, downline))

        assert points_cache.get_total_points(inviter.id) is None
        assert points_cache.get_total_points(downline.id) == 111

    @pytest.mark.asyncio
    async def test_failing_config_isolated(self, db_session, points_cache, ledger, make_partner):
        registry = TaskConfigRegistry([
            TaskConfig(
                task_code="BROKEN",
                task_type=TaskType.GAME_ACTION,
                trigger_event_type="custom.event",
                point_rule=PointRule(type=PointRuleType.FIXED, value=1),
            ),
            TaskConfig(
                task_code="WORKING",
                task_type=TaskType.REGISTER,
                trigger_event_type="custom.event",
                point_rule=PointRule(type=PointRuleType.FIXED, value=1),
            ),
        ])

        async def broken_handler(ledger, event, config):
            raise RuntimeError("handler crashed")

        handlers = dict(TASK_HANDLERS)
        handlers[TaskType.GAME_ACTION] = broken_handler
        engine = TaskEngine(db_session, points_cache, registry, handlers)

        partner = await make_partner()
        partner_id = partner.id
        event = CustomEvent(partner_id=partner_id, partner_code="LP1", uid="user-1", timestamp=1)

        outcomes = await engine.process_event(event)

        assert [(o.task_code, o.status) for o in outcomes] == [
            ("BROKEN", ProcessStatus.FAILED),
            ("WORKING", ProcessStatus.COMPLETED),
        ]
        assert "handler crashed" in outcomes[0].reason
        assert await ledger.count_completed("WORKING", partner_id) == 1

    @pytest.mark.asyncio
    async def test_missing_handler_rejected(self, db_session, points_cache, make_partner):
        engine = TaskEngine(db_session, points_cache, handlers={})
        partner = await make_partner()

        outcomes = await engine.process_event(_register(partner))

        assert outcomes[0].status == ProcessStatus.REJECTED


class TestNotifiedAction:
    """Test process_notified_action_event."""

    def _action(self, partner, task_code, timestamp=1):
        return GameActionEvent(
            task_code=task_code,
            partner_id=partner.id,
            partner_code=partner.partner_code,
            uid=partner.uid,
            timestamp=timestamp,
            business_params={"level": 10},
        )

    @pytest.mark.asyncio
    async def test_only_matching_task_processed(self, engine, ledger, make_partner):
        partner = await make_partner()

        outcome = await engine.process_notified_action_event(
            self._action(partner, "GAME_LEVEL_UP_10")
        )

        assert outcome.task_code == "GAME_LEVEL_UP_10"
        assert outcome.status == ProcessStatus.COMPLETED
        counts = await ledger.get_task_counts(partner.id)
        assert counts == {"GAME_LEVEL_UP_10": 1}

    @pytest.mark.asyncio
    async def test_second_completion_rejected(self, engine, make_partner):
        partner = await make_partner()

        await engine.process_notified_action_event(self._action(partner, "FIRST_RECHARGE", 1))
        outcome = await engine.process_notified_action_event(
            self._action(partner, "FIRST_RECHARGE", 2)
        )

        assert outcome.status == ProcessStatus.REJECTED

    @pytest.mark.asyncio
    async def test_unknown_task_code_raises(self, engine, make_partner):
        partner = await make_partner()

        with pytest.raises(TaskValidationFailedError):
            await engine.process_notified_action_event(self._action(partner, "FLY_TO_MOON"))

    @pytest.mark.asyncio
    async def test_storage_error_raised_to_caller(self, engine, ledger, make_partner):
        partner_id = (await make_partner()).id
        action = GameActionEvent(
            task_code="FIRST_RECHARGE",
            partner_id=partner_id,
            partner_code="LP100001",
            uid="user-1",
            timestamp=1,
        )
        error = OperationalError("SELECT count(*)", {}, Exception("database is locked"))

        with patch.object(
            engine.ledger, "count_completed", AsyncMock(side_effect=error)
        ):
            with pytest.raises(OperationalError):
                await engine.process_notified_action_event(action)

        assert await ledger.count_completed("FIRST_RECHARGE", partner_id) == 0


class TestReviewedTask:
    """Test process_reviewed_task_event."""

    @pytest.mark.asyncio
    async def test_returns_ledger_id(self, engine, ledger, make_partner):
        partner_id = (await make_partner()).id

        entry_id = await engine.process_reviewed_task_event(_approval(partner_id))

        entry = await ledger.get_by_id(entry_id)
        assert entry.task_code == "EXTERNAL_TASK_V1"
        assert entry.event_id == "external_sub-1_1"
        assert entry.business_params["points_reward"] == 100

    @pytest.mark.asyncio
    async def test_repeated_approval_returns_same_entry(self, engine, ledger, make_partner):
        partner_id = (await make_partner()).id

        first = await engine.process_reviewed_task_event(_approval(partner_id))
        second = await engine.process_reviewed_task_event(_approval(partner_id))

        assert first == second
        assert await ledger.count_completed("EXTERNAL_TASK_V1", partner_id) == 1

    @pytest.mark.asyncio
    async def test_duplicate_outcome(self, engine, make_partner):
        partner_id = (await make_partner()).id
        event = _approval(partner_id)

        first = await engine.process_event(event)
        second = await engine.process_event(event)

        assert second[0].status == ProcessStatus.DUPLICATE
        assert second[0].ledger_entry_id == first[0].ledger_entry_id

    @pytest.mark.asyncio
    async def test_concurrent_insert_reported_as_duplicate(self, engine, make_partner):
        """Unique constraint catches a write the lookup did not see."""
        partner_id = (await make_partner()).id
        event = _approval(partner_id)
        first_id = await engine.process_reviewed_task_event(event)

        real_lookup = engine.ledger.find_by_event
        calls = []

        async def lookup_missing_once(*args):
            calls.append(args)
            if len(calls) == 1:
                return None
            return await real_lookup(*args)

        engine.ledger.find_by_event = lookup_missing_once

        outcomes = await engine.process_event(event)

        assert outcomes[0].status == ProcessStatus.DUPLICATE
        assert outcomes[0].ledger_entry_id == first_id

    @pytest.mark.asyncio
    async def test_negative_reward_raises(self, engine, make_partner):
        partner_id = (await make_partner()).id

        with pytest.raises(TaskValidationFailedError):
            await engine.process_reviewed_task_event(_approval(partner_id, points_reward=-1))

    @pytest.mark.asyncio
    async def test_no_external_config_raises(self, db_session, points_cache, make_partner):
        engine = TaskEngine(db_session, points_cache, TaskConfigRegistry([]))
        partner_id = (await make_partner()).id

        with pytest.raises(TaskValidationFailedError):
            await engine.process_reviewed_task_event(_approval(partner_id))
