"""
Partner service.

Profile lifecycle of the partner program: joining, binding to an inviter,
team name and admin status changes. Joining dispatches the registration
events to the task engine directly.
"""

import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.admin_operation_log import AdminOperationType
from app.models.enums import PartnerStatus
from app.models.partner_hierarchy import PartnerHierarchy
from app.models.partner_profile import PartnerProfile
from app.repositories.admin_operation_log_repository import (
    AdminOperationLogRepository,
)
from app.repositories.hierarchy_repository import HierarchyRepository
from app.repositories.partner_repository import PartnerRepository
from app.repositories.task_completion_log_repository import (
    TaskCompletionLogRepository,
)
from app.services.base_service import BaseService, transaction
from app.services.partner.hierarchy_service import HierarchyService
from app.services.points_engine.events import (
    RegisterDownlineL1Event,
    RegisterSelfEvent,
)
from app.services.points_engine.task_engine import ProcessStatus, TaskEngine
from app.utils.exceptions import (
    DuplicateTeamNameError,
    DuplicateUserIdError,
    InvalidInviterError,
    InvalidPartnerIdError,
    PartnerNotRegisteredError,
    TeamNameImmutableError,
    UplinkImmutableError,
)

PARTNER_CODE_PREFIX = "LP"
PARTNER_CODE_MAX_RETRIES = 10
INVITE_TASK_CODE = "INVITE_V1"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class MissingInvite:
    """Active direct downline without an invite ledger entry."""

    downline_partner_id: int
    downline_partner_code: str
    downline_uid: str
    source_channel_id: str | None
    bound_at: datetime


@dataclass(frozen=True)
class InviteTaskAnalysis:
    """Direct downlines compared with invite rewards of one partner."""

    total_downlines: int
    total_invite_tasks: int
    missing: list[MissingInvite] = field(default_factory=list)


@dataclass(frozen=True)
class InviteFixResult:
    """Result of re-issuing missing invite rewards."""

    fixed: int
    skipped: int
    details: list[dict[str, Any]] = field(default_factory=list)


def _downline_event(
    inviter: PartnerProfile,
    downline: PartnerProfile,
    timestamp: int,
    source_channel_id: str | None,
) -> RegisterDownlineL1Event:
    return RegisterDownlineL1Event(
        partner_id=inviter.id,
        partner_code=inviter.partner_code,
        uid=inviter.uid,
        downline_partner_id=downline.id,
        downline_partner_code=downline.partner_code,
        downline_uid=downline.uid,
        timestamp=timestamp,
        source_channel_id=source_channel_id,
    )


class PartnerService(BaseService):
    """Partner profile service."""

    def __init__(
        self,
        session: AsyncSession,
        hierarchy_service: HierarchyService,
        task_engine: TaskEngine,
    ) -> None:
        """
        Initialize partner service.

        Args:
            session: Database session (shared with the collaborators)
            hierarchy_service: Hierarchy service
            task_engine: Task engine receiving registration events
        """
        super().__init__(session)
        self.hierarchy_service = hierarchy_service
        self.task_engine = task_engine
        self.partner_repo = PartnerRepository(session)
        self.hierarchy_repo = HierarchyRepository(session)
        self.admin_log_repo = AdminOperationLogRepository(session)
        self.ledger = TaskCompletionLogRepository(session)

    async def generate_partner_code(self) -> str:
        """
        Generate an unused partner code (LP + 6 digits).

        Falls back to the last 6 digits of the current time in ms after
        PARTNER_CODE_MAX_RETRIES collisions.
        """
        for _ in range(PARTNER_CODE_MAX_RETRIES):
            code = f"{PARTNER_CODE_PREFIX}{random.randint(100000, 999999)}"
            if not await self.partner_repo.code_exists(code):
                return code

        self.logger.warning("Partner code retries exhausted, using timestamp")
        return f"{PARTNER_CODE_PREFIX}{str(_now_ms())[-6:]}"

    async def get_profile(self, partner_id: int) -> PartnerProfile:
        """
        Get profile by partner ID.

        Raises:
            InvalidPartnerIdError: If partner does not exist
        """
        profile = await self.partner_repo.get_by_id(partner_id)
        if profile is None:
            raise InvalidPartnerIdError(partner_id)
        return profile

    async def get_profile_by_uid(self, uid: str) -> PartnerProfile | None:
        """Get profile by external user ID."""
        return await self.partner_repo.get_by_uid(uid)

    async def _require_registered(self, uid: str) -> PartnerProfile:
        profile = await self.partner_repo.get_by_uid(uid)
        if profile is None:
            raise PartnerNotRegisteredError(uid)
        return profile

    async def _validate_inviter(self, inviter_code: str) -> PartnerProfile:
        inviter = await self.partner_repo.get_by_code(inviter_code)
        if inviter is None or not inviter.is_active:
            raise InvalidInviterError(inviter_code)
        return inviter

    async def join_partner(
        self,
        uid: str,
        inviter_code: str | None = None,
        team_name: str | None = None,
        username: str | None = None,
        register_time: int | None = None,
        source_channel_id: str | None = None,
    ) -> PartnerProfile:
        """
        Join the partner program.

        Idempotent per uid: an existing profile is returned as is, except
        that a profile without an upline gets bound to the inviter (the
        inviter is rewarded, the registration reward is not repeated).

        Args:
            uid: External user ID
            inviter_code: Partner code of the inviter
            team_name: Initial team name
            username: Display name
            register_time: User registration time in epoch ms (default now)
            source_channel_id: Channel the invitation came through

        Returns:
            Partner profile

        Raises:
            InvalidInviterError: If inviter is unknown or frozen
            DuplicateTeamNameError: If team name is taken
            DuplicateUserIdError: If a concurrent join created the profile
        """
        register_time = register_time or _now_ms()

        existing = await self.partner_repo.get_by_uid(uid)
        if existing is not None:
            existing_id = existing.id
            if inviter_code and await self.hierarchy_service.get_uplink(existing_id) is None:
                inviter = await self._validate_inviter(inviter_code)
                event = _downline_event(
                    inviter, existing, register_time, source_channel_id
                )
                await self.hierarchy_service.create_relationship(
                    event.partner_id, existing_id, source_channel_id
                )
                await self.task_engine.process_event(event)
                self.logger.info(
                    "Existing partner bound to inviter",
                    extra={"partner_id": existing_id, "inviter_id": event.partner_id},
                )
            return await self.get_profile(existing_id)

        team_name = team_name.strip() if team_name else None
        if team_name and await self.partner_repo.get_by_team_name(team_name):
            raise DuplicateTeamNameError(team_name)

        inviter = await self._validate_inviter(inviter_code) if inviter_code else None

        try:
            profile = await self.partner_repo.create(
                partner_code=await self.generate_partner_code(),
                uid=uid,
                username=username,
                team_name=team_name,
                status=PartnerStatus.ACTIVE.value,
            )
            await self.commit()
        except IntegrityError as e:
            await self.rollback()
            raise DuplicateUserIdError(uid) from e

        # Built up front: a failed task write rolls back and expires both rows
        partner_id = profile.id
        self_event = RegisterSelfEvent(
            partner_id=profile.id,
            partner_code=profile.partner_code,
            uid=profile.uid,
            timestamp=register_time,
        )
        downline_event = (
            _downline_event(inviter, profile, register_time, source_channel_id)
            if inviter is not None
            else None
        )

        await self.task_engine.process_event(self_event)

        if downline_event is not None:
            await self.hierarchy_service.create_relationship(
                downline_event.partner_id, partner_id, source_channel_id
            )
            await self.task_engine.process_event(downline_event)

        self.logger.info(
            f"Partner joined: {self_event.partner_code}",
            extra={
                "partner_id": partner_id,
                "uid": uid,
                "inviter_id": downline_event.partner_id if downline_event else None,
            },
        )
        return await self.get_profile(partner_id)

    async def set_uplink(
        self,
        uid: str,
        inviter_code: str,
        source_channel_id: str | None = None,
    ) -> PartnerHierarchy:
        """
        Bind a registered partner to an inviter.

        No invite reward is dispatched; rewards come with join_partner.

        Raises:
            PartnerNotRegisteredError: If uid has no profile
            UplinkImmutableError: If the partner already has an upline
            InvalidInviterError: If inviter is unknown or frozen
        """
        profile = await self._require_registered(uid)
        partner_id = profile.id

        if await self.hierarchy_service.get_uplink(partner_id) is not None:
            raise UplinkImmutableError(partner_id)

        inviter = await self._validate_inviter(inviter_code)
        return await self.hierarchy_service.create_relationship(
            inviter.id, partner_id, source_channel_id
        )

    @transaction
    async def update_team_name(self, uid: str, team_name: str) -> PartnerProfile:
        """
        Set the team name once.

        Raises:
            PartnerNotRegisteredError: If uid has no profile
            TeamNameImmutableError: If a team name is already set
            DuplicateTeamNameError: If the name is taken
            ValueError: If the name is blank
        """
        profile = await self._require_registered(uid)
        if profile.team_name and profile.team_name.strip():
            raise TeamNameImmutableError(profile.id)

        name = team_name.strip()
        if not name:
            raise ValueError("Team name must not be blank")

        if await self.partner_repo.get_by_team_name(name):
            raise DuplicateTeamNameError(name)

        profile.team_name = name
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicateTeamNameError(name) from e

        self.logger.info(
            "Team name set",
            extra={"partner_id": profile.id, "team_name": name},
        )
        return profile

    async def _change_profile(
        self,
        partner_id: int,
        operation_type: str,
        admin_id: str,
        reason: str | None,
        **changes: Any,
    ) -> PartnerProfile:
        """Apply admin changes to a profile and log before/after."""
        profile = await self.get_profile(partner_id)
        before = {field: getattr(profile, field) for field in changes}
        profile = await self.partner_repo.update(
            partner_id, for_update=True, **changes
        )

        await self.admin_log_repo.record(
            partner_id=partner_id,
            operation_type=operation_type,
            admin_id=admin_id,
            reason=reason,
            before_data=before,
            after_data=dict(changes),
        )
        self.logger.info(
            f"Admin operation {operation_type} on partner {partner_id}",
            extra={"partner_id": partner_id, "admin_id": admin_id, "reason": reason},
        )
        return profile

    @transaction
    async def freeze_partner(
        self, partner_id: int, admin_id: str, reason: str | None = None
    ) -> PartnerProfile:
        """Freeze a partner; frozen partners cannot invite."""
        return await self._change_profile(
            partner_id,
            AdminOperationType.FREEZE,
            admin_id,
            reason,
            status=PartnerStatus.FROZEN.value,
        )

    @transaction
    async def unfreeze_partner(
        self, partner_id: int, admin_id: str, reason: str | None = None
    ) -> PartnerProfile:
        return await self._change_profile(
            partner_id,
            AdminOperationType.UNFREEZE,
            admin_id,
            reason,
            status=PartnerStatus.ACTIVE.value,
        )

    @transaction
    async def update_remark(
        self, partner_id: int, remark: str | None, admin_id: str
    ) -> PartnerProfile:
        return await self._change_profile(
            partner_id,
            AdminOperationType.UPDATE_REMARK,
            admin_id,
            None,
            remark=remark,
        )

    async def analyze_invite_tasks(self, partner_id: int) -> InviteTaskAnalysis:
        """
        Compare a partner's active direct downlines with invite rewards.

        Args:
            partner_id: Inviter partner ID

        Returns:
            Analysis listing downlines that were never rewarded, oldest
            bind first
        """
        downlines = await self.hierarchy_repo.get_direct_downline_profiles(
            partner_id
        )
        task_counts = await self.ledger.get_task_counts(partner_id)
        rewarded = await self.ledger.get_related_partner_ids(
            INVITE_TASK_CODE, partner_id
        )

        missing = [
            MissingInvite(
                downline_partner_id=profile.id,
                downline_partner_code=profile.partner_code,
                downline_uid=profile.uid,
                source_channel_id=edge.source_channel_id,
                bound_at=edge.bind_time,
            )
            for edge, profile in downlines
            if profile.id not in rewarded
        ]
        analysis = InviteTaskAnalysis(
            total_downlines=len(downlines),
            total_invite_tasks=task_counts.get(INVITE_TASK_CODE, 0),
            missing=missing,
        )
        self.logger.info(
            f"Invite task analysis for partner {partner_id}",
            extra={
                "partner_id": partner_id,
                "total_downlines": analysis.total_downlines,
                "total_invite_tasks": analysis.total_invite_tasks,
                "missing": len(missing),
            },
        )
        return analysis

    async def fix_missing_invite_tasks(
        self, partner_id: int, admin_id: str
    ) -> InviteFixResult:
        """
        Issue invite rewards for direct downlines that never got one.

        Each missing reward goes through the task engine as a downline
        registration event, so the invite limit and the one reward per
        downline rule still apply. Downlines past the limit are skipped.

        Args:
            partner_id: Inviter partner ID
            admin_id: Operator ID

        Returns:
            Counts and per-downline details

        Raises:
            InvalidPartnerIdError: If partner does not exist
        """
        inviter = await self.get_profile(partner_id)
        inviter_code, inviter_uid = inviter.partner_code, inviter.uid

        analysis = await self.analyze_invite_tasks(partner_id)
        if not analysis.missing:
            return InviteFixResult(fixed=0, skipped=0)

        details: list[dict[str, Any]] = []
        for missing in analysis.missing:
            event = RegisterDownlineL1Event(
                partner_id=partner_id,
                partner_code=inviter_code,
                uid=inviter_uid,
                downline_partner_id=missing.downline_partner_id,
                downline_partner_code=missing.downline_partner_code,
                downline_uid=missing.downline_uid,
                timestamp=int(missing.bound_at.timestamp() * 1000),
                source_channel_id=missing.source_channel_id,
            )
            outcomes = await self.task_engine.process_event(event)
            outcome = next(
                (o for o in outcomes if o.task_code == INVITE_TASK_CODE), None
            )

            detail: dict[str, Any] = {
                "downline_partner_id": missing.downline_partner_id,
                "downline_partner_code": missing.downline_partner_code,
            }
            if outcome is None:
                detail.update(status="skipped", reason="invite task disabled")
            elif outcome.status == ProcessStatus.COMPLETED:
                detail["status"] = "fixed"
            else:
                detail.update(
                    status="skipped", reason=outcome.reason or outcome.status.value
                )
            details.append(detail)

        fixed = sum(1 for detail in details if detail["status"] == "fixed")
        result = InviteFixResult(
            fixed=fixed, skipped=len(details) - fixed, details=details
        )

        await self.admin_log_repo.record(
            partner_id=partner_id,
            operation_type=AdminOperationType.FIX_INVITE_TASKS,
            admin_id=admin_id,
            reason="Re-issue missing invite rewards",
            before_data={
                "total_downlines": analysis.total_downlines,
                "total_invite_tasks": analysis.total_invite_tasks,
                "missing_count": len(analysis.missing),
            },
            after_data={
                "fixed": result.fixed,
                "skipped": result.skipped,
                "details": details,
            },
        )
        await self.commit()

        self.logger.info(
            f"Invite tasks fixed for partner {partner_id}",
            extra={
                "partner_id": partner_id,
                "admin_id": admin_id,
                "fixed": result.fixed,
                "skipped": result.skipped,
            },
        )
        return result
