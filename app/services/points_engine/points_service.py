"""
Points service.

Read side of the points engine. Every figure is derived from the ledger
through the point rules and served through the shared PointsCache.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.task_completion_log import TaskCompletionLog
from app.repositories.task_completion_log_repository import (
    TaskCompletionLogRepository,
)
from app.services.base_service import BaseService, log_operation
from app.services.points_engine.config import (
    TaskConfigRegistry,
    default_registry,
)
from app.services.points_engine.point_rule import calculate_points
from app.services.points_engine.points_cache import PointsCache
from app.utils.datetime_utils import month_key, month_start, previous_month_key

TASK_LOG_MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PointsDetailItem:
    """Points earned by one ledger entry."""

    task_code: str
    task_type: str
    points: int
    business_params: dict[str, Any] | None
    created_at: datetime


@dataclass(frozen=True)
class TaskLogItem:
    """Ledger entry of any status with the points it is worth."""

    id: int
    task_code: str
    task_type: str
    points: int
    status: str
    related_partner_id: int | None
    related_uid: str | None
    business_params: dict[str, Any] | None
    created_at: datetime


@dataclass(frozen=True)
class TaskLogPage:
    """One page of ledger entries."""

    items: list[TaskLogItem]
    total: int
    page: int
    page_size: int


class PointsService(BaseService):
    """
    Points aggregation service.

    Reads are cache-through: a miss recomputes from the ledger and stores
    the result for the cache TTL, unless the partner was invalidated while
    the ledger was being read.
    """

    def __init__(
        self,
        session: AsyncSession,
        points_cache: PointsCache,
        registry: TaskConfigRegistry = default_registry,
    ) -> None:
        """
        Initialize points service.

        Args:
            session: Database session
            points_cache: Process-wide points cache
            registry: Task configuration registry
        """
        super().__init__(session)
        self.points_cache = points_cache
        self.registry = registry
        self.ledger = TaskCompletionLogRepository(session)

    def _entry_points(self, entry: TaskCompletionLog) -> int:
        config = self.registry.get_by_code(entry.task_code)
        if config is None:
            self.logger.warning(
                f"Unknown task code in ledger: {entry.task_code}",
                extra={"ledger_entry_id": entry.id, "partner_id": entry.partner_id},
            )
            return 0
        return calculate_points(config.point_rule, entry.business_params)

    async def get_user_points(self, partner_id: int) -> int:
        """
        Get total points of a partner.

        Args:
            partner_id: Partner ID

        Returns:
            Sum of points over all completed entries
        """
        cached = self.points_cache.get_total_points(partner_id)
        if cached is not None:
            return cached

        generation = self.points_cache.generation(partner_id)
        entries = await self.ledger.get_completed_for_partner(partner_id)
        total = sum(self._entry_points(entry) for entry in entries)
        self.points_cache.set_total_points(partner_id, total, generation=generation)
        return total

    async def get_user_points_detail(
        self, partner_id: int
    ) -> list[PointsDetailItem]:
        """
        Get per-entry points of a partner, newest first.

        Args:
            partner_id: Partner ID

        Returns:
            List of detail items
        """
        cached = self.points_cache.get_points_detail(partner_id)
        if cached is not None:
            return cached

        generation = self.points_cache.generation(partner_id)
        entries = await self.ledger.get_completed_for_partner(
            partner_id, newest_first=True
        )
        details = [
            PointsDetailItem(
                task_code=entry.task_code,
                task_type=entry.task_type,
                points=self._entry_points(entry),
                business_params=entry.business_params,
                created_at=entry.created_at,
            )
            for entry in entries
        ]
        self.points_cache.set_points_detail(partner_id, details, generation=generation)
        return list(details)

    async def get_user_monthly_points(self, partner_id: int) -> int:
        """
        Get points earned in the current UTC month.

        Only positive amounts count as earned.
        """
        cached = self.points_cache.get_monthly_points(partner_id)
        if cached is not None:
            return cached

        generation = self.points_cache.generation(partner_id)
        entries = await self.ledger.get_completed_for_partner(
            partner_id, since=month_start()
        )
        monthly = sum(
            points
            for points in (self._entry_points(entry) for entry in entries)
            if points > 0
        )
        self.points_cache.set_monthly_points(partner_id, monthly, generation=generation)
        return monthly

    @log_operation
    async def get_monthly_summary(self, partner_id: int) -> dict[str, Any]:
        """
        Get earned/spent points per month.

        Not cached; meant for the partner statistics page.

        Args:
            partner_id: Partner ID

        Returns:
            Dict with current_month, last_month and history (newest month
            first), each month as {"month", "earned", "spent"}
        """
        earned: dict[str, int] = defaultdict(int)
        spent: dict[str, int] = defaultdict(int)

        entries = await self.ledger.get_completed_for_partner(partner_id)
        for entry in entries:
            points = self._entry_points(entry)
            key = month_key(entry.created_at)
            if points >= 0:
                earned[key] += points
            else:
                spent[key] += -points

        def month_row(key: str) -> dict[str, Any]:
            return {"month": key, "earned": earned[key], "spent": spent[key]}

        months = sorted(set(earned) | set(spent), reverse=True)
        return {
            "current_month": month_row(month_key()),
            "last_month": month_row(previous_month_key()),
            "history": [month_row(key) for key in months],
        }

    async def get_partner_task_logs(
        self, partner_id: int, page: int = 1, page_size: int = 20
    ) -> TaskLogPage:
        """
        Get a page of a partner's ledger entries, newest first.

        Not cached. page is at least 1, page_size is clamped to
        [1, TASK_LOG_MAX_PAGE_SIZE].

        Args:
            partner_id: Partner ID
            page: Page number, starting at 1
            page_size: Items per page

        Returns:
            Task log page
        """
        page = max(page, 1)
        page_size = min(max(page_size, 1), TASK_LOG_MAX_PAGE_SIZE)

        entries, total = await self.ledger.get_page_for_partner(
            partner_id, offset=(page - 1) * page_size, limit=page_size
        )
        items = [
            TaskLogItem(
                id=entry.id,
                task_code=entry.task_code,
                task_type=entry.task_type,
                points=self._entry_points(entry),
                status=entry.status,
                related_partner_id=entry.related_partner_id,
                related_uid=entry.related_uid,
                business_params=entry.business_params,
                created_at=entry.created_at,
            )
            for entry in entries
        ]
        return TaskLogPage(
            items=items, total=total, page=page, page_size=page_size
        )

    def invalidate_user_cache(self, partner_id: int) -> None:
        """Drop cached aggregates of one partner."""
        self.points_cache.invalidate(partner_id)

    def refresh_all_cache(self) -> None:
        """Drop every cached aggregate; values are rebuilt on next read."""
        self.points_cache.flush_all()

    def get_cache_stats(self) -> dict[str, dict[str, Any]]:
        """Get size and hit rate of each cache store."""
        return self.points_cache.get_stats()
