"""
TaskCompletionLog repository.

Data access layer for the task completion ledger.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import TaskStatus
from app.models.task_completion_log import TaskCompletionLog
from app.repositories.base import BaseRepository


class TaskCompletionLogRepository(BaseRepository[TaskCompletionLog]):
    """Ledger repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ledger repository."""
        super().__init__(TaskCompletionLog, session)

    async def count_completed(self, task_code: str, partner_id: int) -> int:
        """
        Count completed entries of a task for a partner.

        Args:
            task_code: Task configuration code
            partner_id: Actor partner ID

        Returns:
            Number of completed entries
        """
        return await self.count(
            task_code=task_code,
            partner_id=partner_id,
            status=TaskStatus.COMPLETED.value,
        )

    async def find_by_event(
        self, task_code: str, partner_id: int, event_id: str
    ) -> TaskCompletionLog | None:
        """Look up an entry by its idempotency key."""
        return await self.get_by(
            task_code=task_code,
            partner_id=partner_id,
            event_id=event_id,
        )

    async def find_by_related(
        self, task_code: str, partner_id: int, related_partner_id: int
    ) -> TaskCompletionLog | None:
        """Look up an entry rewarding partner for a specific related partner."""
        return await self.get_by(
            task_code=task_code,
            partner_id=partner_id,
            related_partner_id=related_partner_id,
        )

    async def get_completed_for_partner(
        self,
        partner_id: int,
        since: datetime | None = None,
        newest_first: bool = False,
    ) -> list[TaskCompletionLog]:
        """
        Get completed entries of a partner.

        Args:
            partner_id: Actor partner ID
            since: Only entries created at or after this time
            newest_first: Sort by created_at descending

        Returns:
            List of ledger entries
        """
        stmt = select(TaskCompletionLog).where(
            TaskCompletionLog.partner_id == partner_id,
            TaskCompletionLog.status == TaskStatus.COMPLETED.value,
        )
        if since is not None:
            stmt = stmt.where(TaskCompletionLog.created_at >= since)

        if newest_first:
            stmt = stmt.order_by(
                TaskCompletionLog.created_at.desc(),
                TaskCompletionLog.id.desc(),
            )
        else:
            stmt = stmt.order_by(
                TaskCompletionLog.created_at.asc(),
                TaskCompletionLog.id.asc(),
            )

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_task_counts(self, partner_id: int) -> dict[str, int]:
        """
        Get completed entry counts per task code in a single query.

        Args:
            partner_id: Actor partner ID

        Returns:
            Dict mapping task code to count
        """
        stmt = (
            select(
                TaskCompletionLog.task_code,
                func.count(TaskCompletionLog.id).label("count"),
            )
            .where(
                TaskCompletionLog.partner_id == partner_id,
                TaskCompletionLog.status == TaskStatus.COMPLETED.value,
            )
            .group_by(TaskCompletionLog.task_code)
        )
        result = await self.session.execute(stmt)
        return {row.task_code: row.count for row in result.all()}

    async def get_related_partner_ids(
        self, task_code: str, partner_id: int
    ) -> set[int]:
        """Get related partners of a partner's completed entries of a task."""
        stmt = select(TaskCompletionLog.related_partner_id).where(
            TaskCompletionLog.task_code == task_code,
            TaskCompletionLog.partner_id == partner_id,
            TaskCompletionLog.status == TaskStatus.COMPLETED.value,
            TaskCompletionLog.related_partner_id.is_not(None),
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def get_page_for_partner(
        self, partner_id: int, offset: int = 0, limit: int = 20
    ) -> tuple[list[TaskCompletionLog], int]:
        """
        Get a page of a partner's entries of any status, newest first.

        Returns:
            Tuple of (entries, total_count)
        """
        total = await self.count(partner_id=partner_id)

        stmt = (
            select(TaskCompletionLog)
            .where(TaskCompletionLog.partner_id == partner_id)
            .order_by(
                TaskCompletionLog.created_at.desc(),
                TaskCompletionLog.id.desc(),
            )
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total
