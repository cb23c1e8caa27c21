"""
AdminOperationLog repository.

Data access layer for admin audit records.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.admin_operation_log import AdminOperationLog
from app.repositories.base import BaseRepository


class AdminOperationLogRepository(BaseRepository[AdminOperationLog]):
    """Admin operation log repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize admin operation log repository."""
        super().__init__(AdminOperationLog, session)

    async def record(
        self,
        partner_id: int | None,
        operation_type: str,
        admin_id: str,
        reason: str | None,
        before_data: dict[str, Any] | None,
        after_data: dict[str, Any] | None,
    ) -> AdminOperationLog:
        """Write a before/after snapshot of an admin operation."""
        return await self.create(
            partner_id=partner_id,
            operation_type=operation_type,
            admin_id=admin_id,
            reason=reason,
            before_data=before_data,
            after_data=after_data,
        )

    async def get_for_partner(
        self, partner_id: int
    ) -> list[AdminOperationLog]:
        """Get all admin operations on a partner, oldest first."""
        return await self.find_by(partner_id=partner_id)
