"""
Base repository.

Shared async data access for partner program tables. Hierarchy edges,
ledger entries and audit records are history, so rows are never deleted;
repositories only add, read and (for profiles) modify.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository over one mapped class.

    Filters are keyword equality filters (``filter_by``). Writes flush but
    never commit: the owning service decides where the transaction ends.

    Example:
        class PartnerRepository(BaseRepository[PartnerProfile]):
            def __init__(self, session: AsyncSession) -> None:
                super().__init__(PartnerProfile, session)
    """

    def __init__(self, model: type[ModelType], session: AsyncSession) -> None:
        self.model = model
        self.session = session

    def _filtered(self, **filters: Any) -> Select[tuple[ModelType]]:
        return select(self.model).filter_by(**filters)

    async def get_by_id(self, id: int) -> ModelType | None:
        """Get row by primary key (identity map first)."""
        return await self.session.get(self.model, id)

    async def get_by(self, **filters: Any) -> ModelType | None:
        """
        Get one row matching filters.

        Args:
            **filters: Column equality filters

        Returns:
            Lowest-ID match or None
        """
        stmt = self._filtered(**filters).order_by(self.model.id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def find_by(self, **filters: Any) -> list[ModelType]:
        """Get all rows matching filters in insertion (ID) order."""
        stmt = self._filtered(**filters).order_by(self.model.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, **values: Any) -> ModelType:
        """
        Insert a row.

        Flushes so that unique and check constraints fail here, and reloads
        server-side defaults.

        Raises:
            IntegrityError: On constraint violation
        """
        entity = self.model(**values)
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def update(
        self, id: int, for_update: bool = False, **values: Any
    ) -> ModelType | None:
        """
        Set attributes of a row.

        Args:
            id: Primary key
            for_update: Lock the row first (SELECT ... FOR UPDATE)
            **values: Attribute values

        Returns:
            Updated row or None if it does not exist
        """
        if for_update:
            stmt = self._filtered(id=id).with_for_update()
            entity = (await self.session.execute(stmt)).scalar_one_or_none()
        else:
            entity = await self.get_by_id(id)
        if entity is None:
            return None

        for name, value in values.items():
            setattr(entity, name, value)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def count(self, **filters: Any) -> int:
        stmt = select(func.count()).select_from(self.model).filter_by(**filters)
        return (await self.session.execute(stmt)).scalar_one()

    async def exists(self, **filters: Any) -> bool:
        stmt = select(self._filtered(**filters).exists())
        return bool((await self.session.execute(stmt)).scalar())
