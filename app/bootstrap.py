"""
Application wiring.

One PointsCache per process; one PartnerProgram bundle per database
session. Both default to the environment settings.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings
from app.config.settings import settings as app_settings
from app.services.partner.hierarchy_service import HierarchyService
from app.services.partner.partner_service import PartnerService
from app.services.points_engine.config import (
    TaskConfigRegistry,
    default_registry,
)
from app.services.points_engine.points_cache import PointsCache
from app.services.points_engine.points_service import PointsService
from app.services.points_engine.task_engine import TaskEngine


def build_points_cache(settings: Settings | None = None) -> PointsCache:
    """Create the process-wide points cache from settings."""
    settings = settings or app_settings
    return PointsCache(
        ttl_seconds=settings.points_cache_ttl_seconds,
        max_entries=settings.points_cache_max_entries,
        detail_max_entries=settings.points_detail_cache_max_entries,
    )


@dataclass
class PartnerProgram:
    """Services of the partner program bound to one session."""

    hierarchy: HierarchyService
    task_engine: TaskEngine
    points: PointsService
    partners: PartnerService

    @classmethod
    def create(
        cls,
        session: AsyncSession,
        points_cache: PointsCache,
        settings: Settings | None = None,
        registry: TaskConfigRegistry = default_registry,
    ) -> "PartnerProgram":
        """
        Wire services around one session.

        Args:
            session: Database session shared by all services
            points_cache: Process-wide points cache
            settings: Settings (downline page size limit); environment
                settings when omitted
            registry: Task configuration registry

        Returns:
            Service bundle
        """
        settings = settings or app_settings
        hierarchy = HierarchyService(session, settings.downline_page_size_max)
        task_engine = TaskEngine(session, points_cache, registry)
        return cls(
            hierarchy=hierarchy,
            task_engine=task_engine,
            points=PointsService(session, points_cache, registry),
            partners=PartnerService(session, hierarchy, task_engine),
        )
