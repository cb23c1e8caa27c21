"""
Task engine.

Turns domain events into task completion ledger entries.

Per config an event goes through:
resolve config -> handler validation -> idempotency check -> ledger write
-> cache invalidation. Configs sharing one trigger are processed
independently; a failure in one does not stop the others.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import TaskStatus, TaskType
from app.repositories.task_completion_log_repository import (
    TaskCompletionLogRepository,
)
from app.services.base_service import BaseService
from app.services.points_engine.config import (
    EventType,
    TaskConfig,
    TaskConfigRegistry,
    default_registry,
)
from app.services.points_engine.events import (
    ExternalTaskApprovedEvent,
    GameActionEvent,
    TaskEvent,
)
from app.services.points_engine.handlers import TASK_HANDLERS, TaskHandler
from app.services.points_engine.point_rule import calculate_points
from app.services.points_engine.points_cache import PointsCache
from app.utils.exceptions import TaskValidationFailedError


class ProcessStatus(StrEnum):
    """Result of processing one event against one task config."""

    COMPLETED = "COMPLETED"
    DUPLICATE = "DUPLICATE"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class TaskOutcome:
    """Outcome for one task config."""

    task_code: str
    status: ProcessStatus
    ledger_entry_id: int | None = None
    reason: str | None = None

    @property
    def is_recorded(self) -> bool:
        """Ledger holds an entry for this event (new or earlier)."""
        return self.status in (ProcessStatus.COMPLETED, ProcessStatus.DUPLICATE)


class TaskEngine(BaseService):
    """
    Event processor for the task ledger.

    Only this class writes TaskCompletionLog rows. Every successful write
    is committed on its own and followed by invalidation of the actor's
    cached points.
    """

    def __init__(
        self,
        session: AsyncSession,
        points_cache: PointsCache,
        registry: TaskConfigRegistry = default_registry,
        handlers: Mapping[TaskType, TaskHandler] = TASK_HANDLERS,
    ) -> None:
        """
        Initialize task engine.

        Args:
            session: Database session
            points_cache: Process-wide points cache
            registry: Task configuration registry
            handlers: Task type -> handler dispatch table
        """
        super().__init__(session)
        self.points_cache = points_cache
        self.registry = registry
        self.handlers = handlers
        self.ledger = TaskCompletionLogRepository(session)

    def _resolve_configs(self, event: TaskEvent) -> list[TaskConfig]:
        configs = self.registry.get_enabled_by_event_type(event.event_type)
        if isinstance(event, GameActionEvent):
            # Every game action shares one trigger; the task code selects
            configs = [c for c in configs if c.task_code == event.task_code]
        return configs

    async def process_event(self, event: TaskEvent) -> list[TaskOutcome]:
        """
        Process an event against every matching enabled task config.

        Args:
            event: Domain event

        Returns:
            One outcome per matching config; empty if nothing matches
        """
        configs = self._resolve_configs(event)
        if not configs:
            self.logger.debug(
                f"No task configured for event {event.event_type}",
                extra={"event_type": event.event_type},
            )
            return []

        outcomes = []
        for config in configs:
            try:
                outcome = await self._process_task(event, config)
            except Exception as e:
                await self.rollback()
                self.logger.error(
                    f"Task processing failed: {config.task_code}",
                    extra={
                        "task_code": config.task_code,
                        "event_type": event.event_type,
                        "event_id": event.event_id(),
                        "error": str(e),
                    },
                    exc_info=True,
                )
                outcome = TaskOutcome(
                    task_code=config.task_code,
                    status=ProcessStatus.FAILED,
                    reason=str(e),
                )
            outcomes.append(outcome)

        return outcomes

    async def _process_task(
        self, event: TaskEvent, config: TaskConfig
    ) -> TaskOutcome:
        """Run one config; storage errors other than duplicates propagate."""
        handler = self.handlers.get(config.task_type)
        if handler is None:
            self.logger.warning(
                f"No handler for task type {config.task_type}",
                extra={"task_code": config.task_code},
            )
            return TaskOutcome(
                task_code=config.task_code,
                status=ProcessStatus.REJECTED,
                reason=f"No handler for task type {config.task_type}",
            )

        result = await handler(self.ledger, event, config)
        if not result.is_valid:
            self.logger.info(
                f"Task rejected: {config.task_code}",
                extra={
                    "task_code": config.task_code,
                    "partner_id": result.partner_id,
                    "reason": result.reason,
                },
            )
            return TaskOutcome(
                task_code=config.task_code,
                status=ProcessStatus.REJECTED,
                reason=result.reason,
            )

        event_id = event.event_id()
        existing = await self.ledger.find_by_event(
            config.task_code, result.partner_id, event_id
        )
        if existing:
            self.logger.info(
                f"Event already processed: {config.task_code}",
                extra={
                    "task_code": config.task_code,
                    "partner_id": result.partner_id,
                    "event_id": event_id,
                },
            )
            return TaskOutcome(
                task_code=config.task_code,
                status=ProcessStatus.DUPLICATE,
                ledger_entry_id=existing.id,
            )

        try:
            entry = await self.ledger.create(
                task_code=config.task_code,
                task_type=config.task_type.value,
                partner_id=result.partner_id,
                uid=result.uid,
                related_partner_id=result.related_partner_id,
                related_uid=result.related_uid,
                event_type=event.event_type,
                event_id=event_id,
                business_params=result.business_params,
                status=TaskStatus.COMPLETED.value,
            )
        except IntegrityError:
            # Concurrent delivery of the same event won the insert
            await self.rollback()
            existing = await self.ledger.find_by_event(
                config.task_code, result.partner_id, event_id
            )
            if existing is None:
                raise
            return TaskOutcome(
                task_code=config.task_code,
                status=ProcessStatus.DUPLICATE,
                ledger_entry_id=existing.id,
            )

        entry_id = entry.id
        await self.commit()
        self.points_cache.invalidate(result.partner_id)

        self.logger.info(
            f"Task completed: {config.task_code}",
            extra={
                "task_code": config.task_code,
                "partner_id": result.partner_id,
                "event_id": event_id,
                "ledger_entry_id": entry_id,
                "points": calculate_points(
                    config.point_rule, result.business_params
                ),
            },
        )
        return TaskOutcome(
            task_code=config.task_code,
            status=ProcessStatus.COMPLETED,
            ledger_entry_id=entry_id,
        )

    async def process_notified_action_event(
        self, event: GameActionEvent
    ) -> TaskOutcome:
        """
        Process a client-reported game action.

        The client waits for the result, so storage errors are raised
        instead of being reported as a FAILED outcome.

        Args:
            event: Game action event

        Returns:
            Outcome for the action's task config

        Raises:
            TaskValidationFailedError: If no enabled game action task has
                the event's task code
            SQLAlchemyError: If the ledger cannot be read or written
        """
        configs = self._resolve_configs(event)
        if not configs:
            raise TaskValidationFailedError(
                event.task_code, "unknown or disabled game action task"
            )

        try:
            return await self._process_task(event, configs[0])
        except Exception:
            await self.rollback()
            raise

    async def process_reviewed_task_event(
        self, event: ExternalTaskApprovedEvent
    ) -> int:
        """
        Record an approved external task submission.

        The reviewer waits for the result, so failures are raised instead
        of being reported as outcomes.

        Args:
            event: Approval event

        Returns:
            ID of the created ledger entry, or of the existing one when the
            approval was already recorded

        Raises:
            TaskValidationFailedError: If no enabled external task config or
                handler exists, or the handler rejects the approval
        """
        configs = self.registry.get_enabled_by_event_type(
            EventType.EXTERNAL_TASK_APPROVED
        )
        if not configs:
            raise TaskValidationFailedError(
                None, "no enabled external task configuration"
            )
        config = configs[0]
        if config.task_type not in self.handlers:
            raise TaskValidationFailedError(
                config.task_code, f"no handler for task type {config.task_type}"
            )

        try:
            outcome = await self._process_task(event, config)
        except Exception:
            await self.rollback()
            raise

        if outcome.status == ProcessStatus.REJECTED:
            raise TaskValidationFailedError(
                config.task_code, outcome.reason or "rejected"
            )
        return outcome.ledger_entry_id
