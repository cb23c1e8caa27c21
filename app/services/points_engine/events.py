"""
Domain events consumed by the task engine.

Collaborators build these and hand them to TaskEngine directly. Each event
derives its own idempotency key so retried deliveries collapse into one
ledger entry. Timestamps are epoch milliseconds.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar

from app.services.points_engine.config import EventType


@dataclass(frozen=True)
class RegisterSelfEvent:
    """Partner joined the program."""

    event_type: ClassVar[str] = EventType.REGISTER_SELF

    partner_id: int
    partner_code: str
    uid: str
    timestamp: int

    def event_id(self) -> str:
        return f"{self.partner_id}_{self.timestamp}"


@dataclass(frozen=True)
class RegisterDownlineL1Event:
    """A direct downline joined under partner_id."""

    event_type: ClassVar[str] = EventType.REGISTER_DOWNLINE_L1

    partner_id: int
    partner_code: str
    uid: str
    downline_partner_id: int
    downline_partner_code: str
    downline_uid: str
    timestamp: int
    source_channel_id: str | None = None

    def event_id(self) -> str:
        return f"{self.partner_id}_{self.downline_partner_id}_{self.timestamp}"


@dataclass(frozen=True)
class GameActionEvent:
    """Client reported completion of a catalog action."""

    event_type: ClassVar[str] = EventType.GAME_ACTION

    task_code: str
    partner_id: int
    partner_code: str
    uid: str
    timestamp: int
    business_params: dict[str, Any] = field(default_factory=dict)

    def event_id(self) -> str:
        return f"{self.partner_id}_{self.timestamp}"


@dataclass(frozen=True)
class ExternalTaskApprovedEvent:
    """Reviewer approved an externally submitted task."""

    event_type: ClassVar[str] = EventType.EXTERNAL_TASK_APPROVED

    submission_id: str
    partner_id: int
    uid: str
    task_type: str
    points_reward: int
    timestamp: int

    def event_id(self) -> str:
        # One reward per submission, even when approval is retried
        return f"external_{self.submission_id}_{self.timestamp}"


TaskEvent = (
    RegisterSelfEvent
    | RegisterDownlineL1Event
    | GameActionEvent
    | ExternalTaskApprovedEvent
)
