"""
Partner program exceptions.

All expected, caller-facing failures derive from PartnerProgramError and
carry a stable error code. They are never retried automatically.
"""


class PartnerProgramError(Exception):
    """Base class for expected partner program failures."""

    code = "PARTNER_PROGRAM_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CircularReferenceError(PartnerProgramError):
    """Binding would make a partner its own parent or grandparent."""

    code = "CIRCULAR_REFERENCE"

    def __init__(self, parent_id: int, child_id: int) -> None:
        super().__init__(
            f"Cannot bind partner {child_id} under {parent_id}: "
            "partner is already an upline of the inviter"
        )
        self.parent_id = parent_id
        self.child_id = child_id


class UplinkImmutableError(PartnerProgramError):
    """Child already has a direct upline."""

    code = "UPLINK_IMMUTABLE"

    def __init__(self, child_id: int) -> None:
        super().__init__(
            f"Partner {child_id} already has an upline, "
            "it can only be changed by admin correction"
        )
        self.child_id = child_id


class InvalidPartnerIdError(PartnerProgramError):
    """Referenced partner does not exist."""

    code = "INVALID_PARTNER_ID"

    def __init__(self, partner_id: int) -> None:
        super().__init__(f"Partner {partner_id} does not exist")
        self.partner_id = partner_id


class TaskValidationFailedError(PartnerProgramError):
    """Task event was rejected (limit reached, unknown task code, ...)."""

    code = "TASK_VALIDATION_FAILED"

    def __init__(self, task_code: str | None, reason: str) -> None:
        super().__init__(f"Task {task_code or '<none>'} rejected: {reason}")
        self.task_code = task_code
        self.reason = reason


class InvalidInviterError(PartnerProgramError):
    """Inviter code is unknown or the inviter is frozen."""

    code = "INVALID_INVITER"

    def __init__(self, inviter_code: str) -> None:
        super().__init__(
            f"Inviter {inviter_code} does not exist or is frozen"
        )
        self.inviter_code = inviter_code


class DuplicateUserIdError(PartnerProgramError):
    """User already owns a partner profile."""

    code = "DUPLICATE_USER_ID"

    def __init__(self, uid: str) -> None:
        super().__init__(f"User {uid} is already linked to a partner")
        self.uid = uid


class PartnerNotRegisteredError(PartnerProgramError):
    """User has not joined the partner program."""

    code = "PARTNER_NOT_REGISTERED"

    def __init__(self, uid: str) -> None:
        super().__init__(f"User {uid} has not joined the partner program")
        self.uid = uid


class DuplicateTeamNameError(PartnerProgramError):
    """Team name is taken."""

    code = "DUPLICATE_TEAM_NAME"

    def __init__(self, team_name: str) -> None:
        super().__init__(f'Team name "{team_name}" is already in use')
        self.team_name = team_name


class TeamNameImmutableError(PartnerProgramError):
    """Team name was already set."""

    code = "TEAM_NAME_IMMUTABLE"

    def __init__(self, partner_id: int) -> None:
        super().__init__(
            f"Team name of partner {partner_id} is already set"
        )
        self.partner_id = partner_id
