"""Error taxonomy for workflow and authorization failures.

Every rejection is raised before any write, so the caller can rely on the
store being unchanged whenever one of these errors propagates.
"""
from typing import Optional


class MaintenanceError(Exception):
    """Base class for all expected, client-facing failures."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(MaintenanceError):
    """No authenticated principal accompanies the call."""

    status_code = 401
    code = "unauthenticated"


class Forbidden(MaintenanceError):
    """The principal lacks role or team authority for this action."""

    status_code = 403
    code = "forbidden"


class NotFound(MaintenanceError):
    """A referenced entity does not exist or is outside the caller's view."""

    status_code = 404
    code = "not_found"


class InvalidArgument(MaintenanceError):
    """Malformed or semantically invalid input."""

    status_code = 400
    code = "invalid_argument"


class Conflict(MaintenanceError):
    """The action contradicts the current state of an entity."""

    status_code = 409
    code = "conflict"


class InvalidTransition(MaintenanceError):
    """Raised when a stage precondition is not met."""

    status_code = 400
    code = "invalid_transition"

    def __init__(
        self,
        message: str,
        current_stage: Optional[str] = None,
        requested_stage: Optional[str] = None,
        allowed_transitions: Optional[list[str]] = None,
    ):
        super().__init__(message)
        self.current_stage = current_stage
        self.requested_stage = requested_stage
        self.allowed_transitions = allowed_transitions or []
