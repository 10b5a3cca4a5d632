"""State machine validation for maintenance request stage transitions.

Lifecycle: New -> In Progress -> Repaired
Any non-terminal stage may be scrapped: New/In Progress -> Scrap

Terminal stages: Repaired, Scrap. No stage is ever revisited.
"""
import logging

from .errors import InvalidTransition
from .models import StageName

logger = logging.getLogger("gearguard-core.state_machine")


# Stage transition matrix
# Maps current stage → list of allowed next stages
TRANSITION_MATRIX: dict[StageName, list[StageName]] = {
    StageName.NEW: [
        StageName.IN_PROGRESS,  # Forward: technician assigned
        StageName.SCRAP,        # Terminal: equipment retired before work started
    ],
    StageName.IN_PROGRESS: [
        StageName.REPAIRED,     # Terminal: technician certified completion
        StageName.SCRAP,        # Terminal: equipment beyond repair
    ],
    StageName.REPAIRED: [
        # Terminal - closed requests are immutable records
    ],
    StageName.SCRAP: [
        # Terminal - there is no un-scrap
    ],
}

TERMINAL_STAGES = frozenset({StageName.REPAIRED, StageName.SCRAP})


def is_terminal_stage(stage: StageName) -> bool:
    """Check if a stage is terminal (no further transitions)."""
    return stage in TERMINAL_STAGES


def is_transition_valid(current_stage: StageName, new_stage: StageName) -> bool:
    """
    Check if a stage transition is valid.

    Args:
        current_stage: Current stage of the request
        new_stage: Requested next stage

    Returns:
        True if transition is allowed, False otherwise
    """
    return new_stage in TRANSITION_MATRIX.get(current_stage, [])


def validate_transition(current_stage: StageName, new_stage: StageName) -> None:
    """
    Validate a stage transition and raise exception if invalid.

    Unlike status fields elsewhere, a same-stage "transition" is not a no-op:
    every call represents a workflow action and must move the request forward.

    Args:
        current_stage: Current stage of the request
        new_stage: Requested next stage

    Raises:
        InvalidTransition: If the transition is not allowed
    """
    if is_transition_valid(current_stage, new_stage):
        logger.debug(f"Valid transition: {current_stage.value} → {new_stage.value}")
        return

    allowed = TRANSITION_MATRIX.get(current_stage, [])
    allowed_names = [s.value for s in allowed]

    if allowed_names:
        error_msg = (
            f"Invalid stage transition: {current_stage.value} → {new_stage.value}. "
            f"From {current_stage.value}, you can only transition to: {', '.join(allowed_names)}."
        )
    else:
        error_msg = (
            f"Invalid stage transition: {current_stage.value} → {new_stage.value}. "
            f"Request is already closed ({current_stage.value})."
        )

    # Add guidance for the common mistakes
    if current_stage == StageName.NEW and new_stage == StageName.REPAIRED:
        error_msg += " A technician must be assigned before the request can be marked Repaired."
    elif is_terminal_stage(current_stage):
        error_msg += " Closed requests are immutable. Create a new request for additional work."
    elif new_stage == StageName.NEW:
        error_msg += " Requests never return to New."

    logger.warning(f"Blocked transition: {error_msg}")
    raise InvalidTransition(
        error_msg,
        current_stage=current_stage.value,
        requested_stage=new_stage.value,
        allowed_transitions=allowed_names,
    )


def get_allowed_transitions(current_stage: StageName) -> list[StageName]:
    """
    Get list of allowed transitions from the current stage.

    Args:
        current_stage: Current stage of the request

    Returns:
        List of allowed next stages
    """
    return list(TRANSITION_MATRIX.get(current_stage, []))


# Stage sort order for list queries
# Lower number = shown first: active work first, closed work last
STAGE_SORT_ORDER: dict[StageName, int] = {
    StageName.IN_PROGRESS: 1,   # Actively being worked
    StageName.NEW: 2,           # Waiting for assignment
    StageName.REPAIRED: 3,      # Closed
    StageName.SCRAP: 4,         # Closed, equipment retired
}

# Seed data for the fixed stage catalog: (name, sequence, is_closing, is_scrap_state)
STAGE_CATALOG: list[tuple[StageName, int, bool, bool]] = [
    (StageName.NEW, 1, False, False),
    (StageName.IN_PROGRESS, 2, False, False),
    (StageName.REPAIRED, 3, True, False),
    (StageName.SCRAP, 4, True, True),
]
