"""Scheduled-date validation and the derived overdue flag."""
from datetime import date
from typing import Any, Optional

from .errors import InvalidArgument
from .models import RequestType
from .state_machine import is_terminal_stage


def today() -> date:
    """Current calendar date used for scheduling rules."""
    return date.today()


def validate_scheduled_date(scheduled_date: Optional[date], on: Optional[date] = None) -> date:
    """
    Check that a preventive date is present and not in the past.

    Args:
        scheduled_date: Requested date
        on: Reference date (defaults to today)

    Raises:
        InvalidArgument: If the date is missing or in the past
    """
    if scheduled_date is None:
        raise InvalidArgument("Scheduled date is mandatory for Preventive requests.")
    reference = on or today()
    if scheduled_date < reference:
        raise InvalidArgument(
            f"Cannot schedule Preventive maintenance in the past ({scheduled_date.isoformat()})."
        )
    return scheduled_date


def is_overdue(request: Any, on: Optional[date] = None) -> bool:
    """
    A request is overdue when it is Preventive, its scheduled date has passed,
    and it is not closed. Computed at read time, never stored.
    """
    if request.request_type != RequestType.PREVENTIVE or request.scheduled_date is None:
        return False
    if is_terminal_stage(request.stage.name):
        return False
    return request.scheduled_date < (on or today())
