"""Equipment assignment validation.

Keeps technician-to-request and equipment-to-team bindings consistent:
- A Manager may only create equipment for their own team (Admin exempt)
- An equipment's default technician must belong to the equipment's team
- A technician assigned to a request must belong to the request's frozen team
"""
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from . import models
from .authorization import Action, Principal, require
from .errors import Forbidden, InvalidArgument, NotFound

logger = logging.getLogger("gearguard-core.assignment")


class _TeamTarget:
    """Minimal entity carrying a team binding for authorization checks."""

    def __init__(self, maintenance_team_id: int):
        self.maintenance_team_id = maintenance_team_id


def validate_equipment_team(principal: Principal, team_id: int, action: Action = Action.CREATE_EQUIPMENT) -> None:
    """
    Check that the principal may bind equipment to ``team_id``.

    Raises:
        Forbidden: If a Manager targets another team, or the role cannot manage equipment
    """
    require(action, principal, _TeamTarget(team_id))


def validate_default_technician(db: Session, technician_id: Optional[int], team_id: int) -> Optional[models.Employee]:
    """
    Check that a default technician exists, is a technician and belongs to ``team_id``.

    Returns:
        The technician, or None when no default technician is requested

    Raises:
        InvalidArgument: If the technician does not qualify for the team
    """
    if technician_id is None:
        return None

    technician = db.query(models.Employee).filter(models.Employee.id == technician_id).first()
    if not technician or technician.role != models.Role.TECHNICIAN:
        logger.warning(f"Default technician {technician_id} is not a technician")
        raise InvalidArgument(f"Default technician {technician_id} is not a technician.")
    if technician.team_id != team_id:
        logger.warning(f"Default technician {technician_id} is not a member of team {team_id}")
        raise InvalidArgument("Default technician does not belong to the selected maintenance team.")
    return technician


def load_technician(db: Session, technician_id: int) -> models.Employee:
    """
    Load an employee that is about to be assigned as a technician.

    Raises:
        NotFound: If the employee does not exist
        InvalidArgument: If the employee is not a technician
    """
    technician = db.query(models.Employee).filter(models.Employee.id == technician_id).first()
    if not technician:
        raise NotFound(f"Technician not found: {technician_id}")
    if technician.role != models.Role.TECHNICIAN:
        raise InvalidArgument(f"Employee {technician_id} is not a technician (role: {technician.role.value}).")
    return technician


def validate_technician_for_team(technician: Any, team_id: int) -> None:
    """
    Check a technician against a request's frozen team.

    The team passed here is the one copied onto the request at creation, not the
    equipment's current team.

    Raises:
        Forbidden: If the technician belongs to another team (or none)
    """
    if technician.team_id != team_id:
        logger.warning(
            f"Cross-team assignment blocked: technician {technician.id} (team {technician.team_id}) "
            f"to request team {team_id}"
        )
        raise Forbidden("Technician does not belong to the maintenance team responsible for this request.")
