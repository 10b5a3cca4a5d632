"""Role-based visibility filters for equipment and maintenance requests.

Equipment:
- Admin sees all
- Manager/Technician see equipment owned by their team
- Employee sees equipment assigned to them

Requests:
- Admin sees all
- Manager/Technician see requests whose frozen team is their team
- Employee sees requests they created

A Manager or Technician without a team sees nothing.
"""
import logging

from sqlalchemy import false
from sqlalchemy.orm import Query, Session

from . import models
from .authorization import Principal, can_view_equipment, can_view_request, scope_for
from .errors import NotFound

logger = logging.getLogger("gearguard-core.visibility")


def filter_equipment_query(query: Query, principal: Principal) -> Query:
    """Restrict an Equipment query to what the principal may read."""
    scope = scope_for(principal)
    if scope.is_universal:
        return query
    if scope.is_team_scoped:
        if scope.team_id is None:
            return query.filter(false())
        return query.filter(models.Equipment.maintenance_team_id == scope.team_id)
    return query.filter(models.Equipment.employee_id == principal.id)


def filter_request_query(query: Query, principal: Principal) -> Query:
    """Restrict a MaintenanceRequest query to what the principal may read."""
    scope = scope_for(principal)
    if scope.is_universal:
        return query
    if scope.is_team_scoped:
        if scope.team_id is None:
            return query.filter(false())
        return query.filter(models.MaintenanceRequest.team_id == scope.team_id)
    return query.filter(models.MaintenanceRequest.created_by_id == principal.id)


def get_visible_request(db: Session, principal: Principal, request_id: int) -> models.MaintenanceRequest:
    """
    Load a request for reading.

    Requests outside the principal's scope are reported as missing so their
    existence is not disclosed.

    Raises:
        NotFound: If the request does not exist or is not visible
    """
    request = db.query(models.MaintenanceRequest).filter(models.MaintenanceRequest.id == request_id).first()
    if not request or not can_view_request(scope_for(principal), principal.id, request):
        raise NotFound(f"Maintenance request not found: {request_id}")
    return request


def get_visible_equipment(db: Session, principal: Principal, equipment_id: int) -> models.Equipment:
    """
    Load equipment for reading.

    Raises:
        NotFound: If the equipment does not exist or is not visible
    """
    equipment = db.query(models.Equipment).filter(models.Equipment.id == equipment_id).first()
    if not equipment or not can_view_equipment(scope_for(principal), principal.id, equipment):
        raise NotFound(f"Equipment not found: {equipment_id}")
    return equipment
