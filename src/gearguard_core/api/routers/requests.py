"""Maintenance request API endpoints."""
import logging
from datetime import date
from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gearguard_core import crud, lifecycle, models, schemas
from gearguard_core.authorization import Principal
from gearguard_core.config import get_settings
from gearguard_core.database import get_db
from gearguard_core.scheduling import is_overdue

from ..dependencies import get_current_principal

logger = logging.getLogger("gearguard-core.requests")

settings = get_settings()

router = APIRouter(tags=["requests"])


def request_to_response(request: models.MaintenanceRequest) -> schemas.MaintenanceRequestResponse:
    """Convert MaintenanceRequest model to response schema, deriving is_overdue."""
    return schemas.MaintenanceRequestResponse(
        id=request.id,
        subject=request.subject,
        request_type=request.request_type,
        stage_id=request.stage_id,
        stage_name=request.stage.name,
        equipment_id=request.equipment_id,
        team_id=request.team_id,
        technician_id=request.technician_id,
        created_by_id=request.created_by_id,
        scheduled_date=request.scheduled_date,
        duration_hours=request.duration_hours,
        created_at=request.created_at,
        updated_at=request.updated_at,
        closed_at=request.closed_at,
        is_overdue=is_overdue(request),
    )


@router.post("/", response_model=schemas.MaintenanceRequestResponse, status_code=201)
def create_request(
    data: schemas.MaintenanceRequestCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Create a maintenance request.

    - **subject**: What is wrong
    - **request_type**: corrective (breakdown) or preventive (planned)
    - **equipment_id**: Affected equipment; its team is copied onto the request
    - **scheduled_date**: Required for preventive requests, today or later
    - **duration_hours**: Optional estimate, positive
    """
    request = lifecycle.create_request(db, principal, data)
    return request_to_response(request)


@router.get("/", response_model=schemas.MaintenanceRequestListResponse)
def list_requests(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size, description="Items per page"),
    stage_id: Optional[int] = Query(None, description="Filter by stage"),
    request_type: Optional[models.RequestType] = Query(None, description="Filter by request type"),
    technician_id: Optional[int] = Query(None, description="Filter by assigned technician"),
    equipment_id: Optional[int] = Query(None, description="Filter by equipment"),
    overdue: Optional[bool] = Query(None, description="Only overdue (true) or only not overdue (false)"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    List the maintenance requests visible to the caller.

    Active work is listed first, closed work last.
    """
    skip = (page - 1) * page_size

    requests, total = crud.list_requests(
        db,
        principal,
        skip=skip,
        limit=page_size,
        stage_id=stage_id,
        request_type=request_type,
        technician_id=technician_id,
        equipment_id=equipment_id,
        overdue=overdue,
    )

    return schemas.MaintenanceRequestListResponse(
        items=[request_to_response(r) for r in requests],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/calendar", response_model=list[schemas.MaintenanceRequestResponse])
def get_calendar(
    start: date = Query(..., description="First day of the range"),
    end: date = Query(..., description="Last day of the range"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Preventive requests scheduled between start and end (inclusive)."""
    return [request_to_response(r) for r in crud.get_calendar(db, principal, start, end)]


@router.get("/{request_id}", response_model=schemas.MaintenanceRequestResponse)
def get_request(
    request_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Get a specific request by ID."""
    return request_to_response(crud.get_request(db, principal, request_id))


@router.patch("/{request_id}/assign", response_model=schemas.MaintenanceRequestResponse)
def assign_technician(
    request_id: int,
    data: schemas.MaintenanceRequestAssign,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Assign a technician of the request's team.

    A request in New moves to In Progress in the same step.
    """
    request = lifecycle.assign_technician(db, principal, request_id, data.technician_id)
    return request_to_response(request)


@router.patch("/{request_id}/status", response_model=schemas.StageTransitionResponse)
def update_stage(
    request_id: int,
    data: schemas.MaintenanceRequestStageUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Move a request to another stage.

    - **Repaired**: technicians of the request's team, from In Progress, with a duration
    - **Scrap**: managers of the request's team or administrators; retires the equipment
    """
    request, message = lifecycle.transition_stage(
        db, principal, request_id, data.stage_id, data.duration_hours
    )
    return schemas.StageTransitionResponse(message=message, request=request_to_response(request))


@router.patch("/{request_id}/schedule", response_model=schemas.MaintenanceRequestResponse)
def reschedule_request(
    request_id: int,
    data: schemas.MaintenanceRequestReschedule,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Move the scheduled date of an open preventive request."""
    request = lifecycle.reschedule_request(db, principal, request_id, data.scheduled_date)
    return request_to_response(request)


@router.get("/{request_id}/logs", response_model=list[schemas.MaintenanceLogResponse])
def get_request_logs(
    request_id: int,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Audit trail of a request, most recent first."""
    return crud.get_request_history(db, principal, request_id, limit)
