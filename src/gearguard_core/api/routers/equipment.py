"""Equipment API endpoints."""
import logging
from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gearguard_core import crud, schemas
from gearguard_core.authorization import Principal
from gearguard_core.config import get_settings
from gearguard_core.database import get_db

from ..dependencies import get_current_principal
from .requests import request_to_response

logger = logging.getLogger("gearguard-core.equipment")

settings = get_settings()

router = APIRouter(tags=["equipment"])


@router.post("/", response_model=schemas.EquipmentResponse, status_code=201)
def create_equipment(
    data: schemas.EquipmentCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Register a piece of equipment.

    - **serial_number**: Unique across all equipment
    - **maintenance_team_id**: Team responsible for it (managers: their own team only)
    - **default_technician_id**: Optional, must be a technician of that team
    - **employee_id**: Optional holder of the equipment
    - **department_id**: Optional department the equipment belongs to
    """
    return crud.create_equipment(db, principal, data)


@router.get("/", response_model=schemas.EquipmentListResponse)
def list_equipment(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size, description="Items per page"),
    search: Optional[str] = Query(None, description="Search in name and serial number"),
    category_id: Optional[int] = Query(None, description="Filter by category"),
    department_id: Optional[int] = Query(None, description="Filter by department"),
    include_inactive: bool = Query(False, description="Include scrapped equipment"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """List the equipment visible to the caller."""
    skip = (page - 1) * page_size

    items, total = crud.list_equipment(
        db,
        principal,
        skip=skip,
        limit=page_size,
        search=search,
        category_id=category_id,
        department_id=department_id,
        include_inactive=include_inactive,
    )

    return schemas.EquipmentListResponse(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/{equipment_id}", response_model=schemas.EquipmentResponse)
def get_equipment(
    equipment_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return crud.get_equipment(db, principal, equipment_id)


@router.get("/{equipment_id}/stats", response_model=schemas.EquipmentStatsResponse)
def get_equipment_stats(
    equipment_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Total and open request counts, with an operational status label."""
    return crud.get_equipment_stats(db, principal, equipment_id)


@router.get("/{equipment_id}/requests", response_model=list[schemas.MaintenanceRequestResponse])
def get_equipment_requests(
    equipment_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Maintenance history of a piece of equipment, newest first."""
    return [request_to_response(r) for r in crud.get_equipment_requests(db, principal, equipment_id)]


@router.get("/{equipment_id}/logs", response_model=list[schemas.MaintenanceLogResponse])
def get_equipment_logs(
    equipment_id: int,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return crud.get_equipment_history(db, principal, equipment_id, limit)


@router.patch("/{equipment_id}/owner", response_model=schemas.EquipmentResponse)
def assign_equipment_owner(
    equipment_id: int,
    data: schemas.EquipmentOwnerUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Assign the equipment to an employee, or release it with a null employee_id."""
    return crud.assign_equipment_owner(db, principal, equipment_id, data.employee_id)


@router.patch("/{equipment_id}/team", response_model=schemas.EquipmentResponse)
def change_equipment_team(
    equipment_id: int,
    data: schemas.EquipmentTeamUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Move equipment to another maintenance team (administrators only).

    Requests already created keep the team they were created with.
    """
    return crud.change_equipment_team(
        db, principal, equipment_id, data.maintenance_team_id, data.default_technician_id
    )
