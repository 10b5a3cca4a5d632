"""Employee provisioning API endpoints (administrators only)."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gearguard_core import crud, models, schemas
from gearguard_core.authorization import Principal
from gearguard_core.database import get_db

from ..dependencies import get_current_principal

logger = logging.getLogger("gearguard-core.employees")

router = APIRouter(tags=["employees"])


@router.get("/", response_model=list[schemas.EmployeeResponse])
def list_employees(
    role: Optional[models.Role] = Query(None, description="Filter by role"),
    team_id: Optional[int] = Query(None, description="Filter by team"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return crud.list_employees(db, principal, role=role, team_id=team_id)


@router.post("/", response_model=schemas.EmployeeResponse, status_code=201)
def create_employee(
    data: schemas.EmployeeCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Provision an employee.

    - **email**: Unique, case-insensitive
    - **role**: admin, manager, technician or employee
    - **team_id**: Team membership for managers and technicians
    """
    return crud.create_employee(db, principal, data)


@router.patch("/{employee_id}/team", response_model=schemas.EmployeeResponse)
def set_employee_team(
    employee_id: int,
    data: schemas.EmployeeTeamUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Move an employee to another team, or remove them with a null team_id."""
    return crud.set_employee_team(db, principal, employee_id, data.team_id)


@router.patch("/{employee_id}", response_model=schemas.EmployeeResponse)
def update_employee(
    employee_id: int,
    data: schemas.EmployeeUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Update an employee's name, email or role.

    Demoting a technician releases them as default technician of all
    equipment; demoting a manager releases the teams they manage.
    """
    return crud.update_employee(db, principal, employee_id, data)
