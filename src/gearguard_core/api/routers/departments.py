"""Department API endpoints."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gearguard_core import crud, schemas
from gearguard_core.authorization import Principal
from gearguard_core.database import get_db

from ..dependencies import get_current_principal

logger = logging.getLogger("gearguard-core.departments")

router = APIRouter(tags=["departments"])


@router.get("/", response_model=list[schemas.DepartmentResponse])
def list_departments(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return crud.list_departments(db)


@router.post("/", response_model=schemas.DepartmentResponse, status_code=201)
def create_department(
    data: schemas.DepartmentCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Create a department (administrators only)."""
    return crud.create_department(db, principal, data)
