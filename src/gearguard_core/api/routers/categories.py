"""Equipment category API endpoints."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gearguard_core import crud, schemas
from gearguard_core.authorization import Principal
from gearguard_core.database import get_db

from ..dependencies import get_current_principal

logger = logging.getLogger("gearguard-core.categories")

router = APIRouter(tags=["categories"])


@router.get("/", response_model=list[schemas.CategoryResponse])
def list_categories(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return crud.list_categories(db)


@router.post("/", response_model=schemas.CategoryResponse, status_code=201)
def create_category(
    data: schemas.CategoryCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Create an equipment category (administrators only)."""
    return crud.create_category(db, principal, data)
