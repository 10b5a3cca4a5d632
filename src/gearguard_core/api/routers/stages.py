"""Maintenance stage catalog endpoint."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gearguard_core import crud, schemas
from gearguard_core.authorization import Principal
from gearguard_core.database import get_db

from ..dependencies import get_current_principal

router = APIRouter(tags=["stages"])


@router.get("/", response_model=list[schemas.StageResponse])
def list_stages(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """List the fixed stage catalog in workflow order."""
    return crud.list_stages(db)
