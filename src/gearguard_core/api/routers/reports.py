"""Reporting endpoints (administrators only)."""
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gearguard_core import crud, schemas
from gearguard_core.authorization import Principal
from gearguard_core.database import get_db

from ..dependencies import get_current_principal

router = APIRouter(tags=["reports"])


@router.get("/breakdown", response_model=list[schemas.BreakdownItem])
def get_breakdown(
    group_by: Literal["team", "category"] = Query("team", description="Group requests by team or category"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Number of maintenance requests per team or per equipment category."""
    return crud.get_request_breakdown(db, principal, group_by)
