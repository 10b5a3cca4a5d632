"""Maintenance team API endpoints."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gearguard_core import crud, models, schemas
from gearguard_core.authorization import Principal
from gearguard_core.database import get_db

from ..dependencies import get_current_principal

logger = logging.getLogger("gearguard-core.teams")

router = APIRouter(tags=["teams"])


def team_to_response(team: models.Team) -> schemas.TeamResponse:
    """Convert Team model to response schema."""
    return schemas.TeamResponse(
        id=team.id,
        name=team.name,
        manager_id=team.manager_id,
        technician_ids=[t.id for t in team.technicians],
    )


@router.get("/", response_model=list[schemas.TeamResponse])
def list_teams(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """List maintenance teams with their technicians."""
    return [team_to_response(t) for t in crud.list_teams(db)]


@router.post("/", response_model=schemas.TeamResponse, status_code=201)
def create_team(
    data: schemas.TeamCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Create a maintenance team (administrators only).

    - **name**: Unique team name
    - **manager_id**: Optional manager; joins the team
    """
    return team_to_response(crud.create_team(db, principal, data))


@router.patch("/{team_id}/manager", response_model=schemas.TeamResponse)
def set_team_manager(
    team_id: int,
    data: schemas.TeamManagerUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Appoint or clear the team's manager (administrators only)."""
    return team_to_response(crud.set_team_manager(db, principal, team_id, data.manager_id))
