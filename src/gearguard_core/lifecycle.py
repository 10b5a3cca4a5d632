"""Maintenance request lifecycle engine.

Each public function is a named unit of work: it re-reads the rows it depends
on inside the transaction, validates authorization and stage preconditions,
applies its mutations and writes exactly one audit entry, all inside a single
``atomic`` block. Any rejection is raised before the first write and rolls
back the whole unit.

Operations:
- create_request: entry into New, team and default technician copied from equipment
- assign_technician: assignment, promoting New -> In Progress in the same unit
- mark_repaired: In Progress -> Repaired (technicians only, duration required)
- scrap_request: New/In Progress -> Scrap, retiring the equipment permanently
- transition_stage: dispatches a target stage id to the operations above
- reschedule_request: moves a preventive request's scheduled date
"""
import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from . import models, schemas
from .assignment import load_technician, validate_technician_for_team
from .audit import (
    write_log,
    request_created_message,
    technician_assigned_message,
    repaired_message,
    scrapped_message,
    rescheduled_message,
)
from .authorization import Action, Principal, require
from .database import atomic
from .errors import Conflict, InvalidArgument, InvalidTransition, NotFound
from .scheduling import validate_scheduled_date
from .state_machine import get_allowed_transitions, is_terminal_stage, validate_transition
from .visibility import get_visible_request

logger = logging.getLogger("gearguard-core.lifecycle")


def get_stage(db: Session, name: models.StageName) -> models.MaintenanceStage:
    """Look up a stage of the fixed catalog by name."""
    stage = db.query(models.MaintenanceStage).filter(models.MaintenanceStage.name == name).first()
    if not stage:
        # Reference data is seeded by the initial migration
        raise RuntimeError(f"Stage '{name.value}' not found. Has the stage catalog been seeded?")
    return stage


def _lock_request(db: Session, request_id: int) -> models.MaintenanceRequest:
    """Re-read a request inside the transaction, discarding any stale state."""
    request = (
        db.query(models.MaintenanceRequest)
        .filter(models.MaintenanceRequest.id == request_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if not request:
        raise NotFound(f"Maintenance request not found: {request_id}")
    return request


def _lock_equipment(db: Session, equipment_id: int) -> Optional[models.Equipment]:
    return (
        db.query(models.Equipment)
        .filter(models.Equipment.id == equipment_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def _current_stage(db: Session, request: models.MaintenanceRequest) -> models.StageName:
    return db.get(models.MaintenanceStage, request.stage_id).name


def _default_technician_id(db: Session, equipment: models.Equipment) -> Optional[int]:
    """The equipment's default technician, if still a technician of its team."""
    if equipment.default_technician_id is None:
        return None
    technician = db.get(models.Employee, equipment.default_technician_id)
    if (
        technician is None
        or technician.role != models.Role.TECHNICIAN
        or technician.team_id != equipment.maintenance_team_id
    ):
        logger.warning(
            f"Default technician {equipment.default_technician_id} of equipment {equipment.id} "
            f"is not a technician of team {equipment.maintenance_team_id}; request left unassigned"
        )
        return None
    return technician.id


def create_request(
    db: Session,
    principal: Principal,
    data: schemas.MaintenanceRequestCreate,
    on: Optional[date] = None,
) -> models.MaintenanceRequest:
    """
    Create a maintenance request in stage New.

    The owning team and (if the equipment defines one and they still belong
    to that team) the default technician are copied from the equipment at
    this instant. A pre-filled technician does
    not promote the stage; only an explicit assignment does.

    Args:
        db: Database session
        principal: Authenticated caller
        data: Request creation data
        on: Reference date for scheduling checks (defaults to today)

    Returns:
        Created request

    Raises:
        InvalidArgument: Blank subject, missing/past preventive date, or a date on a corrective request
        NotFound: Equipment does not exist
        Conflict: Equipment has been scrapped
    """
    require(Action.CREATE_REQUEST, principal)

    subject = (data.subject or "").strip()
    if not subject:
        raise InvalidArgument("Subject is required.")

    request_type = models.RequestType(data.request_type)
    if request_type == models.RequestType.PREVENTIVE:
        validate_scheduled_date(data.scheduled_date, on)
    elif data.scheduled_date is not None:
        raise InvalidArgument("Scheduled date only applies to Preventive requests.")

    if data.duration_hours is not None and data.duration_hours <= 0:
        raise InvalidArgument("Duration must be a positive number of hours.")

    with atomic(db, "create_request"):
        equipment = _lock_equipment(db, data.equipment_id)
        if not equipment:
            raise NotFound(f"Equipment not found: {data.equipment_id}")

        if not equipment.is_active:
            logger.warning(f"Request against scrapped equipment {equipment.id} rejected")
            raise Conflict(
                f"Cannot create request for scrapped equipment {equipment.name} ({equipment.serial_number})."
            )

        new_stage = get_stage(db, models.StageName.NEW)

        request = models.MaintenanceRequest(
            subject=subject,
            request_type=request_type,
            scheduled_date=data.scheduled_date,
            duration_hours=data.duration_hours,
            equipment_id=equipment.id,
            team_id=equipment.maintenance_team_id,
            technician_id=_default_technician_id(db, equipment),
            stage=new_stage,
            created_by_id=principal.id,
        )
        db.add(request)
        db.flush()

        write_log(
            db,
            models.LogAction.REQUEST_CREATED,
            request_created_message(request, equipment),
            created_by_id=principal.id,
            request_id=request.id,
            equipment_id=equipment.id,
        )

    db.refresh(request)
    logger.info(f"Created request {request.id} for equipment {request.equipment_id} (team {request.team_id})")
    return request


def assign_technician(
    db: Session,
    principal: Principal,
    request_id: int,
    technician_id: int,
) -> models.MaintenanceRequest:
    """
    Assign a technician, promoting New to In Progress as one unit.

    Re-assignment while In Progress is allowed and leaves the stage unchanged.

    Raises:
        NotFound: Request or technician does not exist
        Forbidden: Caller lacks authority, or technician belongs to another team
        InvalidArgument: The employee is not a technician
        InvalidTransition: The request is already closed
    """
    with atomic(db, "assign_technician"):
        request = _lock_request(db, request_id)
        require(Action.ASSIGN_TECHNICIAN, principal, request)

        current = _current_stage(db, request)
        if is_terminal_stage(current):
            raise InvalidTransition(
                f"Cannot assign a technician: request is already closed ({current.value}).",
                current_stage=current.value,
                requested_stage=models.StageName.IN_PROGRESS.value,
            )

        technician = load_technician(db, technician_id)
        validate_technician_for_team(technician, request.team_id)

        old_technician_id = request.technician_id
        promoted = current == models.StageName.NEW
        if promoted:
            validate_transition(current, models.StageName.IN_PROGRESS)
            request.stage = get_stage(db, models.StageName.IN_PROGRESS)

        request.technician_id = technician.id
        write_log(
            db,
            models.LogAction.TECHNICIAN_ASSIGNED,
            technician_assigned_message(technician, old_technician_id, promoted),
            created_by_id=principal.id,
            request_id=request.id,
        )

    db.refresh(request)
    logger.info(f"Assigned technician {technician_id} to request {request_id} (promoted={promoted})")
    return request


def mark_repaired(
    db: Session,
    principal: Principal,
    request_id: int,
    duration_hours: Optional[float] = None,
) -> models.MaintenanceRequest:
    """
    Close a request as Repaired.

    Only permitted from In Progress, only for technicians of the request's team.
    A duration must be supplied now or have been recorded at creation.

    Raises:
        NotFound: Request does not exist
        Forbidden: Caller is not a technician of the request's team
        InvalidTransition: Request is not In Progress
        InvalidArgument: No usable duration
    """
    with atomic(db, "mark_repaired"):
        request = _lock_request(db, request_id)
        require(Action.MARK_REPAIRED, principal, request)

        validate_transition(_current_stage(db, request), models.StageName.REPAIRED)

        if duration_hours is not None and duration_hours <= 0:
            raise InvalidArgument("Duration must be a positive number of hours.")
        duration = duration_hours if duration_hours is not None else request.duration_hours
        if duration is None:
            raise InvalidArgument("Duration (hours) is required to mark a request as Repaired.")

        request.stage = get_stage(db, models.StageName.REPAIRED)
        request.duration_hours = duration
        request.closed_at = datetime.utcnow()

        write_log(
            db,
            models.LogAction.REQUEST_REPAIRED,
            repaired_message(duration),
            created_by_id=principal.id,
            request_id=request.id,
            equipment_id=request.equipment_id,
        )

    db.refresh(request)
    logger.info(f"Request {request_id} marked Repaired by {principal.id} ({duration:g}h)")
    return request


def scrap_request(db: Session, principal: Principal, request_id: int) -> models.MaintenanceRequest:
    """
    Scrap a request and retire its equipment.

    Closes the request, deactivates the equipment permanently and writes one
    audit entry linked to both, as a single unit. There is no un-scrap.

    Raises:
        NotFound: Request does not exist
        Forbidden: Caller is not an Admin or a Manager of the request's team
        InvalidTransition: Request is already closed
    """
    with atomic(db, "scrap_request"):
        request = _lock_request(db, request_id)
        require(Action.SCRAP_REQUEST, principal, request)

        validate_transition(_current_stage(db, request), models.StageName.SCRAP)

        equipment = _lock_equipment(db, request.equipment_id)
        deactivated = equipment.is_active
        equipment.is_active = False

        request.stage = get_stage(db, models.StageName.SCRAP)
        request.closed_at = datetime.utcnow()

        write_log(
            db,
            models.LogAction.REQUEST_SCRAPPED,
            scrapped_message(equipment, deactivated),
            created_by_id=principal.id,
            request_id=request.id,
            equipment_id=equipment.id,
        )

    db.refresh(request)
    if deactivated:
        logger.info(f"Request {request_id} scrapped; equipment {request.equipment_id} retired")
    else:
        logger.info(f"Request {request_id} scrapped; equipment {request.equipment_id} already inactive")
    return request


def transition_stage(
    db: Session,
    principal: Principal,
    request_id: int,
    target_stage_id: int,
    duration_hours: Optional[float] = None,
) -> tuple[models.MaintenanceRequest, str]:
    """
    Move a request to the stage identified by ``target_stage_id``.

    Returns:
        Tuple of (updated request, success message)

    Raises:
        NotFound: Request or stage does not exist
        InvalidTransition: Target stage is not reachable through this call
        Forbidden, InvalidArgument: As raised by the dispatched operation
    """
    target = db.get(models.MaintenanceStage, target_stage_id)
    if not target:
        raise NotFound(f"Stage not found: {target_stage_id}")

    if target.name == models.StageName.REPAIRED:
        request = mark_repaired(db, principal, request_id, duration_hours)
        return request, "Maintenance Completed"

    if target.name == models.StageName.SCRAP:
        request = scrap_request(db, principal, request_id)
        return request, "Request scrapped and equipment retired"

    # In Progress is only reached through assignment; New is never re-entered
    request = get_visible_request(db, principal, request_id)
    current = _current_stage(db, request)
    allowed = [stage.value for stage in get_allowed_transitions(current)]
    hint = " Assign a technician to start work." if target.name == models.StageName.IN_PROGRESS else ""
    raise InvalidTransition(
        f"Cannot move request from {current.value} to {target.name.value} with a stage change.{hint}",
        current_stage=current.value,
        requested_stage=target.name.value,
        allowed_transitions=allowed,
    )


def reschedule_request(
    db: Session,
    principal: Principal,
    request_id: int,
    new_scheduled_date: date,
    on: Optional[date] = None,
) -> models.MaintenanceRequest:
    """
    Move the scheduled date of an open preventive request.

    Raises:
        NotFound: Request does not exist
        Forbidden: Request is outside the caller's visibility scope
        InvalidArgument: Corrective request, or new date in the past
        InvalidTransition: Request is already closed
    """
    with atomic(db, "reschedule_request"):
        request = _lock_request(db, request_id)
        require(Action.RESCHEDULE_REQUEST, principal, request)

        if request.request_type != models.RequestType.PREVENTIVE:
            raise InvalidArgument("Only Preventive requests can be rescheduled.")

        current = _current_stage(db, request)
        if is_terminal_stage(current):
            raise InvalidTransition(
                f"Cannot reschedule a closed request ({current.value}).",
                current_stage=current.value,
            )

        validate_scheduled_date(new_scheduled_date, on)

        old_date = request.scheduled_date
        request.scheduled_date = new_scheduled_date
        write_log(
            db,
            models.LogAction.REQUEST_RESCHEDULED,
            rescheduled_message(old_date, new_scheduled_date),
            created_by_id=principal.id,
            request_id=request.id,
        )

    db.refresh(request)
    logger.info(f"Request {request_id} rescheduled to {new_scheduled_date.isoformat()}")
    return request
