"""
Audit log writer.

Append-only record of every mutating workflow action. Entries are added to the
caller's session without committing, so they land in the same transaction as
the mutation they describe.
"""
import logging
from typing import Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger("gearguard-core.audit")


class AuditLogImmutableError(RuntimeError):
    """Raised when code attempts to modify or delete an audit entry."""


@event.listens_for(models.MaintenanceLog, "before_update")
def _block_log_update(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log entry {target.id} is append-only and cannot be updated")


@event.listens_for(models.MaintenanceLog, "before_delete")
def _block_log_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log entry {target.id} is append-only and cannot be deleted")


def write_log(
    db: Session,
    action: models.LogAction,
    message: str,
    created_by_id: Optional[int],
    request_id: Optional[int] = None,
    equipment_id: Optional[int] = None,
) -> models.MaintenanceLog:
    """
    Append an audit entry to the current unit of work.

    Args:
        db: Database session (the entry is flushed, not committed)
        action: Kind of action being recorded
        message: Human-readable description
        created_by_id: Employee who performed the action
        request_id: Related maintenance request, if any
        equipment_id: Related equipment, if any

    Returns:
        The pending MaintenanceLog entry
    """
    entry = models.MaintenanceLog(
        action=action,
        message=message,
        created_by_id=created_by_id,
        request_id=request_id,
        equipment_id=equipment_id,
    )
    db.add(entry)
    db.flush()
    logger.debug(f"Audit {action.value}: {message}")
    return entry


def get_request_logs(db: Session, request_id: int, limit: int = 100) -> list[models.MaintenanceLog]:
    """Audit entries for a request, most recent first."""
    return (
        db.query(models.MaintenanceLog)
        .filter(models.MaintenanceLog.request_id == request_id)
        .order_by(models.MaintenanceLog.created_at.desc(), models.MaintenanceLog.id.desc())
        .limit(limit)
        .all()
    )


def get_equipment_logs(db: Session, equipment_id: int, limit: int = 100) -> list[models.MaintenanceLog]:
    """Audit entries for a piece of equipment, most recent first."""
    return (
        db.query(models.MaintenanceLog)
        .filter(models.MaintenanceLog.equipment_id == equipment_id)
        .order_by(models.MaintenanceLog.created_at.desc(), models.MaintenanceLog.id.desc())
        .limit(limit)
        .all()
    )


# Message builders. One per workflow action, stage-appropriate wording.

def request_created_message(request: models.MaintenanceRequest, equipment: models.Equipment) -> str:
    msg = (
        f"{request.request_type.value.capitalize()} request '{request.subject}' created "
        f"for equipment {equipment.name} ({equipment.serial_number})"
    )
    if request.scheduled_date:
        msg += f", scheduled for {request.scheduled_date.isoformat()}"
    if request.technician_id:
        msg += f"; default technician #{request.technician_id} pre-filled"
    return msg + "."


def technician_assigned_message(
    technician: models.Employee,
    old_technician_id: Optional[int],
    promoted: bool,
) -> str:
    if old_technician_id and old_technician_id != technician.id:
        msg = f"Technician reassigned from #{old_technician_id} to {technician.name}"
    else:
        msg = f"Technician {technician.name} assigned"
    if promoted:
        msg += "; work started (New → In Progress)"
    return msg + "."


def repaired_message(duration_hours: float) -> str:
    return f"Maintenance Completed: request marked Repaired after {duration_hours:g} hours."


def scrapped_message(equipment: models.Equipment, deactivated: bool) -> str:
    msg = f"Request scrapped. Equipment {equipment.name} ({equipment.serial_number})"
    if deactivated:
        return msg + " has been retired and marked inactive."
    return msg + " was already retired."


def rescheduled_message(old_date, new_date) -> str:
    old = old_date.isoformat() if old_date else "unscheduled"
    return f"Preventive maintenance rescheduled from {old} to {new_date.isoformat()}."
