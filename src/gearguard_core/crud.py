"""CRUD operations for reference data, equipment and request reads.

Workflow mutations on maintenance requests live in ``lifecycle``; this module
covers everything around them: the stage catalog, teams, employees,
categories, equipment and the role-filtered read views.
"""
import logging
from datetime import date
from typing import Optional

from sqlalchemy import case, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, scheduling, schemas
from .assignment import validate_default_technician, validate_equipment_team
from .audit import write_log, get_request_logs, get_equipment_logs
from .authorization import Action, Principal, require
from .database import atomic
from .errors import Conflict, InvalidArgument, NotFound
from .state_machine import STAGE_CATALOG, STAGE_SORT_ORDER, TERMINAL_STAGES
from .visibility import (
    filter_equipment_query,
    filter_request_query,
    get_visible_equipment,
    get_visible_request,
)

logger = logging.getLogger("gearguard-core.crud")

OPEN_STAGES = [models.StageName.NEW, models.StageName.IN_PROGRESS]


def _stage_sort_expression():
    """Build SQLAlchemy CASE expression for stage-based sorting.

    Active work first, closed work last.
    """
    return case(
        *[(models.MaintenanceStage.name == stage, order)
          for stage, order in STAGE_SORT_ORDER.items()],
        else_=99
    )


# ============================================================================
# Stage catalog
# ============================================================================

def seed_stages(db: Session) -> list[models.MaintenanceStage]:
    """
    Insert the fixed stage catalog if missing. Safe to call repeatedly.

    Returns:
        All stages ordered by sequence
    """
    existing = {s.name for s in db.query(models.MaintenanceStage).all()}
    for name, sequence, is_closing, is_scrap_state in STAGE_CATALOG:
        if name not in existing:
            db.add(models.MaintenanceStage(
                name=name,
                sequence=sequence,
                is_closing=is_closing,
                is_scrap_state=is_scrap_state,
            ))
    db.commit()
    return list_stages(db)


def list_stages(db: Session) -> list[models.MaintenanceStage]:
    """Stages ordered by sequence."""
    return db.query(models.MaintenanceStage).order_by(models.MaintenanceStage.sequence).all()


# ============================================================================
# Categories
# ============================================================================

def create_category(db: Session, principal: Principal, data: schemas.CategoryCreate) -> models.EquipmentCategory:
    """Create an equipment category (Admin only)."""
    require(Action.MANAGE_ORGANIZATION, principal)
    if db.query(models.EquipmentCategory).filter(models.EquipmentCategory.name == data.name).first():
        raise Conflict(f"Category already exists: {data.name}")

    category = models.EquipmentCategory(name=data.name)
    db.add(category)
    db.commit()
    db.refresh(category)
    logger.info(f"Created category {category.id}: {category.name}")
    return category


def list_categories(db: Session) -> list[models.EquipmentCategory]:
    return db.query(models.EquipmentCategory).order_by(models.EquipmentCategory.name).all()


# ============================================================================
# Teams
# ============================================================================

def get_team(db: Session, team_id: int) -> models.Team:
    team = db.query(models.Team).filter(models.Team.id == team_id).first()
    if not team:
        raise NotFound(f"Team not found: {team_id}")
    return team


def list_teams(db: Session) -> list[models.Team]:
    return db.query(models.Team).order_by(models.Team.name).all()


def _load_manager(db: Session, manager_id: int) -> models.Employee:
    manager = db.query(models.Employee).filter(models.Employee.id == manager_id).first()
    if not manager:
        raise NotFound(f"Employee not found: {manager_id}")
    if manager.role != models.Role.MANAGER:
        raise InvalidArgument(f"Employee {manager_id} is not a manager (role: {manager.role.value}).")
    return manager


def _release_managed_teams(
    db: Session,
    principal: Principal,
    manager: models.Employee,
    keep_team_id: Optional[int] = None,
) -> list[models.Team]:
    """Clear ``manager_id`` on every team the employee manages except ``keep_team_id``."""
    query = db.query(models.Team).filter(models.Team.manager_id == manager.id)
    if keep_team_id is not None:
        query = query.filter(models.Team.id != keep_team_id)
    released = query.all()
    for team in released:
        team.manager_id = None
        write_log(
            db,
            models.LogAction.TEAM_MEMBERSHIP_CHANGED,
            f"Team {team.name} no longer has a manager ({manager.name} stepped down).",
            created_by_id=principal.id,
        )
    if released:
        logger.info(f"Employee {manager.id} released as manager of teams {[t.id for t in released]}")
    return released


def _clear_default_technician(
    db: Session,
    principal: Principal,
    technician: models.Employee,
    keep_team_id: Optional[int] = None,
) -> list[models.Equipment]:
    """
    Unbind an employee as default technician of equipment outside ``keep_team_id``.

    With no ``keep_team_id`` every binding is cleared.
    """
    query = db.query(models.Equipment).filter(models.Equipment.default_technician_id == technician.id)
    if keep_team_id is not None:
        query = query.filter(models.Equipment.maintenance_team_id != keep_team_id)
    cleared = query.all()
    for equipment in cleared:
        equipment.default_technician_id = None
        write_log(
            db,
            models.LogAction.DEFAULT_TECHNICIAN_CLEARED,
            f"{technician.name} is no longer the default technician of equipment {equipment.serial_number}.",
            created_by_id=principal.id,
            equipment_id=equipment.id,
        )
    if cleared:
        logger.info(f"Employee {technician.id} cleared as default technician of equipment {[e.id for e in cleared]}")
    return cleared


def create_team(db: Session, principal: Principal, data: schemas.TeamCreate) -> models.Team:
    """
    Create a maintenance team (Admin only).

    If a manager is given, the manager also joins the team and stops managing
    any team they managed before.
    """
    require(Action.MANAGE_ORGANIZATION, principal)
    if db.query(models.Team).filter(models.Team.name == data.name).first():
        raise Conflict(f"Team already exists: {data.name}")

    manager = _load_manager(db, data.manager_id) if data.manager_id else None

    with atomic(db, "create_team"):
        team = models.Team(name=data.name)
        db.add(team)
        db.flush()
        if manager:
            _release_managed_teams(db, principal, manager, keep_team_id=team.id)
            team.manager_id = manager.id
            manager.team_id = team.id
            write_log(
                db,
                models.LogAction.TEAM_MEMBERSHIP_CHANGED,
                f"{manager.name} appointed manager of new team {team.name}.",
                created_by_id=principal.id,
            )

    db.refresh(team)
    logger.info(f"Created team {team.id}: {team.name}")
    return team


def set_team_manager(db: Session, principal: Principal, team_id: int, manager_id: Optional[int]) -> models.Team:
    """
    Appoint (or clear) a team's manager (Admin only).

    A manager runs at most one team: appointing them here releases any team
    they managed before.
    """
    require(Action.MANAGE_ORGANIZATION, principal)
    team = get_team(db, team_id)
    manager = _load_manager(db, manager_id) if manager_id else None

    with atomic(db, "set_team_manager"):
        if manager:
            _release_managed_teams(db, principal, manager, keep_team_id=team.id)
        team.manager_id = manager.id if manager else None
        if manager:
            manager.team_id = team.id
            message = f"{manager.name} appointed manager of team {team.name}."
        else:
            message = f"Team {team.name} no longer has a manager."
        write_log(db, models.LogAction.TEAM_MEMBERSHIP_CHANGED, message, created_by_id=principal.id)

    db.refresh(team)
    return team


# ============================================================================
# Employees
# ============================================================================

def get_employee(db: Session, employee_id: int) -> Optional[models.Employee]:
    return db.query(models.Employee).filter(models.Employee.id == employee_id).first()


def create_employee(db: Session, principal: Principal, data: schemas.EmployeeCreate) -> models.Employee:
    """Provision an employee (Admin only)."""
    require(Action.MANAGE_ORGANIZATION, principal)
    if data.team_id is not None:
        get_team(db, data.team_id)
    if db.query(models.Employee).filter(func.lower(models.Employee.email) == data.email.lower()).first():
        raise Conflict(f"Email already registered: {data.email}")

    employee = models.Employee(
        name=data.name,
        email=data.email.lower(),
        role=models.Role(data.role),
        team_id=data.team_id,
    )
    db.add(employee)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"Email already registered: {data.email}")
    db.refresh(employee)
    logger.info(f"Provisioned employee {employee.id} ({employee.role.value})")
    return employee


def list_employees(
    db: Session,
    principal: Principal,
    role: Optional[models.Role] = None,
    team_id: Optional[int] = None,
) -> list[models.Employee]:
    """List employees (Admin only)."""
    require(Action.MANAGE_ORGANIZATION, principal)
    query = db.query(models.Employee)
    if role:
        query = query.filter(models.Employee.role == role)
    if team_id is not None:
        query = query.filter(models.Employee.team_id == team_id)
    return query.order_by(models.Employee.name).all()


def set_employee_team(
    db: Session,
    principal: Principal,
    employee_id: int,
    team_id: Optional[int],
) -> models.Employee:
    """
    Change an employee's team membership (Admin only).

    Requests keep their frozen team; a technician moved to another team stays
    assigned to requests already in flight. In the same unit the employee is
    released as manager of the team they leave and as default technician of
    equipment the new team does not maintain.
    """
    require(Action.MANAGE_ORGANIZATION, principal)
    employee = get_employee(db, employee_id)
    if not employee:
        raise NotFound(f"Employee not found: {employee_id}")
    team = get_team(db, team_id) if team_id is not None else None

    old_team_id = employee.team_id
    if old_team_id == team_id:
        return employee

    with atomic(db, "set_employee_team"):
        _release_managed_teams(db, principal, employee, keep_team_id=team_id)
        _clear_default_technician(db, principal, employee, keep_team_id=team_id)
        employee.team_id = team_id
        if team:
            message = f"{employee.name} moved to team {team.name}."
        else:
            message = f"{employee.name} removed from team #{old_team_id}."
        write_log(db, models.LogAction.TEAM_MEMBERSHIP_CHANGED, message, created_by_id=principal.id)

    db.refresh(employee)
    logger.info(f"Employee {employee_id} team changed {old_team_id} → {team_id}")
    return employee


def update_employee(
    db: Session,
    principal: Principal,
    employee_id: int,
    data: schemas.EmployeeUpdate,
) -> models.Employee:
    """
    Update an employee's name, email or role (Admin only).

    A technician who loses the role is released as default technician
    everywhere; a manager who loses the role is released from the teams they
    manage.

    Raises:
        NotFound: Employee does not exist
        Conflict: Email already registered to another employee
    """
    require(Action.MANAGE_ORGANIZATION, principal)
    employee = get_employee(db, employee_id)
    if not employee:
        raise NotFound(f"Employee not found: {employee_id}")

    changes = data.model_dump(exclude_none=True)
    if "email" in changes:
        changes["email"] = changes["email"].lower()
        taken = (
            db.query(models.Employee)
            .filter(func.lower(models.Employee.email) == changes["email"], models.Employee.id != employee.id)
            .first()
        )
        if taken:
            raise Conflict(f"Email already registered: {data.email}")
    if "role" in changes:
        changes["role"] = models.Role(changes["role"])

    changed = [field for field, value in changes.items() if getattr(employee, field) != value]
    if not changed:
        return employee

    old_role = employee.role
    new_role = changes.get("role", old_role)
    try:
        with atomic(db, "update_employee"):
            if old_role == models.Role.TECHNICIAN and new_role != models.Role.TECHNICIAN:
                _clear_default_technician(db, principal, employee)
            if old_role == models.Role.MANAGER and new_role != models.Role.MANAGER:
                _release_managed_teams(db, principal, employee)
            for field in changed:
                setattr(employee, field, changes[field])
            write_log(
                db,
                models.LogAction.EMPLOYEE_UPDATED,
                f"Employee {employee.name} updated ({', '.join(changed)}).",
                created_by_id=principal.id,
            )
    except IntegrityError:
        raise Conflict(f"Email already registered: {data.email}")

    db.refresh(employee)
    logger.info(f"Updated employee {employee.id}: {', '.join(changed)}")
    return employee


# ============================================================================
# Departments
# ============================================================================

def create_department(db: Session, principal: Principal, data: schemas.DepartmentCreate) -> models.Department:
    """Create a department (Admin only)."""
    require(Action.MANAGE_ORGANIZATION, principal)
    if db.query(models.Department).filter(models.Department.name == data.name).first():
        raise Conflict(f"Department already exists: {data.name}")

    department = models.Department(name=data.name)
    db.add(department)
    db.commit()
    db.refresh(department)
    logger.info(f"Created department {department.id}: {department.name}")
    return department


def list_departments(db: Session) -> list[models.Department]:
    return db.query(models.Department).order_by(models.Department.name).all()


# ============================================================================
# Equipment
# ============================================================================

def create_equipment(db: Session, principal: Principal, data: schemas.EquipmentCreate) -> models.Equipment:
    """
    Create equipment bound to a maintenance team.

    Raises:
        Forbidden: Manager targeting another team, or a role that cannot manage equipment
        NotFound: Team, category, owner or department does not exist
        InvalidArgument: Default technician does not belong to the team
        Conflict: Serial number already in use
    """
    validate_equipment_team(principal, data.maintenance_team_id)
    get_team(db, data.maintenance_team_id)
    if not db.query(models.EquipmentCategory).filter(models.EquipmentCategory.id == data.category_id).first():
        raise NotFound(f"Category not found: {data.category_id}")
    validate_default_technician(db, data.default_technician_id, data.maintenance_team_id)
    if data.employee_id is not None and not get_employee(db, data.employee_id):
        raise NotFound(f"Employee not found: {data.employee_id}")
    if data.department_id is not None and not db.get(models.Department, data.department_id):
        raise NotFound(f"Department not found: {data.department_id}")

    if db.query(models.Equipment).filter(models.Equipment.serial_number == data.serial_number).first():
        raise Conflict("Serial number must be unique.")

    try:
        with atomic(db, "create_equipment"):
            equipment = models.Equipment(
                name=data.name,
                serial_number=data.serial_number,
                location=data.location,
                purchase_date=data.purchase_date,
                warranty_info=data.warranty_info,
                category_id=data.category_id,
                maintenance_team_id=data.maintenance_team_id,
                default_technician_id=data.default_technician_id,
                employee_id=data.employee_id,
                department_id=data.department_id,
                is_active=True,
            )
            db.add(equipment)
            db.flush()
            write_log(
                db,
                models.LogAction.EQUIPMENT_CREATED,
                f"Equipment {equipment.name} ({equipment.serial_number}) registered at {equipment.location}.",
                created_by_id=principal.id,
                equipment_id=equipment.id,
            )
    except IntegrityError:
        raise Conflict("Serial number must be unique.")

    db.refresh(equipment)
    logger.info(f"Created equipment {equipment.id} ({equipment.serial_number}) for team {equipment.maintenance_team_id}")
    return equipment


def get_equipment(db: Session, principal: Principal, equipment_id: int) -> models.Equipment:
    return get_visible_equipment(db, principal, equipment_id)


def list_equipment(
    db: Session,
    principal: Principal,
    skip: int = 0,
    limit: int = 10,
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    department_id: Optional[int] = None,
    include_inactive: bool = False,
) -> tuple[list[models.Equipment], int]:
    """
    List equipment visible to the principal, with pagination.

    Returns:
        Tuple of (equipment list, total count)
    """
    query = filter_equipment_query(db.query(models.Equipment), principal)

    if not include_inactive:
        query = query.filter(models.Equipment.is_active.is_(True))

    if category_id is not None:
        query = query.filter(models.Equipment.category_id == category_id)

    if department_id is not None:
        query = query.filter(models.Equipment.department_id == department_id)

    if search:
        search_pattern = f"%{search}%"
        query = query.filter(
            or_(
                models.Equipment.name.ilike(search_pattern),
                models.Equipment.serial_number.ilike(search_pattern),
            )
        )

    total = query.count()
    items = (
        query.order_by(models.Equipment.created_at.desc(), models.Equipment.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total


def get_equipment_stats(db: Session, principal: Principal, equipment_id: int) -> dict:
    """Total and open request counts for a piece of equipment."""
    equipment = get_visible_equipment(db, principal, equipment_id)

    base = db.query(models.MaintenanceRequest).filter(models.MaintenanceRequest.equipment_id == equipment.id)
    total = base.count()
    open_count = (
        base.join(models.MaintenanceStage)
        .filter(models.MaintenanceStage.name.in_(OPEN_STAGES))
        .count()
    )
    return {
        "equipment_id": equipment.id,
        "total_requests": total,
        "open_requests": open_count,
        "status": "Maintenance Required" if open_count > 0 else "Operational",
        "is_active": equipment.is_active,
    }


def get_equipment_requests(db: Session, principal: Principal, equipment_id: int) -> list[models.MaintenanceRequest]:
    """Request history of a piece of equipment, newest first."""
    equipment = get_visible_equipment(db, principal, equipment_id)
    query = db.query(models.MaintenanceRequest).filter(models.MaintenanceRequest.equipment_id == equipment.id)
    query = filter_request_query(query, principal)
    return query.order_by(models.MaintenanceRequest.created_at.desc(), models.MaintenanceRequest.id.desc()).all()


def get_equipment_history(db: Session, principal: Principal, equipment_id: int, limit: int = 100) -> list[models.MaintenanceLog]:
    equipment = get_visible_equipment(db, principal, equipment_id)
    return get_equipment_logs(db, equipment.id, limit)


def assign_equipment_owner(
    db: Session,
    principal: Principal,
    equipment_id: int,
    employee_id: Optional[int],
) -> models.Equipment:
    """Assign equipment to an employee, or release it (Admin, or Manager of its team)."""
    equipment = db.query(models.Equipment).filter(models.Equipment.id == equipment_id).first()
    if not equipment:
        raise NotFound(f"Equipment not found: {equipment_id}")
    require(Action.UPDATE_EQUIPMENT, principal, equipment)

    owner = None
    if employee_id is not None:
        owner = get_employee(db, employee_id)
        if not owner:
            raise NotFound(f"Employee not found: {employee_id}")

    with atomic(db, "assign_equipment_owner"):
        equipment.employee_id = employee_id
        message = (
            f"Equipment {equipment.serial_number} assigned to {owner.name}."
            if owner else f"Equipment {equipment.serial_number} released from its holder."
        )
        write_log(
            db,
            models.LogAction.EQUIPMENT_OWNER_CHANGED,
            message,
            created_by_id=principal.id,
            equipment_id=equipment.id,
        )

    db.refresh(equipment)
    return equipment


def change_equipment_team(
    db: Session,
    principal: Principal,
    equipment_id: int,
    team_id: int,
    default_technician_id: Optional[int] = None,
) -> models.Equipment:
    """
    Move equipment to another maintenance team (Admin only).

    Existing requests keep the team they were created with. The default
    technician is replaced (or cleared) since it must belong to the new team.
    """
    require(Action.CHANGE_EQUIPMENT_TEAM, principal)
    equipment = db.query(models.Equipment).filter(models.Equipment.id == equipment_id).first()
    if not equipment:
        raise NotFound(f"Equipment not found: {equipment_id}")
    team = get_team(db, team_id)
    validate_default_technician(db, default_technician_id, team.id)

    old_team_id = equipment.maintenance_team_id
    with atomic(db, "change_equipment_team"):
        equipment.maintenance_team_id = team.id
        equipment.default_technician_id = default_technician_id
        write_log(
            db,
            models.LogAction.EQUIPMENT_TEAM_CHANGED,
            f"Equipment {equipment.serial_number} moved from team #{old_team_id} to {team.name}.",
            created_by_id=principal.id,
            equipment_id=equipment.id,
        )

    db.refresh(equipment)
    logger.info(f"Equipment {equipment_id} moved from team {old_team_id} to {team_id}")
    return equipment


# ============================================================================
# Maintenance request reads
# ============================================================================

def get_request(db: Session, principal: Principal, request_id: int) -> models.MaintenanceRequest:
    return get_visible_request(db, principal, request_id)


def list_requests(
    db: Session,
    principal: Principal,
    skip: int = 0,
    limit: int = 10,
    stage_id: Optional[int] = None,
    request_type: Optional[models.RequestType] = None,
    technician_id: Optional[int] = None,
    equipment_id: Optional[int] = None,
    overdue: Optional[bool] = None,
    on: Optional[date] = None,
) -> tuple[list[models.MaintenanceRequest], int]:
    """
    List requests visible to the principal, with pagination.

    Args:
        db: Database session
        principal: Authenticated caller
        skip: Number of records to skip
        limit: Maximum number of records to return
        stage_id: Filter by stage
        request_type: Filter by corrective/preventive
        technician_id: Filter by assigned technician
        equipment_id: Filter by equipment
        overdue: True for overdue requests only, False to exclude them
        on: Reference date for the overdue filter (defaults to today)

    Returns:
        Tuple of (requests list, total count)
    """
    query = filter_request_query(db.query(models.MaintenanceRequest), principal)
    query = query.join(models.MaintenanceStage, models.MaintenanceRequest.stage_id == models.MaintenanceStage.id)

    if stage_id is not None:
        query = query.filter(models.MaintenanceRequest.stage_id == stage_id)
    if request_type:
        query = query.filter(models.MaintenanceRequest.request_type == request_type)
    if technician_id is not None:
        query = query.filter(models.MaintenanceRequest.technician_id == technician_id)
    if equipment_id is not None:
        query = query.filter(models.MaintenanceRequest.equipment_id == equipment_id)

    if overdue is not None:
        overdue_clause = (
            (models.MaintenanceRequest.request_type == models.RequestType.PREVENTIVE)
            & models.MaintenanceRequest.scheduled_date.isnot(None)
            & (models.MaintenanceRequest.scheduled_date < (on or scheduling.today()))
            & models.MaintenanceStage.name.notin_(list(TERMINAL_STAGES))
        )
        query = query.filter(overdue_clause if overdue else ~overdue_clause)

    total = query.count()
    items = (
        query.order_by(_stage_sort_expression(), models.MaintenanceRequest.created_at.desc(), models.MaintenanceRequest.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total


def get_calendar(
    db: Session,
    principal: Principal,
    start: date,
    end: date,
) -> list[models.MaintenanceRequest]:
    """Preventive requests scheduled within [start, end], role-filtered."""
    if end < start:
        raise InvalidArgument("Calendar end date must not be before start date.")
    query = filter_request_query(db.query(models.MaintenanceRequest), principal)
    return (
        query.filter(
            models.MaintenanceRequest.request_type == models.RequestType.PREVENTIVE,
            models.MaintenanceRequest.scheduled_date >= start,
            models.MaintenanceRequest.scheduled_date <= end,
        )
        .order_by(models.MaintenanceRequest.scheduled_date, models.MaintenanceRequest.id)
        .all()
    )


def get_request_history(db: Session, principal: Principal, request_id: int, limit: int = 100) -> list[models.MaintenanceLog]:
    """Audit trail of a request, most recent first."""
    request = get_visible_request(db, principal, request_id)
    return get_request_logs(db, request.id, limit)


# ============================================================================
# Reports
# ============================================================================

def get_request_breakdown(db: Session, principal: Principal, group_by: str) -> list[dict]:
    """
    Count requests grouped by team or by equipment category (Admin only).

    Raises:
        InvalidArgument: If group_by is not 'team' or 'category'
    """
    require(Action.VIEW_REPORTS, principal)

    if group_by == "team":
        rows = (
            db.query(models.Team.name, func.count(models.MaintenanceRequest.id))
            .join(models.MaintenanceRequest, models.MaintenanceRequest.team_id == models.Team.id)
            .group_by(models.Team.id, models.Team.name)
            .order_by(models.Team.name)
            .all()
        )
    elif group_by == "category":
        rows = (
            db.query(models.EquipmentCategory.name, func.count(models.MaintenanceRequest.id))
            .join(models.Equipment, models.Equipment.category_id == models.EquipmentCategory.id)
            .join(models.MaintenanceRequest, models.MaintenanceRequest.equipment_id == models.Equipment.id)
            .group_by(models.EquipmentCategory.id, models.EquipmentCategory.name)
            .order_by(models.EquipmentCategory.name)
            .all()
        )
    else:
        raise InvalidArgument("Invalid group_by parameter. Use 'team' or 'category'.")

    return [{"group": name, "count": count} for name, count in rows]
