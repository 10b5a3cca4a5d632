"""Authorization context and the central role/team permission rules.

Every rule that decides whether a principal may perform an action lives in
``authorize``. It is a pure function over the action, the principal and the
target entity, so it can be exercised without a database.

Team scope:
- Admin is universally scoped
- Manager and Technician are scoped to their own team
- Employee has no team scope; they act on what they own or created
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional

from .errors import Forbidden
from .models import Role

logger = logging.getLogger("gearguard-core.authorization")


@dataclass(frozen=True)
class Principal:
    """An already-authenticated caller."""

    id: int
    role: Role
    team_id: Optional[int] = None

    @classmethod
    def from_employee(cls, employee: Any) -> "Principal":
        return cls(id=employee.id, role=Role(employee.role), team_id=employee.team_id)


@dataclass(frozen=True)
class Scope:
    """Role and team scope derived from a principal."""

    role: Role
    team_id: Optional[int]

    @property
    def is_universal(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_team_scoped(self) -> bool:
        return self.role in (Role.MANAGER, Role.TECHNICIAN)


def scope_for(principal: Principal) -> Scope:
    """Derive the role and team scope of a principal. Performs no I/O."""
    if principal.role == Role.ADMIN:
        return Scope(role=Role.ADMIN, team_id=None)
    if principal.role == Role.EMPLOYEE:
        return Scope(role=Role.EMPLOYEE, team_id=None)
    return Scope(role=principal.role, team_id=principal.team_id)


def in_team_scope(scope: Scope, team_id: Optional[int]) -> bool:
    """True if a team-bound entity falls inside the scope's team."""
    if scope.is_universal:
        return True
    if not scope.is_team_scoped or scope.team_id is None:
        return False
    return team_id == scope.team_id


class Action(str, enum.Enum):
    """Actions gated by authorization."""

    CREATE_EQUIPMENT = "create_equipment"
    UPDATE_EQUIPMENT = "update_equipment"
    CHANGE_EQUIPMENT_TEAM = "change_equipment_team"
    CREATE_REQUEST = "create_request"
    VIEW_REQUEST = "view_request"
    ASSIGN_TECHNICIAN = "assign_technician"
    MARK_REPAIRED = "mark_repaired"
    SCRAP_REQUEST = "scrap_request"
    RESCHEDULE_REQUEST = "reschedule_request"
    MANAGE_ORGANIZATION = "manage_organization"
    VIEW_REPORTS = "view_reports"


@dataclass(frozen=True)
class AuthorizationDecision:
    """Outcome of an authorization check."""

    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = AuthorizationDecision(True)


def _deny(reason: str) -> AuthorizationDecision:
    return AuthorizationDecision(False, reason)


def can_view_request(scope: Scope, principal_id: int, request: Any) -> bool:
    """Visibility rule for a single maintenance request."""
    if scope.is_universal:
        return True
    if scope.role == Role.EMPLOYEE:
        return request.created_by_id == principal_id
    return in_team_scope(scope, request.team_id)


def can_view_equipment(scope: Scope, principal_id: int, equipment: Any) -> bool:
    """Visibility rule for a single piece of equipment."""
    if scope.is_universal:
        return True
    if scope.role == Role.EMPLOYEE:
        return equipment.employee_id == principal_id
    return in_team_scope(scope, equipment.maintenance_team_id)


def authorize(action: Action, principal: Principal, entity: Any = None) -> AuthorizationDecision:
    """
    Decide whether a principal may perform an action on an entity.

    Args:
        action: The action being attempted
        principal: The authenticated caller
        entity: Target of the action. A maintenance request for request actions,
            an object exposing ``maintenance_team_id`` for equipment actions.

    Returns:
        AuthorizationDecision with a human-readable reason when denied
    """
    scope = scope_for(principal)
    role = scope.role

    if action == Action.CREATE_REQUEST:
        return ALLOW

    if action in (Action.MANAGE_ORGANIZATION, Action.VIEW_REPORTS, Action.CHANGE_EQUIPMENT_TEAM):
        if scope.is_universal:
            return ALLOW
        return _deny("Only administrators may perform this action.")

    if action in (Action.CREATE_EQUIPMENT, Action.UPDATE_EQUIPMENT):
        if scope.is_universal:
            return ALLOW
        if role != Role.MANAGER:
            return _deny("Only administrators and managers may manage equipment.")
        if not in_team_scope(scope, entity.maintenance_team_id):
            return _deny("Managers can only manage equipment for their own maintenance team.")
        return ALLOW

    if action == Action.VIEW_REQUEST:
        if can_view_request(scope, principal.id, entity):
            return ALLOW
        return _deny("Request is outside your visibility scope.")

    if action == Action.RESCHEDULE_REQUEST:
        if can_view_request(scope, principal.id, entity):
            return ALLOW
        return _deny("You cannot reschedule a request outside your visibility scope.")

    if action == Action.ASSIGN_TECHNICIAN:
        if scope.is_universal:
            return ALLOW
        if role == Role.EMPLOYEE:
            return _deny("Employees cannot assign technicians.")
        if not in_team_scope(scope, entity.team_id):
            return _deny("You can only assign technicians to requests of your own team.")
        return ALLOW

    if action == Action.MARK_REPAIRED:
        # Managers plan and assign work but do not certify completion
        if role != Role.TECHNICIAN:
            return _deny("Only technicians can mark a request as Repaired.")
        if not in_team_scope(scope, entity.team_id):
            return _deny("You can only complete requests of your own team.")
        return ALLOW

    if action == Action.SCRAP_REQUEST:
        if scope.is_universal:
            return ALLOW
        if role != Role.MANAGER:
            return _deny("Only managers and administrators can scrap equipment.")
        if not in_team_scope(scope, entity.team_id):
            return _deny("Managers can only scrap requests of their own team.")
        return ALLOW

    return _deny(f"Unknown action: {action}")


def require(action: Action, principal: Principal, entity: Any = None) -> None:
    """
    Enforce an authorization rule.

    Raises:
        Forbidden: If the principal may not perform the action
    """
    decision = authorize(action, principal, entity)
    if not decision.allowed:
        logger.warning(
            f"Denied {action.value} for employee {principal.id} ({principal.role.value}): {decision.reason}"
        )
        raise Forbidden(decision.reason)
