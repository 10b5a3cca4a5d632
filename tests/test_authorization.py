"""Tests for the central authorization rules (no database involved)."""
from types import SimpleNamespace

import pytest
from gearguard_core.authorization import (
    Action,
    Principal,
    authorize,
    can_view_equipment,
    can_view_request,
    in_team_scope,
    require,
    scope_for,
)
from gearguard_core.errors import Forbidden
from gearguard_core.models import Role

TEAM_T = 1
TEAM_U = 2

ADMIN = Principal(id=1, role=Role.ADMIN)
MANAGER_T = Principal(id=2, role=Role.MANAGER, team_id=TEAM_T)
TECH_T = Principal(id=3, role=Role.TECHNICIAN, team_id=TEAM_T)
TECH_U = Principal(id=4, role=Role.TECHNICIAN, team_id=TEAM_U)
EMPLOYEE = Principal(id=5, role=Role.EMPLOYEE)
TEAMLESS_TECH = Principal(id=6, role=Role.TECHNICIAN, team_id=None)


def request_of(team_id, created_by_id=99):
    return SimpleNamespace(team_id=team_id, created_by_id=created_by_id)


def equipment_of(team_id, employee_id=None):
    return SimpleNamespace(maintenance_team_id=team_id, employee_id=employee_id)


class TestScope:
    """Test scope derivation."""

    def test_admin_is_universal(self):
        scope = scope_for(ADMIN)
        assert scope.is_universal
        assert in_team_scope(scope, TEAM_U)

    def test_team_roles_scoped_to_own_team(self):
        for principal in (MANAGER_T, TECH_T):
            scope = scope_for(principal)
            assert scope.is_team_scoped
            assert in_team_scope(scope, TEAM_T)
            assert not in_team_scope(scope, TEAM_U)

    def test_employee_has_no_team_scope(self):
        scope = scope_for(Principal(id=7, role=Role.EMPLOYEE, team_id=TEAM_T))
        assert scope.team_id is None
        assert not in_team_scope(scope, TEAM_T)

    def test_teamless_technician_sees_nothing(self):
        assert not in_team_scope(scope_for(TEAMLESS_TECH), TEAM_T)
        assert not in_team_scope(scope_for(TEAMLESS_TECH), None)


class TestVisibilityRules:
    """Test per-entity read rules."""

    def test_request_visibility(self):
        request = request_of(TEAM_T, created_by_id=EMPLOYEE.id)
        assert can_view_request(scope_for(ADMIN), ADMIN.id, request)
        assert can_view_request(scope_for(MANAGER_T), MANAGER_T.id, request)
        assert can_view_request(scope_for(TECH_T), TECH_T.id, request)
        assert not can_view_request(scope_for(TECH_U), TECH_U.id, request)
        assert can_view_request(scope_for(EMPLOYEE), EMPLOYEE.id, request)

    def test_employee_only_sees_own_requests(self):
        other = request_of(TEAM_T, created_by_id=42)
        assert not can_view_request(scope_for(EMPLOYEE), EMPLOYEE.id, other)

    def test_equipment_visibility(self):
        equipment = equipment_of(TEAM_T, employee_id=EMPLOYEE.id)
        assert can_view_equipment(scope_for(ADMIN), ADMIN.id, equipment)
        assert can_view_equipment(scope_for(TECH_T), TECH_T.id, equipment)
        assert not can_view_equipment(scope_for(TECH_U), TECH_U.id, equipment)
        assert can_view_equipment(scope_for(EMPLOYEE), EMPLOYEE.id, equipment)
        assert not can_view_equipment(scope_for(EMPLOYEE), EMPLOYEE.id, equipment_of(TEAM_T))


class TestAuthorize:
    """Test the action rules."""

    def test_anyone_can_create_requests(self):
        for principal in (ADMIN, MANAGER_T, TECH_T, EMPLOYEE, TEAMLESS_TECH):
            assert authorize(Action.CREATE_REQUEST, principal)

    def test_equipment_creation(self):
        assert authorize(Action.CREATE_EQUIPMENT, ADMIN, equipment_of(TEAM_U))
        assert authorize(Action.CREATE_EQUIPMENT, MANAGER_T, equipment_of(TEAM_T))

        decision = authorize(Action.CREATE_EQUIPMENT, MANAGER_T, equipment_of(TEAM_U))
        assert not decision
        assert "own maintenance team" in decision.reason

        assert not authorize(Action.CREATE_EQUIPMENT, TECH_T, equipment_of(TEAM_T))
        assert not authorize(Action.CREATE_EQUIPMENT, EMPLOYEE, equipment_of(TEAM_T))

    def test_admin_only_actions(self):
        for action in (Action.MANAGE_ORGANIZATION, Action.VIEW_REPORTS, Action.CHANGE_EQUIPMENT_TEAM):
            assert authorize(action, ADMIN)
            for principal in (MANAGER_T, TECH_T, EMPLOYEE):
                assert not authorize(action, principal)

    def test_assign_technician(self):
        request = request_of(TEAM_T)
        assert authorize(Action.ASSIGN_TECHNICIAN, ADMIN, request)
        assert authorize(Action.ASSIGN_TECHNICIAN, MANAGER_T, request)
        assert authorize(Action.ASSIGN_TECHNICIAN, TECH_T, request)
        assert not authorize(Action.ASSIGN_TECHNICIAN, TECH_U, request)
        assert not authorize(Action.ASSIGN_TECHNICIAN, EMPLOYEE, request)

    def test_mark_repaired_only_team_technicians(self):
        """Test that only technicians of the request's team may complete it."""
        request = request_of(TEAM_T)
        assert authorize(Action.MARK_REPAIRED, TECH_T, request)
        assert not authorize(Action.MARK_REPAIRED, TECH_U, request)
        assert not authorize(Action.MARK_REPAIRED, MANAGER_T, request)
        assert not authorize(Action.MARK_REPAIRED, ADMIN, request)
        assert not authorize(Action.MARK_REPAIRED, EMPLOYEE, request)

    def test_scrap_requires_manager_or_admin(self):
        request = request_of(TEAM_T)
        assert authorize(Action.SCRAP_REQUEST, ADMIN, request)
        assert authorize(Action.SCRAP_REQUEST, MANAGER_T, request)
        assert not authorize(Action.SCRAP_REQUEST, Principal(id=8, role=Role.MANAGER, team_id=TEAM_U), request)
        assert not authorize(Action.SCRAP_REQUEST, TECH_T, request)
        assert not authorize(Action.SCRAP_REQUEST, EMPLOYEE, request)

    def test_reschedule_follows_visibility(self):
        own = request_of(TEAM_T, created_by_id=EMPLOYEE.id)
        assert authorize(Action.RESCHEDULE_REQUEST, EMPLOYEE, own)
        assert authorize(Action.RESCHEDULE_REQUEST, TECH_T, own)
        assert not authorize(Action.RESCHEDULE_REQUEST, TECH_U, own)

    def test_require_raises_forbidden_with_reason(self):
        with pytest.raises(Forbidden) as exc_info:
            require(Action.SCRAP_REQUEST, TECH_T, request_of(TEAM_T))

        assert exc_info.value.status_code == 403
        assert "managers and administrators" in exc_info.value.message

    def test_require_passes_silently(self):
        require(Action.SCRAP_REQUEST, ADMIN, request_of(TEAM_U))
