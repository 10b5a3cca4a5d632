"""Tests for reference data, equipment management and role-filtered reads."""
from datetime import timedelta

import pytest
from gearguard_core import crud, lifecycle, schemas
from gearguard_core.authorization import Principal
from gearguard_core.errors import Conflict, Forbidden, InvalidArgument, NotFound
from gearguard_core.models import Employee, LogAction, MaintenanceLog, MaintenanceStage, RequestType, Role, StageName


def equipment_data(org, **overrides):
    data = dict(
        name="Forklift",
        serial_number="SN-0100",
        location="Warehouse",
        category_id=org.category.id,
        maintenance_team_id=org.team_t.id,
    )
    data.update(overrides)
    return schemas.EquipmentCreate(**data)


class TestStageCatalog:
    """Test stage seeding."""

    def test_seed_is_idempotent(self, db):
        crud.seed_stages(db)
        crud.seed_stages(db)

        stages = crud.list_stages(db)
        assert [s.name for s in stages] == [
            StageName.NEW, StageName.IN_PROGRESS, StageName.REPAIRED, StageName.SCRAP,
        ]
        assert db.query(MaintenanceStage).count() == 4
        assert [s.is_scrap_state for s in stages] == [False, False, False, True]


class TestEquipment:
    """Test equipment creation and management."""

    def test_manager_creates_for_own_team(self, db, org, principals):
        equipment = crud.create_equipment(
            db, principals.manager, equipment_data(org, default_technician_id=org.technician.id)
        )

        assert equipment.is_active is True
        assert equipment.default_technician_id == org.technician.id
        history = crud.get_equipment_history(db, principals.admin, equipment.id)
        assert [entry.action for entry in history] == [LogAction.EQUIPMENT_CREATED]

    def test_manager_cannot_create_for_other_team(self, db, org, principals):
        with pytest.raises(Forbidden):
            crud.create_equipment(db, principals.manager, equipment_data(org, maintenance_team_id=org.team_u.id))

    def test_technician_cannot_create(self, db, org, principals):
        with pytest.raises(Forbidden):
            crud.create_equipment(db, principals.technician, equipment_data(org))

    def test_default_technician_must_belong_to_team(self, db, org, principals):
        with pytest.raises(InvalidArgument):
            crud.create_equipment(
                db, principals.admin, equipment_data(org, default_technician_id=org.technician_u.id)
            )
        with pytest.raises(InvalidArgument):
            crud.create_equipment(
                db, principals.admin, equipment_data(org, default_technician_id=org.manager.id)
            )

    def test_serial_number_unique(self, db, org, principals):
        with pytest.raises(Conflict):
            crud.create_equipment(db, principals.admin, equipment_data(org, serial_number="SN-0001"))

    def test_unknown_category(self, db, org, principals):
        with pytest.raises(NotFound):
            crud.create_equipment(db, principals.admin, equipment_data(org, category_id=999))

    def test_assign_owner(self, db, org, principals):
        equipment = crud.assign_equipment_owner(db, principals.manager, org.equipment.id, org.technician.id)
        assert equipment.employee_id == org.technician.id

        equipment = crud.assign_equipment_owner(db, principals.manager, org.equipment.id, None)
        assert equipment.employee_id is None

        with pytest.raises(Forbidden):
            crud.assign_equipment_owner(db, principals.manager_u, org.equipment.id, org.employee.id)

    def test_change_team_admin_only(self, db, org, principals):
        with pytest.raises(Forbidden):
            crud.change_equipment_team(db, principals.manager, org.equipment.id, org.team_u.id)

        equipment = crud.change_equipment_team(
            db, principals.admin, org.equipment.id, org.team_u.id, org.technician_u.id
        )
        assert equipment.maintenance_team_id == org.team_u.id
        assert equipment.default_technician_id == org.technician_u.id

    def test_change_team_rejects_foreign_default_technician(self, db, org, principals):
        with pytest.raises(InvalidArgument):
            crud.change_equipment_team(db, principals.admin, org.equipment.id, org.team_u.id, org.technician.id)

    def test_stats(self, db, org, principals, make_request):
        stats = crud.get_equipment_stats(db, principals.admin, org.equipment.id)
        assert stats["total_requests"] == 0
        assert stats["status"] == "Operational"

        make_request()
        closed = make_request(subject="Guard rail loose")
        lifecycle.assign_technician(db, principals.manager, closed.id, org.technician.id)
        lifecycle.mark_repaired(db, principals.technician, closed.id, duration_hours=1)

        stats = crud.get_equipment_stats(db, principals.admin, org.equipment.id)
        assert stats["total_requests"] == 2
        assert stats["open_requests"] == 1
        assert stats["status"] == "Maintenance Required"


class TestEquipmentVisibility:
    """Test role-filtered equipment reads."""

    def test_list_by_role(self, db, org, principals):
        assert crud.list_equipment(db, principals.admin)[1] == 1
        assert crud.list_equipment(db, principals.technician)[1] == 1
        assert crud.list_equipment(db, principals.employee)[1] == 1
        assert crud.list_equipment(db, principals.technician_u)[1] == 0

    def test_teamless_technician_sees_nothing(self, db, principals):
        loner = Employee(name="Lone Tech", email="lone@example.com", role=Role.TECHNICIAN)
        db.add(loner)
        db.commit()

        principal = Principal.from_employee(loner)
        assert crud.list_equipment(db, principal) == ([], 0)
        assert crud.list_requests(db, principal) == ([], 0)

    def test_hidden_equipment_is_not_found(self, db, org, principals):
        with pytest.raises(NotFound):
            crud.get_equipment(db, principals.technician_u, org.equipment.id)

    def test_inactive_hidden_by_default(self, db, org, principals, make_request):
        request = make_request()
        lifecycle.scrap_request(db, principals.manager, request.id)

        assert crud.list_equipment(db, principals.admin)[1] == 0
        assert crud.list_equipment(db, principals.admin, include_inactive=True)[1] == 1

    def test_search_and_pagination(self, db, org, principals):
        for i in range(3):
            crud.create_equipment(
                db, principals.admin, equipment_data(org, name=f"Drill {i}", serial_number=f"DR-{i}")
            )

        items, total = crud.list_equipment(db, principals.admin, search="drill", limit=2)
        assert total == 3
        assert len(items) == 2

        items, total = crud.list_equipment(db, principals.admin, search="SN-0001")
        assert [e.id for e in items] == [org.equipment.id]


class TestRequestReads:
    """Test role-filtered request reads."""

    def test_visibility_by_role(self, db, org, principals, make_request):
        mine = make_request()
        make_request(principal=principals.technician, subject="Oil change due")

        assert crud.list_requests(db, principals.admin)[1] == 2
        assert crud.list_requests(db, principals.manager)[1] == 2
        assert crud.list_requests(db, principals.technician_u)[1] == 0

        items, total = crud.list_requests(db, principals.employee)
        assert total == 1
        assert items[0].id == mine.id

    def test_out_of_scope_read_is_not_found(self, db, principals, make_request):
        request = make_request()
        with pytest.raises(NotFound):
            crud.get_request(db, principals.technician_u, request.id)
        with pytest.raises(NotFound):
            crud.get_request_history(db, principals.manager_u, request.id)

    def test_active_work_listed_first(self, db, org, principals, make_request):
        waiting = make_request()
        working = make_request(subject="Noisy bearing")
        lifecycle.assign_technician(db, principals.manager, working.id, org.technician.id)

        items, _ = crud.list_requests(db, principals.admin)
        assert [r.id for r in items] == [working.id, waiting.id]

    def test_filters(self, db, org, principals, make_request, tomorrow):
        corrective = make_request()
        preventive = make_request(request_type=RequestType.PREVENTIVE, scheduled_date=tomorrow)
        lifecycle.assign_technician(db, principals.manager, corrective.id, org.technician.id)

        items, _ = crud.list_requests(db, principals.admin, request_type=RequestType.PREVENTIVE)
        assert [r.id for r in items] == [preventive.id]

        items, _ = crud.list_requests(db, principals.admin, technician_id=org.technician.id)
        assert [r.id for r in items] == [corrective.id]

        later = tomorrow + timedelta(days=1)
        items, _ = crud.list_requests(db, principals.admin, overdue=True, on=later)
        assert [r.id for r in items] == [preventive.id]

        items, _ = crud.list_requests(db, principals.admin, overdue=False, on=later)
        assert [r.id for r in items] == [corrective.id]

        items, _ = crud.list_requests(db, principals.admin, overdue=True)
        assert items == []

    def test_calendar(self, db, principals, make_request, tomorrow):
        inside = make_request(request_type=RequestType.PREVENTIVE, scheduled_date=tomorrow)
        make_request(request_type=RequestType.PREVENTIVE, scheduled_date=tomorrow + timedelta(days=40))
        make_request()

        calendar = crud.get_calendar(db, principals.manager, tomorrow, tomorrow + timedelta(days=7))
        assert [r.id for r in calendar] == [inside.id]

        with pytest.raises(InvalidArgument):
            crud.get_calendar(db, principals.manager, tomorrow, tomorrow - timedelta(days=1))


class TestOrganization:
    """Test teams, employees and categories."""

    def test_admin_only(self, db, principals):
        with pytest.raises(Forbidden):
            crud.create_team(db, principals.manager, schemas.TeamCreate(name="Painters"))
        with pytest.raises(Forbidden):
            crud.create_category(db, principals.technician, schemas.CategoryCreate(name="Vehicles"))
        with pytest.raises(Forbidden):
            crud.list_employees(db, principals.employee)

    def test_create_team_with_manager(self, db, principals):
        boss = crud.create_employee(
            db, principals.admin, schemas.EmployeeCreate(name="Bo Boss", email="bo@example.com", role=Role.MANAGER)
        )

        team = crud.create_team(db, principals.admin, schemas.TeamCreate(name="Painters", manager_id=boss.id))

        db.refresh(boss)
        assert team.manager_id == boss.id
        assert boss.team_id == team.id

    def test_duplicate_names_conflict(self, db, org, principals):
        with pytest.raises(Conflict):
            crud.create_team(db, principals.admin, schemas.TeamCreate(name="Mechanics"))
        with pytest.raises(Conflict):
            crud.create_category(db, principals.admin, schemas.CategoryCreate(name="Machinery"))
        with pytest.raises(Conflict):
            crud.create_employee(
                db, principals.admin, schemas.EmployeeCreate(name="Ada Again", email="ADA@example.com")
            )

    def test_team_manager_must_be_manager(self, db, org, principals):
        with pytest.raises(InvalidArgument):
            crud.set_team_manager(db, principals.admin, org.team_t.id, org.technician.id)

    def test_move_technician_between_teams(self, db, org, principals):
        employee = crud.set_employee_team(db, principals.admin, org.technician_b.id, org.team_u.id)

        assert employee.team_id == org.team_u.id
        team_u = crud.get_team(db, org.team_u.id)
        assert org.technician_b.id in [t.id for t in team_u.technicians]

    def test_moved_technician_released_as_default_technician(self, db, org, principals):
        org.equipment.default_technician_id = org.technician.id
        db.commit()

        crud.set_employee_team(db, principals.admin, org.technician.id, org.team_u.id)

        equipment = crud.get_equipment(db, principals.admin, org.equipment.id)
        assert equipment.default_technician_id is None
        history = crud.get_equipment_history(db, principals.admin, org.equipment.id)
        assert [entry.action for entry in history] == [LogAction.DEFAULT_TECHNICIAN_CLEARED]

    def test_moved_technician_keeps_bindings_of_new_team(self, db, org, principals):
        lathe = crud.create_equipment(
            db, principals.admin, equipment_data(org, maintenance_team_id=org.team_u.id, serial_number="LA-01")
        )
        lathe.default_technician_id = org.technician.id
        db.commit()

        crud.set_employee_team(db, principals.admin, org.technician.id, org.team_u.id)

        assert crud.get_equipment(db, principals.admin, lathe.id).default_technician_id == org.technician.id

    def test_create_team_releases_previous_team_of_manager(self, db, org, principals):
        team = crud.create_team(db, principals.admin, schemas.TeamCreate(name="Painters", manager_id=org.manager.id))

        assert team.manager_id == org.manager.id
        assert crud.get_team(db, org.team_t.id).manager_id is None

    def test_set_team_manager_releases_previous_team(self, db, org, principals):
        team = crud.set_team_manager(db, principals.admin, org.team_u.id, org.manager.id)

        assert team.manager_id == org.manager.id
        assert crud.get_team(db, org.team_t.id).manager_id is None
        assert crud.get_employee(db, org.manager.id).team_id == org.team_u.id

    def test_moved_manager_released_from_old_team(self, db, org, principals):
        crud.set_employee_team(db, principals.admin, org.manager.id, org.team_u.id)

        assert crud.get_team(db, org.team_t.id).manager_id is None
        assert crud.get_team(db, org.team_u.id).manager_id == org.manager_u.id

    def test_list_employees_filters(self, db, org, principals):
        technicians = crud.list_employees(db, principals.admin, role=Role.TECHNICIAN, team_id=org.team_t.id)
        assert {e.id for e in technicians} == {org.technician.id, org.technician_b.id}


class TestUpdateEmployee:
    """Test employee updates and their effect on team bindings."""

    def test_update_name_and_email(self, db, org, principals):
        employee = crud.update_employee(
            db, principals.admin, org.employee.id, schemas.EmployeeUpdate(name="Eve Evans", email="EVE.E@example.com")
        )

        assert employee.name == "Eve Evans"
        assert employee.email == "eve.e@example.com"
        assert employee.role == Role.EMPLOYEE

    def test_email_taken_by_other_employee(self, db, org, principals):
        with pytest.raises(Conflict):
            crud.update_employee(db, principals.admin, org.employee.id, schemas.EmployeeUpdate(email="MAX@example.com"))

    def test_admin_only(self, db, org, principals):
        with pytest.raises(Forbidden):
            crud.update_employee(db, principals.manager, org.technician.id, schemas.EmployeeUpdate(name="Tess T"))

    def test_unknown_employee(self, db, principals):
        with pytest.raises(NotFound):
            crud.update_employee(db, principals.admin, 9999, schemas.EmployeeUpdate(name="Nobody"))

    def test_demoted_technician_released_as_default_technician(self, db, org, principals, make_request):
        org.equipment.default_technician_id = org.technician.id
        db.commit()

        employee = crud.update_employee(db, principals.admin, org.technician.id, schemas.EmployeeUpdate(role=Role.EMPLOYEE))

        assert employee.role == Role.EMPLOYEE
        assert crud.get_equipment(db, principals.admin, org.equipment.id).default_technician_id is None
        assert make_request().technician_id is None

    def test_demoted_manager_releases_team(self, db, org, principals):
        crud.update_employee(db, principals.admin, org.manager.id, schemas.EmployeeUpdate(role=Role.TECHNICIAN))

        assert crud.get_team(db, org.team_t.id).manager_id is None

    def test_unchanged_fields_write_no_log(self, db, org, principals):
        before = db.query(MaintenanceLog).count()
        crud.update_employee(db, principals.admin, org.employee.id, schemas.EmployeeUpdate(name=org.employee.name))
        assert db.query(MaintenanceLog).count() == before


class TestDepartments:
    """Test departments and department-scoped equipment listing."""

    def test_create_and_list(self, db, principals):
        crud.create_department(db, principals.admin, schemas.DepartmentCreate(name="Operations"))
        crud.create_department(db, principals.admin, schemas.DepartmentCreate(name="IT"))

        assert [d.name for d in crud.list_departments(db)] == ["IT", "Operations"]

        with pytest.raises(Conflict):
            crud.create_department(db, principals.admin, schemas.DepartmentCreate(name="IT"))
        with pytest.raises(Forbidden):
            crud.create_department(db, principals.manager, schemas.DepartmentCreate(name="HR"))

    def test_equipment_filtered_by_department(self, db, org, principals):
        logistics = crud.create_department(db, principals.admin, schemas.DepartmentCreate(name="Logistics"))
        forklift = crud.create_equipment(db, principals.admin, equipment_data(org, department_id=logistics.id))

        assert forklift.department_id == logistics.id
        items, total = crud.list_equipment(db, principals.admin, department_id=logistics.id)
        assert total == 1
        assert [e.id for e in items] == [forklift.id]

    def test_unknown_department(self, db, org, principals):
        with pytest.raises(NotFound):
            crud.create_equipment(db, principals.admin, equipment_data(org, department_id=999))


class TestReports:
    """Test the request breakdown report."""

    def test_breakdown_by_team_and_category(self, db, org, principals, make_request):
        make_request()
        make_request(subject="Chuck stuck")

        assert crud.get_request_breakdown(db, principals.admin, "team") == [{"group": "Mechanics", "count": 2}]
        assert crud.get_request_breakdown(db, principals.admin, "category") == [{"group": "Machinery", "count": 2}]

    def test_breakdown_admin_only(self, db, principals):
        with pytest.raises(Forbidden):
            crud.get_request_breakdown(db, principals.manager, "team")

    def test_breakdown_invalid_group(self, db, principals):
        with pytest.raises(InvalidArgument):
            crud.get_request_breakdown(db, principals.admin, "color")
