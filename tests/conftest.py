"""Shared fixtures: an in-memory database with a small seeded organization."""
from datetime import date, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gearguard_core import audit, crud, lifecycle, schemas  # noqa: F401  (audit registers log guards)
from gearguard_core.authorization import Principal
from gearguard_core.models import (
    Base,
    Employee,
    Equipment,
    EquipmentCategory,
    RequestType,
    Role,
    Team,
)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    crud.seed_stages(session)
    yield session
    session.close()


def seed_organization(db):
    """
    Two teams (Mechanics, Electricians), one employee of each role and one
    piece of equipment owned by Mechanics and held by the plain employee.
    """
    mechanics = Team(name="Mechanics")
    electricians = Team(name="Electricians")
    db.add_all([mechanics, electricians])
    db.flush()

    admin = Employee(name="Ada Admin", email="ada@example.com", role=Role.ADMIN)
    manager = Employee(name="Max Manager", email="max@example.com", role=Role.MANAGER, team_id=mechanics.id)
    manager_u = Employee(name="Uma Manager", email="uma@example.com", role=Role.MANAGER, team_id=electricians.id)
    technician = Employee(name="Tess Tech", email="tess@example.com", role=Role.TECHNICIAN, team_id=mechanics.id)
    technician_b = Employee(name="Tim Tech", email="tim@example.com", role=Role.TECHNICIAN, team_id=mechanics.id)
    technician_u = Employee(name="Ulf Tech", email="ulf@example.com", role=Role.TECHNICIAN, team_id=electricians.id)
    employee = Employee(name="Eve Employee", email="eve@example.com", role=Role.EMPLOYEE)
    category = EquipmentCategory(name="Machinery")
    db.add_all([admin, manager, manager_u, technician, technician_b, technician_u, employee, category])
    db.flush()

    mechanics.manager_id = manager.id
    electricians.manager_id = manager_u.id

    equipment = Equipment(
        name="CNC Mill",
        serial_number="SN-0001",
        location="Plant 1",
        category_id=category.id,
        maintenance_team_id=mechanics.id,
        employee_id=employee.id,
    )
    db.add(equipment)
    db.commit()

    return SimpleNamespace(
        team_t=mechanics,
        team_u=electricians,
        admin=admin,
        manager=manager,
        manager_u=manager_u,
        technician=technician,
        technician_b=technician_b,
        technician_u=technician_u,
        employee=employee,
        category=category,
        equipment=equipment,
    )


@pytest.fixture
def org(db):
    return seed_organization(db)


@pytest.fixture
def principals(org):
    """Principal for every seeded employee, keyed like ``org``."""
    return SimpleNamespace(
        admin=Principal.from_employee(org.admin),
        manager=Principal.from_employee(org.manager),
        manager_u=Principal.from_employee(org.manager_u),
        technician=Principal.from_employee(org.technician),
        technician_b=Principal.from_employee(org.technician_b),
        technician_u=Principal.from_employee(org.technician_u),
        employee=Principal.from_employee(org.employee),
    )


@pytest.fixture
def make_request(db, org, principals):
    """Factory creating a request through the lifecycle engine."""

    def _make(
        principal=None,
        equipment_id=None,
        request_type=RequestType.CORRECTIVE,
        scheduled_date=None,
        duration_hours=None,
        subject="Spindle vibrates",
    ):
        data = schemas.MaintenanceRequestCreate(
            subject=subject,
            request_type=request_type,
            equipment_id=equipment_id or org.equipment.id,
            scheduled_date=scheduled_date,
            duration_hours=duration_hours,
        )
        return lifecycle.create_request(db, principal or principals.employee, data)

    return _make


@pytest.fixture
def file_db(tmp_path):
    """File-backed database for tests that need independent sessions."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'gearguard.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = factory()
    crud.seed_stages(session)
    seeded = seed_organization(session)
    context = SimpleNamespace(
        factory=factory,
        equipment_id=seeded.equipment.id,
        technician_id=seeded.technician.id,
        employee=Principal.from_employee(seeded.employee),
        manager=Principal.from_employee(seeded.manager),
        technician=Principal.from_employee(seeded.technician),
    )
    session.close()

    yield context
    engine.dispose()


@pytest.fixture
def tomorrow():
    return date.today() + timedelta(days=1)
