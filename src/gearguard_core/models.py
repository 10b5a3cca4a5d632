"""SQLAlchemy database models."""
from datetime import datetime
import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Float,
    Date,
    DateTime,
    ForeignKey,
    Enum,
    CheckConstraint,
    Boolean,
)
from sqlalchemy.orm import relationship, declarative_base

# Base class for all models
Base = declarative_base()


class Role(str, enum.Enum):
    """Employee role enum. Role and team membership jointly drive authorization."""

    ADMIN = "admin"
    MANAGER = "manager"
    TECHNICIAN = "technician"
    EMPLOYEE = "employee"


class RequestType(str, enum.Enum):
    """Maintenance request type enum."""

    CORRECTIVE = "corrective"   # Reactive, unplanned breakdown work
    PREVENTIVE = "preventive"   # Planned work bound to a scheduled date


class StageName(str, enum.Enum):
    """Names of the fixed maintenance stage catalog.

    Lifecycle: New -> In Progress -> Repaired
    Any non-terminal stage may move to Scrap.
    Terminal stages: Repaired, Scrap
    """

    NEW = "New"
    IN_PROGRESS = "In Progress"
    REPAIRED = "Repaired"
    SCRAP = "Scrap"


class LogAction(str, enum.Enum):
    """Machine-readable kind of an audit log entry."""

    EQUIPMENT_CREATED = "equipment_created"
    EQUIPMENT_OWNER_CHANGED = "equipment_owner_changed"
    EQUIPMENT_TEAM_CHANGED = "equipment_team_changed"
    REQUEST_CREATED = "request_created"
    TECHNICIAN_ASSIGNED = "technician_assigned"
    REQUEST_REPAIRED = "request_repaired"
    REQUEST_SCRAPPED = "request_scrapped"
    REQUEST_RESCHEDULED = "request_rescheduled"
    TEAM_MEMBERSHIP_CHANGED = "team_membership_changed"
    EMPLOYEE_UPDATED = "employee_updated"
    DEFAULT_TECHNICIAN_CLEARED = "default_technician_cleared"


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


class Team(Base):
    """
    Maintenance team.

    Technicians belong to at most one team through ``Employee.team_id``.
    Every piece of equipment is owned by exactly one team.
    """

    __tablename__ = "maintenance_teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True, index=True)
    manager_id = Column(
        Integer,
        ForeignKey("employees.id", ondelete="SET NULL", use_alter=True, name="fk_team_manager"),
        nullable=True,
    )
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    manager = relationship("Employee", foreign_keys=[manager_id], post_update=True)
    members = relationship("Employee", back_populates="team", foreign_keys="Employee.team_id")
    equipment = relationship("Equipment", back_populates="maintenance_team")

    @property
    def technicians(self) -> list["Employee"]:
        return [m for m in self.members if m.role == Role.TECHNICIAN]

    def __repr__(self) -> str:
        return f"<Team {self.id}: {self.name}>"


class Employee(Base):
    """
    Employee model.

    Credentials live with the external identity provider; this table only
    carries what authorization needs: role and team membership.
    """

    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    role = Column(
        Enum(Role, values_callable=_enum_values),
        nullable=False,
        default=Role.EMPLOYEE,
        index=True,
    )
    team_id = Column(Integer, ForeignKey("maintenance_teams.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    team = relationship("Team", back_populates="members", foreign_keys=[team_id])

    def __repr__(self) -> str:
        return f"<Employee {self.id}: {self.email} ({self.role.value if self.role else None})>"


class Department(Base):
    """Organizational department that equipment can be attributed to."""

    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)

    equipment = relationship("Equipment", back_populates="department")

    def __repr__(self) -> str:
        return f"<Department {self.id}: {self.name}>"


class EquipmentCategory(Base):
    """Equipment category reference data (e.g. Electronics, Vehicles)."""

    __tablename__ = "equipment_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)

    equipment = relationship("Equipment", back_populates="category")

    def __repr__(self) -> str:
        return f"<EquipmentCategory {self.id}: {self.name}>"


class Equipment(Base):
    """
    Physical equipment tracked for maintenance.

    ``is_active`` goes from True to False exactly once, when a request against
    the equipment is scrapped. Inactive equipment accepts no new requests.
    """

    __tablename__ = "equipment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    serial_number = Column(String(100), nullable=False, unique=True, index=True)
    location = Column(String(255), nullable=False)
    purchase_date = Column(Date, nullable=True)
    warranty_info = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    category_id = Column(Integer, ForeignKey("equipment_categories.id"), nullable=False, index=True)
    maintenance_team_id = Column(Integer, ForeignKey("maintenance_teams.id"), nullable=False, index=True)
    default_technician_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True)
    department_id = Column(Integer, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True)

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    category = relationship("EquipmentCategory", back_populates="equipment")
    maintenance_team = relationship("Team", back_populates="equipment")
    default_technician = relationship("Employee", foreign_keys=[default_technician_id])
    owner = relationship("Employee", foreign_keys=[employee_id])
    department = relationship("Department", back_populates="equipment")
    requests = relationship("MaintenanceRequest", back_populates="equipment")

    def __repr__(self) -> str:
        return f"<Equipment {self.serial_number}: {self.name}>"


class MaintenanceStage(Base):
    """Fixed, ordered catalog of request stages. Immutable reference data."""

    __tablename__ = "maintenance_stages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(
        Enum(StageName, values_callable=_enum_values),
        nullable=False,
        unique=True,
    )
    sequence = Column(Integer, nullable=False, unique=True)
    is_closing = Column(Boolean, nullable=False, default=False)
    is_scrap_state = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<MaintenanceStage {self.sequence}: {self.name.value if self.name else None}>"


class MaintenanceRequest(Base):
    """
    Maintenance request moving through the stage lifecycle.

    ``team_id`` is a snapshot of the equipment's team taken at creation. It never
    follows later equipment reassignment, so in-flight work keeps its team.
    """

    __tablename__ = "maintenance_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject = Column(String(255), nullable=False)
    request_type = Column(
        Enum(RequestType, values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    scheduled_date = Column(Date, nullable=True, index=True)
    duration_hours = Column(Float, nullable=True)

    stage_id = Column(Integer, ForeignKey("maintenance_stages.id"), nullable=False, index=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("maintenance_teams.id"), nullable=False, index=True)
    technician_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    closed_at = Column(DateTime, nullable=True)

    # Relationships
    stage = relationship("MaintenanceStage")
    equipment = relationship("Equipment", back_populates="requests")
    team = relationship("Team")
    technician = relationship("Employee", foreign_keys=[technician_id])
    created_by = relationship("Employee", foreign_keys=[created_by_id])
    logs = relationship("MaintenanceLog", back_populates="request")

    __table_args__ = (
        CheckConstraint("duration_hours IS NULL OR duration_hours > 0", name="positive_duration"),
    )

    def __repr__(self) -> str:
        return f"<MaintenanceRequest {self.id}: {self.subject}>"


class MaintenanceLog(Base):
    """
    Append-only audit entry.

    Written in the same transaction as the mutation it describes. Never updated
    or deleted.
    """

    __tablename__ = "maintenance_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(
        Enum(LogAction, values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    request_id = Column(Integer, ForeignKey("maintenance_requests.id"), nullable=True, index=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)

    request = relationship("MaintenanceRequest", back_populates="logs")
    equipment = relationship("Equipment")
    created_by = relationship("Employee")

    def __repr__(self) -> str:
        return f"<MaintenanceLog {self.id}: {self.action.value if self.action else None}>"
