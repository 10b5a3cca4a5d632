"""Pydantic schemas for request/response validation."""
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

from .models import (
    Role,
    RequestType,
    StageName,
    LogAction,
)


# Employee Schemas

class EmployeeCreate(BaseModel):
    """Schema for provisioning an employee (Admin only).

    Credentials are issued by the external identity provider.
    """

    name: str = Field(..., min_length=2, max_length=255)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    role: Role = Role.EMPLOYEE
    team_id: Optional[int] = None


class EmployeeUpdate(BaseModel):
    """Schema for updating an employee. Omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[str] = Field(None, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    role: Optional[Role] = None


class EmployeeTeamUpdate(BaseModel):
    """Schema for changing an employee's team membership."""

    team_id: Optional[int] = Field(None, description="New team, or null to remove from any team")


class EmployeeResponse(BaseModel):
    """Schema for employee responses."""

    id: int
    name: str
    email: str
    role: Role
    team_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# Team Schemas

class TeamCreate(BaseModel):
    """Schema for creating a maintenance team."""

    name: str = Field(..., min_length=1, max_length=100)
    manager_id: Optional[int] = None


class TeamManagerUpdate(BaseModel):
    """Schema for setting a team's manager."""

    manager_id: Optional[int] = None


class TeamResponse(BaseModel):
    """Schema for team responses."""

    id: int
    name: str
    manager_id: Optional[int] = None
    technician_ids: list[int] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


# Category Schemas

class CategoryCreate(BaseModel):
    """Schema for creating an equipment category."""

    name: str = Field(..., min_length=1, max_length=100)


class CategoryResponse(BaseModel):
    """Schema for category responses."""

    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


# Department Schemas

class DepartmentCreate(BaseModel):
    """Schema for creating a department."""

    name: str = Field(..., min_length=1, max_length=100)


class DepartmentResponse(BaseModel):
    """Schema for department responses."""

    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


# Stage Schemas

class StageResponse(BaseModel):
    """Schema for maintenance stage responses."""

    id: int
    name: StageName
    sequence: int
    is_closing: bool
    is_scrap_state: bool

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# Equipment Schemas

class EquipmentCreate(BaseModel):
    """Schema for creating equipment."""

    name: str = Field(..., min_length=2, max_length=255)
    serial_number: str = Field(..., min_length=1, max_length=100)
    location: str = Field(..., min_length=1, max_length=255)
    category_id: int = Field(..., gt=0)
    maintenance_team_id: int = Field(..., gt=0)
    default_technician_id: Optional[int] = Field(None, gt=0)
    employee_id: Optional[int] = Field(None, gt=0, description="Employee who holds/owns the equipment")
    department_id: Optional[int] = Field(None, gt=0)
    purchase_date: Optional[date] = None
    warranty_info: Optional[str] = None


class EquipmentOwnerUpdate(BaseModel):
    """Schema for assigning equipment to an employee (or releasing it)."""

    employee_id: Optional[int] = None


class EquipmentTeamUpdate(BaseModel):
    """Schema for moving equipment to another maintenance team."""

    maintenance_team_id: int = Field(..., gt=0)
    default_technician_id: Optional[int] = Field(None, gt=0)


class EquipmentResponse(BaseModel):
    """Schema for equipment responses."""

    id: int
    name: str
    serial_number: str
    location: str
    purchase_date: Optional[date] = None
    warranty_info: Optional[str] = None
    is_active: bool
    category_id: int
    maintenance_team_id: int
    default_technician_id: Optional[int] = None
    employee_id: Optional[int] = None
    department_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EquipmentListResponse(BaseModel):
    """Schema for paginated equipment list."""

    items: list[EquipmentResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class EquipmentStatsResponse(BaseModel):
    """Request counters behind the equipment "smart button"."""

    equipment_id: int
    total_requests: int
    open_requests: int
    status: str = Field(description="'Maintenance Required' when open requests exist, otherwise 'Operational'")
    is_active: bool


# Maintenance Request Schemas

class MaintenanceRequestCreate(BaseModel):
    """Schema for creating a maintenance request.

    Preventive requests require a scheduled_date of today or later.
    """

    subject: str = Field(..., min_length=3, max_length=255)
    request_type: RequestType
    equipment_id: int = Field(..., gt=0)
    scheduled_date: Optional[date] = None
    duration_hours: Optional[float] = Field(None, gt=0)


class MaintenanceRequestAssign(BaseModel):
    """Schema for assigning a technician."""

    technician_id: int = Field(..., gt=0)


class MaintenanceRequestStageUpdate(BaseModel):
    """Schema for a stage transition."""

    stage_id: int = Field(..., gt=0)
    duration_hours: Optional[float] = Field(None, gt=0)


class MaintenanceRequestReschedule(BaseModel):
    """Schema for rescheduling a preventive request."""

    scheduled_date: date


class MaintenanceRequestResponse(BaseModel):
    """Schema for maintenance request responses.

    is_overdue is derived at read time and never stored.
    """

    id: int
    subject: str
    request_type: RequestType
    stage_id: int
    stage_name: StageName
    equipment_id: int
    team_id: int
    technician_id: Optional[int] = None
    created_by_id: int
    scheduled_date: Optional[date] = None
    duration_hours: Optional[float] = None
    created_at: datetime
    updated_at: datetime
    closed_at: Optional[datetime] = None
    is_overdue: bool = False

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class MaintenanceRequestListResponse(BaseModel):
    """Schema for paginated request list."""

    items: list[MaintenanceRequestResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class StageTransitionResponse(BaseModel):
    """Result of a stage transition."""

    message: str
    request: MaintenanceRequestResponse


class MaintenanceLogResponse(BaseModel):
    """Schema for audit log entries."""

    id: int
    action: LogAction
    message: str
    created_at: datetime
    created_by_id: Optional[int] = None
    request_id: Optional[int] = None
    equipment_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# Report Schemas

class BreakdownItem(BaseModel):
    """Request count for one group of the breakdown report."""

    group: str
    count: int
