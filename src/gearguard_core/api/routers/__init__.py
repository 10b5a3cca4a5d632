"""API routers for GearGuard Core."""

from . import categories, departments, employees, equipment, reports, requests, stages, teams

__all__ = ["categories", "departments", "employees", "equipment", "reports", "requests", "stages", "teams"]
