"""Request-scoped dependencies shared by the routers."""
import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from gearguard_core import models
from gearguard_core.authorization import Principal
from gearguard_core.config import get_settings
from gearguard_core.database import get_db
from gearguard_core.errors import Unauthenticated

logger = logging.getLogger("gearguard-core.api.dependencies")


def get_current_principal(
    request: Request,
    db: Session = Depends(get_db),
) -> Principal:
    """
    Resolve the authenticated caller.

    Authentication happens upstream; the gateway forwards the employee id in
    the configured principal header. The employee is loaded so that role and
    team are always current.

    Raises:
        Unauthenticated: Header missing, malformed or naming an unknown employee
    """
    header = get_settings().principal_header
    raw: Optional[str] = request.headers.get(header)
    if not raw:
        raise Unauthenticated("Authentication required.")

    try:
        employee_id = int(raw)
    except ValueError:
        logger.warning(f"Malformed {header} header: {raw!r}")
        raise Unauthenticated("Authentication required.")

    employee = db.query(models.Employee).filter(models.Employee.id == employee_id).first()
    if not employee:
        logger.warning(f"Unknown principal {employee_id}")
        raise Unauthenticated("Authentication required.")

    return Principal.from_employee(employee)

