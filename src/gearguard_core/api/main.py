"""GearGuard Core FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from gearguard_core import __version__, crud
from gearguard_core.config import get_settings
from gearguard_core.database import SessionLocal, engine
from gearguard_core.errors import InvalidTransition, MaintenanceError
from gearguard_core.models import Base

from .routers import categories, departments, employees, equipment, reports, requests, stages, teams

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("gearguard-core")

logger.info(f"Starting GearGuard Core API ({settings.environment})")


def create_schema():
    """Create tables and seed the stage catalog for local development."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        crud.seed_stages(db)
    finally:
        db.close()
    logger.info("Database schema created and stage catalog seeded")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_db:
        create_schema()
    yield


# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title=settings.app_name,
    description="Maintenance workflow for equipment, teams and maintenance requests",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MaintenanceError)
async def maintenance_error_handler(request: Request, exc: MaintenanceError):
    content = {"detail": exc.message, "error": exc.code}
    if isinstance(exc, InvalidTransition):
        content.update({
            "current_stage": exc.current_stage,
            "requested_stage": exc.requested_stage,
            "allowed_transitions": exc.allowed_transitions,
        })
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    # Store failures are never echoed to the client
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


# Include all business logic routers with /api/v1 prefix
app.include_router(requests.router, prefix="/api/v1/requests")
app.include_router(equipment.router, prefix="/api/v1/equipment")
app.include_router(stages.router, prefix="/api/v1/stages")
app.include_router(teams.router, prefix="/api/v1/teams")
app.include_router(categories.router, prefix="/api/v1/categories")
app.include_router(departments.router, prefix="/api/v1/departments")
app.include_router(employees.router, prefix="/api/v1/employees")
app.include_router(reports.router, prefix="/api/v1/reports")


@app.get("/")
def root():
    """Root endpoint with server info."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
