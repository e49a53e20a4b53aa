"""
Emergency Alert Service — ASGI entry point.

    uvicorn backend.app.main:app --reload --port 8000

Startup creates the tables (SQLite by default, see DATABASE_URL) and grants
the admin role to ADMIN_USER_IDS. Callers identify themselves with the
``X-User-Id`` header.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.alerts.models import AlertCategory, ChannelKind
from backend.app.core.config import settings
from backend.app.core.database import async_session_factory, close_db, init_db
from backend.app.core.errors import register_error_handlers
from backend.app.core.health import HealthStatus, run_health_check
from backend.app.core.logging_config import get_logger, setup_logging
from backend.app.core.middleware import RequestLoggingMiddleware
from backend.app.storage.repository import ADMIN_ROLE, EmergencyRepository

from backend.app.api.v1.alerts import router as alert_router
from backend.app.api.v1.contacts import router as contact_router
from backend.app.api.v1.functions import router as function_router
from backend.app.api.v1.logs import router as log_router

setup_logging()
logger = get_logger(__name__)

ROUTERS = (contact_router, alert_router, log_router, function_router)


async def seed_admin_roles() -> int:
    """Grant the admin role to every id in ADMIN_USER_IDS; returns how many."""
    if not settings.ADMIN_USER_IDS:
        return 0
    async with async_session_factory() as session:
        repo = EmergencyRepository(session)
        for user_id in settings.ADMIN_USER_IDS:
            await repo.grant_role(user_id, ADMIN_ROLE)
        await session.commit()
    return len(settings.ADMIN_USER_IDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    admins = await seed_admin_roles()
    logger.info(
        "%s v%s ready [%s]; %d admin(s), policy=%s, log=%s",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
        admins, settings.STATUS_POLICY, settings.LOG_STORE_PATH or "memory",
    )
    yield
    await close_db()
    logger.info("%s stopped", settings.APP_NAME)


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Raise an emergency alert with an optional GPS fix; it fans out to "
            "the caller's emergency contacts (SMS, email), the responsible "
            "authority and push devices. The alert's status follows the "
            "aggregated channel outcome and each dispatch lands in a bounded "
            "local log."
        ),
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    # Added last runs first: request logging wraps CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.CORS_ALLOW_ALL else settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(application)

    for router in ROUTERS:
        application.include_router(router)

    _add_service_routes(application)
    return application


def _add_service_routes(application: FastAPI) -> None:

    @application.get("/", tags=["root"])
    async def root():
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "categories": [c.value for c in AlertCategory],
            "channels": [c.value for c in ChannelKind],
            "status_policy": settings.STATUS_POLICY,
            "docs": "/docs",
        }

    @application.get("/health", tags=["health"])
    async def health():
        """Database, log store and disk checks."""
        return (await run_health_check()).to_dict()

    @application.get("/health/live", tags=["health"])
    async def liveness():
        return {"status": "alive"}

    @application.get("/health/ready", tags=["health"])
    async def readiness():
        """503 while the database is unreachable or the disk is full."""
        report = await run_health_check()
        status_code = 503 if report.status == HealthStatus.UNHEALTHY else 200
        return JSONResponse(status_code=status_code, content=report.to_dict())


app = create_app()
