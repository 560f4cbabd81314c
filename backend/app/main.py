from contextlib import asynccontextmanager
import logging
import threading

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import (
    custom_hours,
    exams,
    friends,
    health,
    rooms,
    scheduler as scheduler_routes,
    search,
    subscription,
    tenants,
    timetable,
    users,
)
from app.core.config import get_settings
from app.core.exceptions import AppError
from app.core.logging_config import configure_logging
from app.core.middleware import TenantResolutionMiddleware
from app.db.bootstrap import ensure_runtime_schema_compatibility
from app.db.session import SessionLocal
from app.services.background import BackgroundTaskRunner
from app.services.ics_import import run_timetable_import
from app.services.scheduler import TimetableScheduler

settings = get_settings()
logger = logging.getLogger(__name__)


def _import_job(stop_event: threading.Event):
    return run_timetable_import(SessionLocal, settings=settings, stop_event=stop_event)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings)
    ensure_runtime_schema_compatibility()

    app.state.background_runner = BackgroundTaskRunner(max_workers=settings.background_max_workers)
    app.state.scheduler = TimetableScheduler(_import_job, jitter_seconds=settings.scheduler_jitter_seconds)
    if settings.scheduler_enabled:
        app.state.scheduler.start(run_immediately=settings.scheduler_run_on_startup)
    else:
        logger.info("Timetable scheduler disabled by configuration")
    try:
        yield
    finally:
        app.state.scheduler.stop()
        app.state.background_runner.shutdown()
        jwks_cache = getattr(app.state, "jwks_cache", None)
        if jwks_cache is not None:
            jwks_cache.close()


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(TenantResolutionMiddleware, settings=settings)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(rooms.router, prefix=settings.api_prefix, tags=["rooms"])
app.include_router(timetable.router, prefix=settings.api_prefix, tags=["timetable"])
app.include_router(users.router, prefix=settings.api_prefix, tags=["users"])
app.include_router(subscription.router, prefix=settings.api_prefix, tags=["subscription"])
app.include_router(search.router, prefix=settings.api_prefix, tags=["search"])
app.include_router(custom_hours.router, prefix=f"{settings.api_prefix}/custom_hours", tags=["custom-hours"])
app.include_router(exams.router, prefix=f"{settings.api_prefix}/exams", tags=["exams"])
app.include_router(friends.router, prefix=f"{settings.api_prefix}/friends", tags=["friends"])
app.include_router(scheduler_routes.router, prefix=f"{settings.api_prefix}/scheduler", tags=["scheduler"])
app.include_router(tenants.router, prefix=f"{settings.api_prefix}/tenants", tags=["tenants"])


def run() -> None:
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
