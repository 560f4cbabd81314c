from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, text

from app.core.config import get_settings
from app.db.base import Base
from app.db.session import engine

router = APIRouter()

settings = get_settings()

API_VERSION = "2.0.0"


@router.get("/health")
def health() -> dict:
    return {"status": "ok", "message": "NORA API is running", "version": API_VERSION}


@router.get("/health/ready")
def health_ready(request: Request) -> JSONResponse:
    db_ok = True
    missing_tables: list[str] = []
    db_error: str | None = None

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            table_names = set(inspect(connection).get_table_names())
            missing_tables = sorted(set(Base.metadata.tables) - table_names)
    except Exception as exc:  # pragma: no cover - environment dependent
        db_ok = False
        db_error = str(exc)

    scheduler = getattr(request.app.state, "scheduler", None)
    scheduler_status = scheduler.status() if scheduler is not None else None

    ready = db_ok and not missing_tables
    payload = {
        "status": "ok" if ready else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": {"ok": db_ok, "missing_tables": missing_tables, "error": db_error},
        "scheduler": {
            "enabled": settings.scheduler_enabled,
            "running": bool(scheduler_status and scheduler_status.running),
            "next_run": (
                scheduler_status.next_run.isoformat()
                if scheduler_status is not None and scheduler_status.next_run is not None
                else None
            ),
        },
        "smtp": {"configured": bool(settings.smtp_host and settings.smtp_from_email)},
    }
    return JSONResponse(status_code=200 if ready else 503, content=payload)
