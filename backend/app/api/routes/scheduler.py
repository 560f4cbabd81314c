import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import ADMIN_ROLES, get_current_user, get_scheduler, require_roles
from app.models.user import User
from app.schemas.scheduler import ImportStatisticsOut, SchedulerStatusOut
from app.services.scheduler import ImportAlreadyRunningError, TimetableScheduler

logger = logging.getLogger(__name__)

router = APIRouter()


def _status_out(scheduler: TimetableScheduler) -> SchedulerStatusOut:
    return SchedulerStatusOut.model_validate(scheduler.status())


@router.get("/status", response_model=SchedulerStatusOut)
def scheduler_status(
    current_user: User = Depends(get_current_user),
    scheduler: TimetableScheduler = Depends(get_scheduler),
):
    return _status_out(scheduler)


@router.post("/start", response_model=SchedulerStatusOut)
def start_scheduler(
    run_immediately: bool = False,
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
    scheduler: TimetableScheduler = Depends(get_scheduler),
):
    scheduler.start(run_immediately=run_immediately)
    return _status_out(scheduler)


@router.post("/stop", response_model=SchedulerStatusOut)
def stop_scheduler(
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
    scheduler: TimetableScheduler = Depends(get_scheduler),
):
    scheduler.stop()
    return _status_out(scheduler)


@router.post("/run", response_model=ImportStatisticsOut)
def run_import(
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
    scheduler: TimetableScheduler = Depends(get_scheduler),
):
    try:
        return scheduler.run_now()
    except ImportAlreadyRunningError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Timetable import already running") from exc
    except Exception as exc:
        logger.exception("Manual timetable import failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Timetable import failed"
        ) from exc
