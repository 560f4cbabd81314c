from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_tenant, get_current_user, get_db
from app.models.tenant import Tenant
from app.models.user import User
from app.schemas.timetable import (
    CalendarEvent,
    CourseOut,
    CustomHourEntry,
    ExamEntry,
    TimetableEntry,
    ZenturieOut,
    ZenturieTimetableOut,
)
from app.services.timetable import (
    day_window,
    get_zenturie,
    list_courses,
    list_zenturien,
    user_calendar,
    zenturie_events,
)

router = APIRouter()


@router.get("/all_zenturie", response_model=list[ZenturieOut])
def all_zenturien(tenant: Tenant = Depends(get_current_tenant), db: Session = Depends(get_db)):
    return list_zenturien(db, tenant.id)


@router.get("/courses", response_model=list[CourseOut])
def courses(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return list_courses(db, current_user.tenant_id)


@router.get("/events", response_model=list[CalendarEvent])
def events(
    day: date = Query(alias="date"),
    end: date | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[CalendarEvent]:
    start_time, end_time = day_window(day, end)
    calendar = user_calendar(db, current_user, start_time, end_time)
    entries: list[CalendarEvent] = [TimetableEntry.from_event(event) for event in calendar.timetable]
    entries.extend(CustomHourEntry.from_custom_hour(item) for item in calendar.custom_hours)
    entries.extend(ExamEntry.from_exam(exam) for exam in calendar.exams)
    entries.sort(key=lambda entry: entry.start_time)
    return entries


@router.get("/view", response_model=ZenturieTimetableOut)
def view_zenturie(
    zenturie: str = Query(min_length=1, max_length=50),
    day: date = Query(alias="date"),
    end: date | None = None,
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db),
) -> ZenturieTimetableOut:
    start_time, end_time = day_window(day, end)
    cohort = get_zenturie(db, tenant.id, zenturie)
    items = zenturie_events(db, cohort.id, start_time, end_time)
    return ZenturieTimetableOut(zenturie=cohort.name, events=[TimetableEntry.from_event(item) for item in items])
