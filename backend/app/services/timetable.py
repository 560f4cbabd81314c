from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidInputError, ResourceNotFoundError
from app.models.course import Course
from app.models.custom_hour import CustomHour
from app.models.exam import Exam
from app.models.timetable import TimetableEvent
from app.models.user import User
from app.models.zenturie import Zenturie

LOCAL_TIMEZONE = ZoneInfo("Europe/Berlin")


@dataclass
class UserCalendar:
    timetable: list[TimetableEvent] = field(default_factory=list)
    custom_hours: list[CustomHour] = field(default_factory=list)
    exams: list[Exam] = field(default_factory=list)


def day_window(day: date, end: date | None = None) -> tuple[datetime, datetime]:
    """UTC bounds covering the local days ``day`` through ``end`` inclusive."""
    end = end or day
    if end < day:
        raise InvalidInputError("end must not be before date", details={"date": day.isoformat(), "end": end.isoformat()})
    start = datetime.combine(day, time.min, tzinfo=LOCAL_TIMEZONE)
    stop = datetime.combine(end + timedelta(days=1), time.min, tzinfo=LOCAL_TIMEZONE)
    return start.astimezone(timezone.utc), stop.astimezone(timezone.utc)


def list_zenturien(db: Session, tenant_id: int) -> list[Zenturie]:
    return list(db.execute(select(Zenturie).where(Zenturie.tenant_id == tenant_id).order_by(Zenturie.name)).scalars())


def list_courses(db: Session, tenant_id: int) -> list[Course]:
    return list(
        db.execute(select(Course).where(Course.tenant_id == tenant_id).order_by(Course.module_number)).scalars()
    )


def get_zenturie(db: Session, tenant_id: int, name: str) -> Zenturie:
    zenturie = db.execute(
        select(Zenturie).where(Zenturie.tenant_id == tenant_id, Zenturie.name == name)
    ).scalar_one_or_none()
    if zenturie is None:
        raise ResourceNotFoundError("Zenturie", name)
    return zenturie


def get_course(db: Session, tenant_id: int, module_number: str) -> Course:
    course = db.execute(
        select(Course).where(Course.tenant_id == tenant_id, Course.module_number == module_number)
    ).scalar_one_or_none()
    if course is None:
        raise ResourceNotFoundError("Course", module_number)
    return course


def zenturie_events(db: Session, zenturie_id: int, start: datetime, end: datetime) -> list[TimetableEvent]:
    statement = (
        select(TimetableEvent)
        .where(
            TimetableEvent.zenturie_id == zenturie_id,
            TimetableEvent.start_time < end,
            TimetableEvent.end_time > start,
        )
        .order_by(TimetableEvent.start_time, TimetableEvent.id)
    )
    return list(db.execute(statement).scalars())


def user_calendar(db: Session, user: User, start: datetime, end: datetime) -> UserCalendar:
    calendar = UserCalendar()
    if user.zenturie_id is not None:
        calendar.timetable = zenturie_events(db, user.zenturie_id, start, end)
    calendar.custom_hours = list(
        db.execute(
            select(CustomHour)
            .where(CustomHour.user_id == user.id, CustomHour.start_time < end, CustomHour.end_time > start)
            .order_by(CustomHour.start_time)
        ).scalars()
    )
    # Exams have no end column; anything starting inside the window is shown.
    calendar.exams = list(
        db.execute(
            select(Exam)
            .where(Exam.user_id == user.id, Exam.start_time >= start, Exam.start_time < end)
            .order_by(Exam.start_time)
        ).scalars()
    )
    return calendar
