"""Renders a user's subscription calendar (timetable, custom hours, exams)."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.custom_hour import CustomHour
from app.models.exam import Exam
from app.models.tenant import Tenant
from app.models.timetable import TimetableEvent
from app.models.user import User

ICS_TIME_FORMAT = "%Y%m%dT%H%M%SZ"
CALENDAR_NAME = "NORA Stundenplan"
PRODUCT_ID = "-//NORA//NAK Stundenplan//DE"
CONTENT_TYPE = "text/calendar; charset=utf-8"
DOWNLOAD_FILENAME = "nora-calendar.ics"

HISTORY_DAYS = 4 * 365
LOOKAHEAD_DAYS = 183

_ESCAPES = (("\\", "\\\\"), (";", "\\;"), (",", "\\,"), ("\n", "\\n"))


@dataclass(frozen=True)
class CalendarEntry:
    uid: str
    summary: str
    start_time: datetime
    end_time: datetime
    description: str | None = None
    location: str | None = None


def escape_text(value: str) -> str:
    # Backslash first so later escapes are not doubled.
    for raw, escaped in _ESCAPES:
        value = value.replace(raw, escaped)
    return value


def unescape_text(value: str) -> str:
    result: list[str] = []
    index = 0
    while index < len(value):
        char = value[index]
        if char == "\\" and index + 1 < len(value):
            following = value[index + 1]
            if following in ("n", "N"):
                result.append("\n")
            else:
                result.append(following)
            index += 2
            continue
        result.append(char)
        index += 1
    return "".join(result)


def format_ics_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(ICS_TIME_FORMAT)


def subscription_window(now: datetime) -> tuple[datetime, datetime]:
    return now - timedelta(days=HISTORY_DAYS), now + timedelta(days=LOOKAHEAD_DAYS)


def render_event(entry: CalendarEntry, stamp: datetime) -> list[str]:
    lines = [
        "BEGIN:VEVENT",
        f"UID:{entry.uid}",
        f"DTSTAMP:{format_ics_time(stamp)}",
        f"DTSTART:{format_ics_time(entry.start_time)}",
        f"DTEND:{format_ics_time(entry.end_time)}",
        f"SUMMARY:{escape_text(entry.summary)}",
    ]
    if entry.description:
        lines.append(f"DESCRIPTION:{escape_text(entry.description)}")
    if entry.location:
        lines.append(f"LOCATION:{escape_text(entry.location)}")
    lines.append("END:VEVENT")
    return lines


def render_calendar(entries: list[CalendarEntry], now: datetime | None = None) -> str:
    stamp = now or datetime.now(timezone.utc)
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODUCT_ID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{CALENDAR_NAME}",
        "X-WR-TIMEZONE:Europe/Berlin",
    ]
    for entry in entries:
        lines.extend(render_event(entry, stamp))
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


def collect_entries(db: Session, user: User, tenant: Tenant, now: datetime) -> list[CalendarEntry]:
    window_start, window_end = subscription_window(now)
    realm = tenant.keycloak_realm_id
    entries: list[CalendarEntry] = []

    if user.zenturie_id is not None:
        events = db.execute(
            select(TimetableEvent)
            .where(
                TimetableEvent.zenturie_id == user.zenturie_id,
                TimetableEvent.start_time >= window_start,
                TimetableEvent.start_time <= window_end,
            )
            .order_by(TimetableEvent.start_time)
        ).scalars()
        for event in events:
            entries.append(
                CalendarEntry(
                    uid=event.uid,
                    summary=event.summary,
                    description=event.description,
                    location=event.room_number or event.location,
                    start_time=event.start_time,
                    end_time=event.end_time,
                )
            )

    custom_hours = db.execute(
        select(CustomHour)
        .where(
            CustomHour.user_id == user.id,
            CustomHour.start_time >= window_start,
            CustomHour.start_time <= window_end,
        )
        .order_by(CustomHour.start_time)
    ).scalars()
    for item in custom_hours:
        entries.append(
            CalendarEntry(
                uid=f"custom-{item.id}@{realm}",
                summary=item.title,
                description=item.description,
                location=item.location,
                start_time=item.start_time,
                end_time=item.end_time,
            )
        )

    exams = db.execute(
        select(Exam)
        .where(Exam.user_id == user.id, Exam.start_time >= window_start, Exam.start_time <= window_end)
        .order_by(Exam.start_time)
    ).scalars()
    for exam in exams:
        entries.append(
            CalendarEntry(
                uid=f"exam-{exam.id}@{realm}",
                summary=f"Klausur: {exam.course.name} ({exam.course.module_number})",
                description=f"Dauer: {exam.duration} Minuten",
                location=exam.room_number,
                start_time=exam.start_time,
                end_time=exam.end_time,
            )
        )
    return entries


def build_subscription_calendar(db: Session, user: User, tenant: Tenant, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return render_calendar(collect_entries(db, user, tenant, now), now)
