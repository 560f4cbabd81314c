"""Free-room search and per-room occupancy over timetable events and custom hours."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Literal
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidTimeRangeError, ResourceNotFoundError
from app.models.custom_hour import CustomHour
from app.models.room import Room
from app.models.timetable import TimetableEvent

LOCAL_TIMEZONE = ZoneInfo("Europe/Berlin")
OCCUPANCY_WINDOW_DAYS = 7


@dataclass(frozen=True)
class Occupancy:
    event_type: Literal["timetable", "custom_hour_blocked"]
    start_time: datetime
    end_time: datetime
    details: str | None = None


@dataclass(frozen=True)
class BlockedSlot:
    """Public view of a custom hour: when a room is taken, never by whom or why."""

    start_time: datetime
    end_time: datetime

    @classmethod
    def from_custom_hour(cls, custom_hour: CustomHour) -> "BlockedSlot":
        return cls(start_time=custom_hour.start_time, end_time=custom_hour.end_time)

    def as_occupancy(self) -> Occupancy:
        return Occupancy(event_type="custom_hour_blocked", start_time=self.start_time, end_time=self.end_time)


def ensure_time_range(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    start = _as_utc(start)
    end = _as_utc(end)
    if start >= end:
        raise InvalidTimeRangeError()
    return start, end


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def find_free_rooms(db: Session, tenant_id: int, start: datetime, end: datetime) -> list[Room]:
    """Rooms with no timetable event or custom hour overlapping ``[start, end)``."""
    start, end = ensure_time_range(start, end)

    busy_from_timetable = select(TimetableEvent.room_id).where(
        TimetableEvent.tenant_id == tenant_id,
        TimetableEvent.room_id.is_not(None),
        TimetableEvent.start_time < end,
        TimetableEvent.end_time > start,
    )
    busy_from_custom_hours = select(CustomHour.room_id).where(
        CustomHour.room_id.is_not(None),
        CustomHour.start_time < end,
        CustomHour.end_time > start,
    )
    statement = (
        select(Room)
        .where(
            Room.tenant_id == tenant_id,
            Room.id.not_in(busy_from_timetable),
            Room.id.not_in(busy_from_custom_hours),
        )
        .order_by(Room.room_number)
    )
    return list(db.execute(statement).scalars())


def get_room(db: Session, tenant_id: int, room_number: str) -> Room:
    room = db.execute(
        select(Room).where(Room.tenant_id == tenant_id, Room.room_number == room_number)
    ).scalar_one_or_none()
    if room is None:
        raise ResourceNotFoundError("Room", room_number)
    return room


def occupancy_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Seven days from the start of the current local day, expressed in UTC."""
    now = now or datetime.now(timezone.utc)
    local_day = _as_utc(now).astimezone(LOCAL_TIMEZONE).date()
    start = datetime.combine(local_day, time.min, tzinfo=LOCAL_TIMEZONE)
    end = datetime.combine(local_day + timedelta(days=OCCUPANCY_WINDOW_DAYS), time.min, tzinfo=LOCAL_TIMEZONE)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def _timetable_details(event: TimetableEvent) -> str:
    if event.professor:
        return f"{event.summary} ({event.professor})"
    return event.summary


def get_room_occupancy(db: Session, room: Room, now: datetime | None = None) -> list[Occupancy]:
    window_start, window_end = occupancy_window(now)

    events = db.execute(
        select(TimetableEvent).where(
            TimetableEvent.room_id == room.id,
            TimetableEvent.start_time < window_end,
            TimetableEvent.end_time > window_start,
        )
    ).scalars()
    custom_hours = db.execute(
        select(CustomHour).where(
            CustomHour.room_id == room.id,
            CustomHour.start_time < window_end,
            CustomHour.end_time > window_start,
        )
    ).scalars()

    entries = [
        Occupancy(
            event_type="timetable",
            start_time=event.start_time,
            end_time=event.end_time,
            details=_timetable_details(event),
        )
        for event in events
    ]
    entries.extend(BlockedSlot.from_custom_hour(item).as_occupancy() for item in custom_hours)
    entries.sort(key=lambda entry: entry.start_time)
    return entries
