from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidInputError, InvalidTimeRangeError, PermissionDeniedError, ResourceNotFoundError
from app.models.custom_hour import CustomHour
from app.models.user import User
from app.services.room_availability import get_room


def _check_location(room_number: str | None, custom_location: str | None) -> None:
    if bool(room_number) == bool(custom_location):
        raise InvalidInputError("Provide exactly one of room_number or custom_location")


def create_custom_hour(
    db: Session,
    user: User,
    *,
    title: str,
    start_time: datetime,
    end_time: datetime,
    description: str | None = None,
    room_number: str | None = None,
    custom_location: str | None = None,
) -> CustomHour:
    if start_time >= end_time:
        raise InvalidTimeRangeError()
    _check_location(room_number, custom_location)
    room = get_room(db, user.tenant_id, room_number) if room_number else None

    item = CustomHour(
        user_id=user.id,
        title=title,
        description=description,
        start_time=start_time,
        end_time=end_time,
        room_id=room.id if room is not None else None,
        custom_location=None if room is not None else custom_location,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def get_owned_custom_hour(db: Session, user: User, custom_hour_id: int) -> CustomHour:
    item = db.get(CustomHour, custom_hour_id)
    if item is None:
        raise ResourceNotFoundError("Custom hour", custom_hour_id)
    if item.user_id != user.id:
        raise PermissionDeniedError("Custom hours can only be changed by their owner")
    return item


def update_custom_hour(db: Session, user: User, custom_hour_id: int, changes: dict) -> CustomHour:
    item = get_owned_custom_hour(db, user, custom_hour_id)

    room_number = changes.pop("room_number", None)
    custom_location = changes.pop("custom_location", None)
    if room_number and custom_location:
        raise InvalidInputError("Provide exactly one of room_number or custom_location")
    if room_number:
        room = get_room(db, user.tenant_id, room_number)
        item.room_id = room.id
        item.room = room
        item.custom_location = None
    elif custom_location:
        item.room_id = None
        item.room = None
        item.custom_location = custom_location

    for key in ("title", "description", "start_time", "end_time"):
        if key in changes:
            setattr(item, key, changes[key])
    if item.start_time >= item.end_time:
        db.rollback()
        raise InvalidTimeRangeError()

    db.commit()
    db.refresh(item)
    return item


def delete_custom_hour(db: Session, user: User, custom_hour_id: int) -> None:
    item = get_owned_custom_hour(db, user, custom_hour_id)
    db.delete(item)
    db.commit()


def list_custom_hours(
    db: Session, user: User, start: datetime | None = None, end: datetime | None = None
) -> list[CustomHour]:
    statement = select(CustomHour).where(CustomHour.user_id == user.id)
    if start is not None:
        statement = statement.where(CustomHour.end_time > start)
    if end is not None:
        statement = statement.where(CustomHour.start_time < end)
    return list(db.execute(statement.order_by(CustomHour.start_time)).scalars())
