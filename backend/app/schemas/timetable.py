"""Calendar payloads.

``/events`` returns a list of :data:`CalendarEvent`, a union tagged by
``event_type``; each variant carries only the fields of its own source.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from app.models.custom_hour import CustomHour
from app.models.exam import Exam
from app.models.timetable import TimetableEvent
from app.services.room_availability import BlockedSlot


class ZenturieOut(BaseModel):
    id: int
    name: str
    year: str

    model_config = {"from_attributes": True}


class CourseOut(BaseModel):
    id: int
    module_number: str
    name: str
    year: str

    model_config = {"from_attributes": True}


class TimetableEntry(BaseModel):
    event_type: Literal["timetable"] = "timetable"
    id: int
    uid: str
    summary: str
    description: str | None = None
    location: str | None = None
    room_number: str | None = None
    professor: str | None = None
    course_type: str | None = None
    course_code: str | None = None
    color: str | None = None
    border_color: str | None = None
    start_time: datetime
    end_time: datetime

    @classmethod
    def from_event(cls, event: TimetableEvent) -> "TimetableEntry":
        return cls(
            id=event.id,
            uid=event.uid,
            summary=event.summary,
            description=event.description,
            location=event.location,
            room_number=event.room_number,
            professor=event.professor,
            course_type=event.course_type,
            course_code=event.course_code,
            color=event.color,
            border_color=event.border_color,
            start_time=event.start_time,
            end_time=event.end_time,
        )


class CustomHourEntry(BaseModel):
    event_type: Literal["custom_hour"] = "custom_hour"
    id: int
    title: str
    description: str | None = None
    room_number: str | None = None
    custom_location: str | None = None
    start_time: datetime
    end_time: datetime

    @classmethod
    def from_custom_hour(cls, item: CustomHour) -> "CustomHourEntry":
        return cls(
            id=item.id,
            title=item.title,
            description=item.description,
            room_number=item.room.room_number if item.room is not None else None,
            custom_location=item.custom_location,
            start_time=item.start_time,
            end_time=item.end_time,
        )


class ExamEntry(BaseModel):
    event_type: Literal["exam"] = "exam"
    id: int
    course_name: str
    module_number: str
    duration: int
    room_number: str | None = None
    is_verified: bool
    start_time: datetime
    end_time: datetime

    @classmethod
    def from_exam(cls, exam: Exam) -> "ExamEntry":
        return cls(
            id=exam.id,
            course_name=exam.course.name,
            module_number=exam.course.module_number,
            duration=exam.duration,
            room_number=exam.room_number,
            is_verified=exam.is_verified,
            start_time=exam.start_time,
            end_time=exam.end_time,
        )


class BusyBlockEntry(BaseModel):
    event_type: Literal["custom_hour_blocked"] = "custom_hour_blocked"
    start_time: datetime
    end_time: datetime

    @classmethod
    def from_slot(cls, slot: BlockedSlot) -> "BusyBlockEntry":
        return cls(start_time=slot.start_time, end_time=slot.end_time)


CalendarEvent = Annotated[Union[TimetableEntry, CustomHourEntry, ExamEntry], Field(discriminator="event_type")]
FriendCalendarEvent = Annotated[Union[TimetableEntry, BusyBlockEntry], Field(discriminator="event_type")]


class ZenturieTimetableOut(BaseModel):
    zenturie: str
    events: list[TimetableEntry]
