from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.types import UTCDateTime
from app.models.room import Room

# Nullable text columns where NULL and "" mean the same thing to the importer.
OPTIONAL_TEXT_FIELDS = ("description", "location", "professor", "course_type", "course_code")
OPTIONAL_ID_FIELDS = ("course_id", "room_id")
TRACKED_FIELDS = ("zenturie_id", "summary", "start_time", "end_time") + OPTIONAL_ID_FIELDS + OPTIONAL_TEXT_FIELDS


def _text(value: str | None) -> str:
    return value or ""


def _seconds(value: datetime) -> datetime:
    return value.replace(microsecond=0)


class TimetableEvent(Base):
    __tablename__ = "timetables"
    __table_args__ = (UniqueConstraint("uid", "zenturie_id", name="idx_uid_zenturie"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), index=True, nullable=False)
    zenturie_id: Mapped[int] = mapped_column(
        ForeignKey("zenturien.id", ondelete="CASCADE"), index=True, nullable=False
    )
    course_id: Mapped[int | None] = mapped_column(ForeignKey("courses.id", ondelete="SET NULL"), index=True)
    room_id: Mapped[int | None] = mapped_column(ForeignKey("rooms.id", ondelete="SET NULL"), index=True)

    uid: Mapped[str] = mapped_column(String(255), nullable=False)
    summary: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, index=True, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    professor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    course_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    course_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    border_color: Mapped[str | None] = mapped_column(String(20), nullable=True)

    room: Mapped[Room | None] = relationship(lazy="joined")

    def differs_from(self, other: "TimetableEvent") -> list[str]:
        """Names of tracked fields whose values differ; empty when unchanged."""
        changed: list[str] = []
        if self.zenturie_id != other.zenturie_id:
            changed.append("zenturie_id")
        if self.summary != other.summary:
            changed.append("summary")
        if _seconds(self.start_time) != _seconds(other.start_time):
            changed.append("start_time")
        if _seconds(self.end_time) != _seconds(other.end_time):
            changed.append("end_time")
        for name in OPTIONAL_ID_FIELDS:
            if getattr(self, name) != getattr(other, name):
                changed.append(name)
        for name in OPTIONAL_TEXT_FIELDS:
            if _text(getattr(self, name)) != _text(getattr(other, name)):
                changed.append(name)
        return changed

    def apply(self, other: "TimetableEvent") -> None:
        for name in TRACKED_FIELDS:
            setattr(self, name, getattr(other, name))

    @property
    def room_number(self) -> str | None:
        return self.room.room_number if self.room is not None else None
