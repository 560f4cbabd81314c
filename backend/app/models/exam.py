from datetime import datetime, timedelta

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.types import UTCDateTime
from app.models.course import Course
from app.models.room import Room

EXAM_DURATIONS = (30, 45, 60, 90, 120)


class Exam(Base):
    __tablename__ = "exams"
    __table_args__ = (
        CheckConstraint(
            f"duration IN ({', '.join(str(item) for item in EXAM_DURATIONS)})",
            name="ck_exams_duration",
        ),
        UniqueConstraint("user_id", "course_id", "start_time", "duration", name="uq_exams_user_group"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, index=True, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    room_id: Mapped[int | None] = mapped_column(ForeignKey("rooms.id", ondelete="SET NULL"), index=True)

    course: Mapped[Course] = relationship(lazy="joined")
    room: Mapped[Room | None] = relationship(lazy="joined")

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration)

    @property
    def room_number(self) -> str | None:
        return self.room.room_number if self.room is not None else None
