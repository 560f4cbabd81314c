from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.types import UTCDateTime
from app.models.room import Room


class CustomHour(Base):
    __tablename__ = "custom_hours"
    __table_args__ = (
        CheckConstraint(
            "(room_id IS NULL) <> (custom_location IS NULL)",
            name="ck_custom_hours_room_xor_location",
        ),
        CheckConstraint("start_time < end_time", name="ck_custom_hours_time_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, index=True, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    room_id: Mapped[int | None] = mapped_column(ForeignKey("rooms.id", ondelete="SET NULL"), index=True)
    custom_location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    room: Mapped[Room | None] = relationship(lazy="joined")

    @property
    def location(self) -> str | None:
        if self.room is not None:
            return self.room.room_number
        return self.custom_location
