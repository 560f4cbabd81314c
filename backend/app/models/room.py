from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


def extract_building_and_floor(room_number: str) -> tuple[str, str]:
    """``A104`` -> (``A``, ``1``): first letter, then the first digit after it."""
    for index, char in enumerate(room_number):
        if char.isalpha():
            floor = next((item for item in room_number[index + 1:] if item.isdigit()), "")
            return char, floor
    return "", ""


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (UniqueConstraint("tenant_id", "room_number", name="uq_rooms_tenant_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), index=True, nullable=False)
    room_number: Mapped[str] = mapped_column(String(50), nullable=False)
    building: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    floor: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    room_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
