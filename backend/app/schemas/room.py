from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class RoomOut(BaseModel):
    id: int
    room_number: str
    building: str
    floor: str
    room_name: str | None = None

    model_config = {"from_attributes": True}


class FreeRoomsOut(BaseModel):
    start_time: datetime
    end_time: datetime
    count: int
    rooms: list[RoomOut]


class OccupancyOut(BaseModel):
    event_type: Literal["timetable", "custom_hour_blocked"]
    start_time: datetime
    end_time: datetime
    details: str | None = None

    model_config = {"from_attributes": True}


class RoomDetailsOut(BaseModel):
    room: RoomOut
    occupancy: list[OccupancyOut]
