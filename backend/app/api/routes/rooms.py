from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_tenant, get_db
from app.models.room import Room
from app.models.tenant import Tenant
from app.schemas.room import FreeRoomsOut, OccupancyOut, RoomDetailsOut, RoomOut
from app.services.room_availability import ensure_time_range, find_free_rooms, get_room, get_room_occupancy

router = APIRouter()


@router.get("/rooms", response_model=list[RoomOut])
def list_rooms(tenant: Tenant = Depends(get_current_tenant), db: Session = Depends(get_db)) -> list[Room]:
    return list(db.execute(select(Room).where(Room.tenant_id == tenant.id).order_by(Room.room_number)).scalars())


@router.get("/room", response_model=RoomDetailsOut)
def room_details(
    room_number: str = Query(min_length=1, max_length=50),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db),
) -> RoomDetailsOut:
    room = get_room(db, tenant.id, room_number)
    occupancy = get_room_occupancy(db, room)
    return RoomDetailsOut(
        room=RoomOut.model_validate(room),
        occupancy=[OccupancyOut.model_validate(entry) for entry in occupancy],
    )


@router.get("/free-rooms", response_model=FreeRoomsOut)
def free_rooms(
    start_time: datetime,
    end_time: datetime,
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db),
) -> FreeRoomsOut:
    start, end = ensure_time_range(start_time, end_time)
    rooms = find_free_rooms(db, tenant.id, start, end)
    return FreeRoomsOut(
        start_time=start,
        end_time=end,
        count=len(rooms),
        rooms=[RoomOut.model_validate(room) for room in rooms],
    )
