from fastapi import APIRouter, Depends, status
from pydantic import AwareDatetime
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.models.custom_hour import CustomHour
from app.models.user import User
from app.schemas.custom_hour import CustomHourCreate, CustomHourOut, CustomHourUpdate
from app.services.custom_hours import create_custom_hour, delete_custom_hour, list_custom_hours, update_custom_hour

router = APIRouter()


def _out(item: CustomHour) -> CustomHourOut:
    return CustomHourOut(
        id=item.id,
        title=item.title,
        description=item.description,
        start_time=item.start_time,
        end_time=item.end_time,
        room_number=item.room.room_number if item.room is not None else None,
        custom_location=item.custom_location,
    )


@router.get("/", response_model=list[CustomHourOut])
def list_items(
    start_time: AwareDatetime | None = None,
    end_time: AwareDatetime | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[CustomHourOut]:
    return [_out(item) for item in list_custom_hours(db, current_user, start_time, end_time)]


@router.post("/", response_model=CustomHourOut, status_code=status.HTTP_201_CREATED)
def create_item(
    payload: CustomHourCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CustomHourOut:
    item = create_custom_hour(db, current_user, **payload.model_dump())
    return _out(item)


@router.put("/{custom_hour_id}", response_model=CustomHourOut)
def update_item(
    custom_hour_id: int,
    payload: CustomHourUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CustomHourOut:
    item = update_custom_hour(db, current_user, custom_hour_id, payload.model_dump(exclude_unset=True))
    return _out(item)


@router.delete("/{custom_hour_id}")
def delete_item(
    custom_hour_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    delete_custom_hour(db, current_user, custom_hour_id)
    return {"success": True}
