from datetime import datetime

from pydantic import BaseModel, EmailStr, field_validator

from app.models.friend_request import FriendRequestStatus
from app.models.user import User
from app.schemas.timetable import FriendCalendarEvent


class FriendRequestCreate(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class FriendRequestAnswer(BaseModel):
    request_id: int


class FriendOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    initials: str
    email: str
    zenturie: str | None = None

    @classmethod
    def from_user(cls, user: User) -> "FriendOut":
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            initials=user.initials,
            email=user.email,
            zenturie=user.zenturie_name,
        )


class FriendRequestOut(BaseModel):
    id: int
    status: FriendRequestStatus
    requester: FriendOut
    receiver: FriendOut
    created_at: datetime | None = None


class FriendRequestsOut(BaseModel):
    incoming: list[FriendRequestOut]
    outgoing: list[FriendRequestOut]


class FriendScheduleOut(BaseModel):
    friend: FriendOut
    events: list[FriendCalendarEvent]
