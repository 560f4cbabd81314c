from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.models.user import NotificationPreference, Theme


class UserOut(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    initials: str
    zenturie: str | None = None
    subscription_uuid: str | None = None
    roles: list[str] = Field(default_factory=list)
    created_at: datetime | None = None


class ZenturieAssign(BaseModel):
    zenturie: str = Field(min_length=1, max_length=50)

    @field_validator("zenturie")
    @classmethod
    def normalize_zenturie(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Zenturie cannot be empty")
        return trimmed


class SubscriptionOut(BaseModel):
    subscription_uuid: str
    url: str


class UserSettingsOut(BaseModel):
    theme: Theme
    notification_preference: NotificationPreference

    model_config = {"from_attributes": True}


class UserSettingsUpdate(BaseModel):
    theme: Theme | None = None
    notification_preference: NotificationPreference | None = None
