from datetime import datetime

from pydantic import AwareDatetime, BaseModel, Field, field_validator, model_validator


def _strip_optional(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


class CustomHourCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    start_time: AwareDatetime
    end_time: AwareDatetime
    room_number: str | None = Field(default=None, max_length=50)
    custom_location: str | None = Field(default=None, max_length=255)

    @field_validator("description", "room_number", "custom_location")
    @classmethod
    def normalize_optional(cls, value: str | None) -> str | None:
        return _strip_optional(value)

    @model_validator(mode="after")
    def validate_location(self) -> "CustomHourCreate":
        if bool(self.room_number) == bool(self.custom_location):
            raise ValueError("Provide exactly one of room_number or custom_location")
        return self


class CustomHourUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    start_time: AwareDatetime | None = None
    end_time: AwareDatetime | None = None
    room_number: str | None = Field(default=None, max_length=50)
    custom_location: str | None = Field(default=None, max_length=255)

    @field_validator("title", "start_time", "end_time")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @field_validator("room_number", "custom_location")
    @classmethod
    def normalize_optional(cls, value: str | None) -> str | None:
        return _strip_optional(value)


class CustomHourOut(BaseModel):
    id: int
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    room_number: str | None = None
    custom_location: str | None = None
