from datetime import datetime

from pydantic import AwareDatetime, BaseModel, Field, field_validator

from app.models.exam import EXAM_DURATIONS


class ExamCreate(BaseModel):
    module_number: str = Field(min_length=1, max_length=50)
    start_time: AwareDatetime
    duration: int
    room_number: str | None = Field(default=None, max_length=50)

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        if value not in EXAM_DURATIONS:
            raise ValueError(f"duration must be one of {', '.join(str(item) for item in EXAM_DURATIONS)}")
        return value

    @field_validator("module_number", "room_number")
    @classmethod
    def strip_values(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class ExamOut(BaseModel):
    id: int
    module_number: str
    course_name: str
    start_time: datetime
    end_time: datetime
    duration: int
    room_number: str | None = None
    is_verified: bool
    reported_by_me: bool = False
