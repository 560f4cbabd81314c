from datetime import datetime

from pydantic import BaseModel, Field


class SearchHitOut(BaseModel):
    result_type: str
    id: int
    name: str
    score: float
    details: str | None = None
    start_time: datetime | None = None
    location: str | None = None

    model_config = {"from_attributes": True}


class SearchResponse(BaseModel):
    timetables: list[SearchHitOut] = Field(default_factory=list)
    custom_hours: list[SearchHitOut] = Field(default_factory=list)
    exams: list[SearchHitOut] = Field(default_factory=list)
    rooms: list[SearchHitOut] = Field(default_factory=list)
    friends: list[SearchHitOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}
