from datetime import datetime

from pydantic import BaseModel


class SchedulerStatusOut(BaseModel):
    status: str
    running: bool
    next_run: datetime | None = None
    job_name: str | None = None

    model_config = {"from_attributes": True}


class ImportStatisticsOut(BaseModel):
    files_downloaded: int
    events_created: int
    events_updated: int
    events_unchanged: int
    errors: int

    model_config = {"from_attributes": True}
