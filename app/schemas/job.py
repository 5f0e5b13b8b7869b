from datetime import datetime

from pydantic import BaseModel

from app.models.job import JobState


class JobTotalsRead(BaseModel):
    rows: int
    ok: int
    errors: int

    model_config = {"from_attributes": True}


class JobTimingsRead(BaseModel):
    waiting_ms: int
    processing_ms: int

    model_config = {"from_attributes": True}


class JobRead(BaseModel):
    job_id: str
    model_id: str
    state: JobState
    totals: JobTotalsRead
    timings: JobTimingsRead
    updated_at: datetime
    started_at: datetime | None

    model_config = {"from_attributes": True}


class JobCreateResponse(BaseModel):
    job_id: str
