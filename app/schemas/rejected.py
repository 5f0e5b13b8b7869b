from datetime import datetime

from pydantic import BaseModel, Field

from app.models.common import utcnow


class RejectedRow(BaseModel):
    """Dead-letter entry; serialized as JSON into the job's dead-letter topic."""

    job_id: str
    row_number: int
    raw_data: str
    error: str
    timestamp: datetime = Field(default_factory=utcnow)

    def to_message(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_message(cls, value: bytes) -> "RejectedRow":
        return cls.model_validate_json(value)
