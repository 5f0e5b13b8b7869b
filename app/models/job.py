from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from app.models.common import new_id, utcnow


class JobState(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_transient(self) -> bool:
        return self in (JobState.PENDING, JobState.RUNNING)


@dataclass(slots=True)
class JobTotals:
    rows: int = 0
    ok: int = 0
    errors: int = 0


@dataclass(slots=True)
class JobTimings:
    # waiting_ms is never measured; it stays in the record for API compatibility.
    waiting_ms: int = 0
    processing_ms: int = 0


@dataclass(slots=True)
class Job:
    """Status record of one ingestion attempt.

    The background task mutates counters and timings in place while RUNNING.
    Cancel requests write ``state`` and ``cancelled`` concurrently; whoever
    writes ``state`` last wins.
    """

    model_id: str
    job_id: str = field(default_factory=new_id)
    state: JobState = JobState.PENDING
    totals: JobTotals = field(default_factory=JobTotals)
    timings: JobTimings = field(default_factory=JobTimings)
    started_at: datetime | None = None
    updated_at: datetime = field(default_factory=utcnow)
    cancelled: bool = False

    def touch(self) -> None:
        self.updated_at = utcnow()

    def mark_running(self) -> None:
        self.state = JobState.RUNNING
        self.started_at = utcnow()
        self.touch()

    def mark_failed(self) -> None:
        self.state = JobState.FAILED
        self.touch()

    def cancel(self) -> None:
        self.state = JobState.CANCELLED
        self.cancelled = True
        self.touch()

    def finish(self) -> JobState:
        self.state = resolve_terminal_state(self.totals)
        self.touch()
        return self.state


def resolve_terminal_state(totals: JobTotals) -> JobState:
    if totals.errors > 0 and totals.ok > 0:
        return JobState.PARTIAL_SUCCESS
    if totals.errors > 0:
        return JobState.FAILED
    return JobState.SUCCESS
