import asyncio
import logging
from dataclasses import dataclass, field

from app.core.config import Settings
from app.models.job import Job
from app.services.broker import KafkaBroker
from app.workers.tasks import run_ingestion_job

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class JobHandle:
    job: Job
    task: asyncio.Task
    cancel_token: asyncio.Event = field(default_factory=asyncio.Event)


class JobRunner:
    """Schedules one detached asyncio task per accepted upload.

    There is no concurrency limit. Handles are kept until their task ends so
    cancel requests can reach the row loop.
    """

    def __init__(self, broker: KafkaBroker, settings: Settings) -> None:
        self.broker = broker
        self.settings = settings
        self._handles: dict[str, JobHandle] = {}

    def submit(self, job: Job, file_path: str, file_type: str) -> JobHandle:
        token = asyncio.Event()
        task = asyncio.create_task(
            run_ingestion_job(
                job,
                file_path,
                file_type,
                broker=self.broker,
                settings=self.settings,
                cancel_token=token if self.settings.cancel_stops_processing else None,
            ),
            name=f"ingest-{job.job_id}",
        )
        handle = JobHandle(job=job, task=task, cancel_token=token)
        self._handles[job.job_id] = handle
        task.add_done_callback(lambda _: self._handles.pop(job.job_id, None))
        return handle

    def cancel(self, job_id: str) -> bool:
        handle = self._handles.get(job_id)
        if handle is None:
            return False
        handle.cancel_token.set()
        return True

    def active_jobs(self) -> list[str]:
        return list(self._handles)

    async def shutdown(self) -> None:
        handles = list(self._handles.values())
        if not handles:
            return
        logger.info("job_runner_shutdown", extra={"active_jobs": len(handles)})
        for handle in handles:
            handle.task.cancel()
        await asyncio.gather(*(h.task for h in handles), return_exceptions=True)
