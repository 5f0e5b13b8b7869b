import asyncio
import logging
import time

from aiokafka.errors import KafkaError
from pydantic import ValidationError

from app.core.errors import BrokerUnavailableError, NotFound
from app.models.common import new_id
from app.schemas.rejected import RejectedRow
from app.services.broker import KafkaBroker
from app.services.registry import JobStore
from app.services.topics import topic_names

logger = logging.getLogger(__name__)


class DeadLetterReader:
    """Drains whatever a job's dead-letter topic currently holds.

    Each call uses a fresh consumer group starting at the earliest offset, so
    reads never share state. Reading stops when nothing arrives before the
    deadline; an empty topic and a slow broker look the same to the caller.
    """

    def __init__(
        self,
        broker: KafkaBroker,
        jobs: JobStore,
        timeout_seconds: float = 3.0,
        prefix: str = "batch_",
        dlq_suffix: str = "_dlq",
    ) -> None:
        self.broker = broker
        self.jobs = jobs
        self.timeout_seconds = timeout_seconds
        self.prefix = prefix
        self.dlq_suffix = dlq_suffix

    async def read(self, job_id: str) -> list[RejectedRow]:
        if not self.jobs.contains(job_id):
            raise NotFound("JOB_NOT_FOUND", "job not found")

        topic = topic_names(job_id, self.prefix, self.dlq_suffix).dead_letter
        group_id = f"rejected-rows-reader-{job_id}-{new_id()}"
        deadline = time.monotonic() + self.timeout_seconds
        rows: list[RejectedRow] = []

        try:
            async with self.broker.consumer(topic, group_id) as consumer:
                while True:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    try:
                        message = await asyncio.wait_for(consumer.getone(), remaining)
                    except asyncio.TimeoutError:
                        break
                    except KafkaError as exc:
                        logger.warning("dead_letter_fetch_failed", extra={"job_id": job_id, "error": str(exc)})
                        break

                    try:
                        rows.append(RejectedRow.from_message(message.value))
                    except ValidationError as exc:
                        logger.warning(
                            "dead_letter_decode_failed",
                            extra={"job_id": job_id, "offset": message.offset, "error": str(exc)},
                        )
                    try:
                        await consumer.commit()
                    except KafkaError as exc:
                        logger.warning("dead_letter_commit_failed", extra={"job_id": job_id, "error": str(exc)})
        except BrokerUnavailableError as exc:
            logger.warning("dead_letter_reader_unavailable", extra={"job_id": job_id, "error": str(exc)})

        return rows
