import asyncio
import json
import logging
import time
from contextlib import closing
from typing import Any

from aiokafka.errors import KafkaError

from app.models.job import Job, JobState
from app.schemas.rejected import RejectedRow
from app.services.formats import RecordSource
from app.services.topics import JobTopics

logger = logging.getLogger(__name__)


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class RowStreamer:
    """Publishes the records of one upload to the job's primary topic.

    Records that fail to parse, encode or publish go to the dead-letter topic
    with their 1-based row number; the job never aborts on a bad row. One
    publish is in flight at a time so the primary topic keeps input order.

    ``rows`` counts successfully parsed records only. Parse failures show up
    in ``errors`` alone.
    """

    def __init__(
        self,
        producer: Any,
        topics: JobTopics,
        publish_timeout: float = 10.0,
        cancel_token: asyncio.Event | None = None,
    ) -> None:
        self.producer = producer
        self.topics = topics
        self.publish_timeout = publish_timeout
        self.cancel_token = cancel_token

    async def _publish(self, topic: str, value: bytes, key: bytes) -> None:
        await asyncio.wait_for(self.producer.send_and_wait(topic, value=value, key=key), self.publish_timeout)

    async def _dead_letter(self, job: Job, row_number: int, raw_data: str, error: str) -> None:
        row = RejectedRow(job_id=job.job_id, row_number=row_number, raw_data=raw_data, error=error)
        try:
            await self._publish(self.topics.dead_letter, row.to_message(), job.job_id.encode("utf-8"))
        except (KafkaError, asyncio.TimeoutError) as exc:
            logger.error(
                "dead_letter_write_failed",
                extra={"job_id": job.job_id, "row_number": row_number, "error": _describe(exc), "raw_data": raw_data},
            )

    def _cancel_requested(self) -> bool:
        return self.cancel_token is not None and self.cancel_token.is_set()

    async def stream(self, job: Job, source: RecordSource) -> JobState:
        started = time.monotonic()
        cancelled = False
        key = job.job_id.encode("utf-8")

        with closing(source.records()) as records:
            for record in records:
                if self._cancel_requested():
                    cancelled = True
                    break

                if not record.ok:
                    job.totals.errors += 1
                    job.touch()
                    await self._dead_letter(job, record.row_number, record.raw, record.error or "parse error")
                    continue

                job.totals.rows += 1
                job.touch()

                try:
                    payload = json.dumps(record.fields).encode("utf-8")
                except (TypeError, ValueError) as exc:
                    job.totals.errors += 1
                    job.touch()
                    await self._dead_letter(job, record.row_number, record.raw, f"JSON marshal error: {_describe(exc)}")
                    continue

                try:
                    await self._publish(self.topics.primary, payload, key)
                except (KafkaError, asyncio.TimeoutError) as exc:
                    job.totals.errors += 1
                    job.touch()
                    await self._dead_letter(job, record.row_number, record.raw, f"Kafka write error: {_describe(exc)}")
                    continue

                job.totals.ok += 1
                job.touch()

        # a cancel can land while the last publish is in flight
        cancelled = cancelled or self._cancel_requested()
        job.timings.processing_ms = int((time.monotonic() - started) * 1000)
        if cancelled:
            logger.info(
                "job_stream_cancelled",
                extra={"job_id": job.job_id, "rows": job.totals.rows, "ok": job.totals.ok, "errors": job.totals.errors},
            )
            job.touch()
            return job.state

        state = job.finish()
        logger.info(
            "job_completed",
            extra={
                "job_id": job.job_id,
                "state": state.value,
                "rows": job.totals.rows,
                "ok": job.totals.ok,
                "errors": job.totals.errors,
                "processing_ms": job.timings.processing_ms,
            },
        )
        return state
