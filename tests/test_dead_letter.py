import asyncio

import pytest

from app.core.errors import NotFound
from app.models.job import Job
from app.schemas.rejected import RejectedRow
from app.services.dead_letter import DeadLetterReader
from app.services.registry import JobStore


@pytest.fixture()
def jobs():
    return JobStore()


def _publish(broker, topic, value):
    async def _send():
        async with broker.producer() as producer:
            await producer.send_and_wait(topic, value=value)

    asyncio.run(_send())


def test_unknown_job_is_not_found_before_broker(broker, jobs):
    reader = DeadLetterReader(broker, jobs, timeout_seconds=0.1)
    with pytest.raises(NotFound) as exc_info:
        asyncio.run(reader.read("nope1234"))
    assert exc_info.value.code == "JOB_NOT_FOUND"
    assert broker.consumer_groups == []


def test_empty_dead_letter_returns_empty_list(broker, jobs):
    job = jobs.add(Job(model_id="m1"))
    reader = DeadLetterReader(broker, jobs, timeout_seconds=0.1)
    assert asyncio.run(reader.read(job.job_id)) == []


def test_reads_rows_in_order_and_skips_undecodable(broker, jobs):
    job = jobs.add(Job(model_id="m1"))
    topic = f"batch_{job.job_id}_dlq"
    _publish(broker, topic, RejectedRow(job_id=job.job_id, row_number=2, raw_data="x", error="bad").to_message())
    _publish(broker, topic, b"not json")
    _publish(broker, topic, RejectedRow(job_id=job.job_id, row_number=5, raw_data="y", error="bad").to_message())

    rows = asyncio.run(DeadLetterReader(broker, jobs, timeout_seconds=0.2).read(job.job_id))

    assert [r.row_number for r in rows] == [2, 5]
    assert rows[0].raw_data == "x"


def test_each_read_uses_a_fresh_group_from_earliest(broker, jobs):
    job = jobs.add(Job(model_id="m1"))
    topic = f"batch_{job.job_id}_dlq"
    _publish(broker, topic, RejectedRow(job_id=job.job_id, row_number=1, raw_data="", error="bad").to_message())
    reader = DeadLetterReader(broker, jobs, timeout_seconds=0.1)

    first = asyncio.run(reader.read(job.job_id))
    second = asyncio.run(reader.read(job.job_id))

    assert len(first) == len(second) == 1
    assert len(set(broker.consumer_groups)) == 2
    assert all(g.startswith(f"rejected-rows-reader-{job.job_id}-") for g in broker.consumer_groups)
    assert broker.committed[(topic, broker.consumer_groups[0])] == 1


def test_unreachable_broker_yields_empty_list(broker, jobs):
    job = jobs.add(Job(model_id="m1"))
    broker.reachable = False
    assert asyncio.run(DeadLetterReader(broker, jobs, timeout_seconds=0.1).read(job.job_id)) == []
