import threading

from app.models.job import Job, JobState, JobTotals, resolve_terminal_state
from app.models.model import Model
from app.services.registry import JobStore, ModelStore, ReadWriteLock


def test_job_defaults():
    job = Job(model_id="m1")
    assert len(job.job_id) == 8
    assert job.job_id.isalnum() and job.job_id.lower() == job.job_id
    assert job.state is JobState.PENDING
    assert job.started_at is None
    assert (job.totals.rows, job.totals.ok, job.totals.errors) == (0, 0, 0)
    assert job.timings.waiting_ms == 0


def test_job_ids_are_unique():
    assert len({Job(model_id="m").job_id for _ in range(200)}) == 200


def test_resolve_terminal_state():
    assert resolve_terminal_state(JobTotals(rows=3, ok=3, errors=0)) is JobState.SUCCESS
    assert resolve_terminal_state(JobTotals(rows=3, ok=3, errors=2)) is JobState.PARTIAL_SUCCESS
    assert resolve_terminal_state(JobTotals(rows=0, ok=0, errors=4)) is JobState.FAILED
    assert resolve_terminal_state(JobTotals()) is JobState.SUCCESS


def test_cancel_marks_state_and_flag():
    job = Job(model_id="m1")
    job.mark_running()
    before = job.updated_at
    job.cancel()
    assert job.state is JobState.CANCELLED
    assert job.cancelled is True
    assert job.updated_at >= before


def test_finish_overwrites_cancelled_state():
    job = Job(model_id="m1")
    job.cancel()
    job.totals.ok = 1
    assert job.finish() is JobState.SUCCESS


def test_job_store_crud():
    store = JobStore()
    job = store.add(Job(model_id="m1"))
    assert store.get(job.job_id) is job
    assert store.contains(job.job_id)
    assert store.list() == [job]
    assert store.get("missing") is None
    assert store.delete(job.job_id)
    assert not store.delete(job.job_id)


def test_update_in_place_and_replace():
    store = ModelStore()
    store.add(Model(id="m1", name="orders", schema={"type": "object"}))

    renamed = store.update("m1", lambda m: Model(id="m1", name="orders_v2", schema=m.schema))
    assert renamed.name == "orders_v2"
    assert store.get("m1").name == "orders_v2"

    def _rename(model: Model) -> None:
        model.name = "orders_v3"

    assert store.update("m1", _rename).name == "orders_v3"
    assert store.update("missing", _rename) is None


def test_stores_are_independent():
    jobs, models = JobStore(), ModelStore()
    models.add(Model(id="m1"))
    job = jobs.add(Job(model_id="m1"))
    models.delete("m1")
    assert jobs.get(job.job_id).model_id == "m1"


def test_concurrent_writers_do_not_lose_updates():
    store = ModelStore()
    store.add(Model(id="counter", schema=0))

    def _bump(model: Model) -> None:
        model.schema += 1

    def worker() -> None:
        for _ in range(200):
            store.update("counter", _bump)
            store.list()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert store.get("counter").schema == 1600


def test_read_write_lock_allows_parallel_readers():
    lock = ReadWriteLock()
    inside = threading.Barrier(2, timeout=2)

    def reader() -> None:
        with lock.read():
            inside.wait()

    threads = [threading.Thread(target=reader) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert not inside.broken
