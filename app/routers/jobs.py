import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from app.core.config import Settings
from app.core.errors import ApiError, InvalidRequest, NotFound, UnknownReference
from app.models.job import Job
from app.routers.deps import (
    get_app_settings,
    get_dead_letter_reader,
    get_job_runner,
    get_job_store,
    get_model_store,
)
from app.schemas.job import JobCreateResponse, JobRead
from app.schemas.rejected import RejectedRow
from app.services.dead_letter import DeadLetterReader
from app.services.formats import detect_file_type
from app.services.registry import JobStore, ModelStore
from app.services.storage import delete_file_if_exists, save_upload_file
from app.workers.runner import JobRunner

router = APIRouter(prefix="/jobs", tags=["jobs"])
logger = logging.getLogger(__name__)


def _job_not_found() -> NotFound:
    return NotFound("JOB_NOT_FOUND", "job not found")


@router.post("", response_model=JobCreateResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_job(
    model_id: str | None = Form(default=None),
    file: UploadFile | None = File(default=None),
    settings: Settings = Depends(get_app_settings),
    jobs: JobStore = Depends(get_job_store),
    models: ModelStore = Depends(get_model_store),
    runner: JobRunner = Depends(get_job_runner),
) -> JobCreateResponse:
    if not model_id:
        raise InvalidRequest("MISSING_MODEL_ID", "model_id is required")
    if not models.contains(model_id):
        raise UnknownReference("MODEL_NOT_FOUND", "model not found")
    if file is None:
        raise InvalidRequest("MISSING_FILE", "file is required")

    saved_path = await save_upload_file(file, settings)
    try:
        with open(saved_path, "rb") as handle:
            file_type = detect_file_type(handle, file.filename or "")
    except ApiError:
        delete_file_if_exists(saved_path)
        raise

    job = jobs.add(Job(model_id=model_id))
    runner.submit(job, saved_path, file_type)
    logger.info("job_accepted", extra={"job_id": job.job_id, "model_id": model_id, "file_type": file_type})
    return JobCreateResponse(job_id=job.job_id)


@router.get("", response_model=list[JobRead])
def list_jobs(jobs: JobStore = Depends(get_job_store)) -> list[Job]:
    return jobs.list()


@router.get("/{job_id}", response_model=JobRead)
def get_job(job_id: str, jobs: JobStore = Depends(get_job_store)) -> Job:
    job = jobs.get(job_id)
    if job is None:
        raise _job_not_found()
    return job


@router.delete("/{job_id}", response_model=JobRead, status_code=status.HTTP_202_ACCEPTED)
async def cancel_job(
    job_id: str,
    jobs: JobStore = Depends(get_job_store),
    runner: JobRunner = Depends(get_job_runner),
) -> JobRead:
    job = jobs.update(job_id, lambda current: current.cancel())
    if job is None:
        raise _job_not_found()
    # Snapshot before the running task gets a chance to touch the record again.
    snapshot = JobRead.model_validate(job)
    runner.cancel(job_id)
    logger.info("job_cancel_requested", extra={"job_id": job_id})
    return snapshot


@router.get("/{job_id}/rejected", response_model=list[RejectedRow])
async def rejected_rows(job_id: str, reader: DeadLetterReader = Depends(get_dead_letter_reader)) -> list[RejectedRow]:
    return await reader.read(job_id)
