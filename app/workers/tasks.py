import asyncio
import logging

from app.core.config import Settings
from app.core.errors import PipelineError, ProvisioningError
from app.models.job import Job
from app.services.broker import KafkaBroker
from app.services.formats import open_record_source
from app.services.storage import delete_file_if_exists
from app.services.streamer import RowStreamer
from app.services.topics import TopicProvisioner

logger = logging.getLogger(__name__)


async def run_ingestion_job(
    job: Job,
    file_path: str,
    file_type: str,
    broker: KafkaBroker,
    settings: Settings,
    cancel_token: asyncio.Event | None = None,
) -> None:
    """Provision the job's topics and stream the spooled upload into them.

    The spooled file is removed when the job ends, whatever the outcome.
    """
    try:
        if cancel_token is not None and cancel_token.is_set():
            logger.info("job_cancelled_before_start", extra={"job_id": job.job_id})
            return

        job.mark_running()
        logger.info("job_started", extra={"job_id": job.job_id, "model_id": job.model_id, "file_type": file_type})

        try:
            topics = await TopicProvisioner(broker, settings).provision(job.job_id)
        except ProvisioningError as exc:
            logger.error("job_provisioning_failed", extra={"job_id": job.job_id, "error": str(exc)})
            job.mark_failed()
            return

        with open(file_path, "rb") as handle:
            source = open_record_source(file_type, handle)
            async with broker.producer() as producer:
                streamer = RowStreamer(
                    producer,
                    topics,
                    publish_timeout=settings.publish_timeout_seconds,
                    cancel_token=cancel_token,
                )
                await streamer.stream(job, source)
    except PipelineError as exc:
        logger.error("ingestion_job_failed", extra={"job_id": job.job_id, "error": str(exc)})
        job.mark_failed()
    except Exception as exc:  # noqa: BLE001
        logger.exception("ingestion_job_crashed", extra={"job_id": job.job_id, "error": str(exc)})
        job.mark_failed()
    finally:
        delete_file_if_exists(file_path)
