import logging
from dataclasses import dataclass

from aiokafka.errors import TopicAlreadyExistsError

from app.core.config import Settings
from app.core.errors import BrokerUnavailableError, ProvisioningError
from app.services.broker import KafkaBroker, TopicSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class JobTopics:
    primary: str
    dead_letter: str


def topic_names(job_id: str, prefix: str = "batch_", dlq_suffix: str = "_dlq") -> JobTopics:
    primary = f"{prefix}{job_id}"
    return JobTopics(primary=primary, dead_letter=f"{primary}{dlq_suffix}")


class TopicProvisioner:
    """Creates the primary and dead-letter topics of a job.

    Provisioning runs on every job start; topics that already exist count as
    provisioned.
    """

    def __init__(self, broker: KafkaBroker, settings: Settings) -> None:
        self.broker = broker
        self.settings = settings

    def topics_for(self, job_id: str) -> JobTopics:
        return topic_names(job_id, self.settings.topic_prefix, self.settings.dlq_suffix)

    def _spec(self, name: str) -> TopicSpec:
        return TopicSpec(
            name=name,
            partitions=self.settings.topic_partitions,
            replication_factor=self.settings.topic_replication_factor,
            configs={
                "cleanup.policy": "delete",
                "retention.ms": str(self.settings.topic_retention_ms),
            },
        )

    async def provision(self, job_id: str) -> JobTopics:
        topics = self.topics_for(job_id)
        try:
            results = await self.broker.create_topics([self._spec(topics.primary), self._spec(topics.dead_letter)])
        except BrokerUnavailableError as exc:
            raise ProvisioningError(f"failed to connect to kafka: {exc}") from exc

        for topic, error in results.items():
            if error is None:
                logger.info("topic_created", extra={"job_id": job_id, "topic": topic})
            elif isinstance(error, TopicAlreadyExistsError):
                logger.debug("topic_exists", extra={"job_id": job_id, "topic": topic})
            else:
                # The topic may still be usable; publishing will surface real problems per row.
                logger.warning("topic_create_failed", extra={"job_id": job_id, "topic": topic, "error": str(error)})
        return topics
