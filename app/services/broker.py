import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.admin import AIOKafkaAdminClient, NewTopic
from aiokafka.errors import KafkaConnectionError, KafkaError, TopicAlreadyExistsError, for_code

from app.core.config import Settings
from app.core.errors import BrokerUnavailableError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TopicSpec:
    name: str
    partitions: int = 1
    replication_factor: int = 1
    configs: dict[str, str] = field(default_factory=dict)


class KafkaBroker:
    """Thin aiokafka facade used by the ingestion pipeline.

    Tests swap this for an in-memory broker with the same surface:
    ``create_topics``, ``producer()`` and ``consumer()``.
    """

    def __init__(self, bootstrap_servers: list[str], request_timeout_ms: int = 10_000) -> None:
        self.bootstrap_servers = bootstrap_servers
        self.request_timeout_ms = request_timeout_ms

    @classmethod
    def from_settings(cls, settings: Settings) -> "KafkaBroker":
        return cls(settings.broker_list(), request_timeout_ms=int(settings.publish_timeout_seconds * 1000))

    async def create_topics(self, specs: list[TopicSpec]) -> dict[str, KafkaError | None]:
        """Create topics, returning the per-topic error (None on success).

        Raises BrokerUnavailableError when no broker can be reached.
        """
        admin = AIOKafkaAdminClient(
            bootstrap_servers=self.bootstrap_servers,
            request_timeout_ms=self.request_timeout_ms,
        )
        try:
            await admin.start()
        except KafkaError as exc:
            await admin.close()
            raise BrokerUnavailableError(f"unable to reach kafka at {','.join(self.bootstrap_servers)}: {exc}") from exc

        new_topics = [
            NewTopic(
                name=spec.name,
                num_partitions=spec.partitions,
                replication_factor=spec.replication_factor,
                topic_configs=spec.configs,
            )
            for spec in specs
        ]
        try:
            response = await admin.create_topics(new_topics)
        except TopicAlreadyExistsError as exc:
            return {spec.name: exc for spec in specs}
        except KafkaConnectionError as exc:
            raise BrokerUnavailableError(str(exc)) from exc
        finally:
            await admin.close()

        results: dict[str, KafkaError | None] = {spec.name: None for spec in specs}
        for topic_error in response.topic_errors:
            topic, code = topic_error[0], topic_error[1]
            if code:
                results[topic] = for_code(code)()
        return results

    @asynccontextmanager
    async def producer(self) -> AsyncIterator[AIOKafkaProducer]:
        producer = AIOKafkaProducer(
            bootstrap_servers=self.bootstrap_servers,
            acks=1,
            request_timeout_ms=self.request_timeout_ms,
        )
        try:
            await producer.start()
        except KafkaError as exc:
            await producer.stop()
            raise BrokerUnavailableError(str(exc)) from exc
        try:
            yield producer
        finally:
            await producer.stop()

    @asynccontextmanager
    async def consumer(self, topic: str, group_id: str) -> AsyncIterator[AIOKafkaConsumer]:
        consumer = AIOKafkaConsumer(
            topic,
            bootstrap_servers=self.bootstrap_servers,
            group_id=group_id,
            auto_offset_reset="earliest",
            enable_auto_commit=False,
        )
        try:
            await consumer.start()
        except KafkaError as exc:
            await consumer.stop()
            raise BrokerUnavailableError(str(exc)) from exc
        try:
            yield consumer
        finally:
            await consumer.stop()
