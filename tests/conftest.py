import asyncio
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

import pytest
from aiokafka.errors import KafkaError, TopicAlreadyExistsError
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.errors import BrokerUnavailableError
from app.main import create_app
from app.services.broker import TopicSpec


@dataclass
class FakeMessage:
    topic: str
    offset: int
    key: bytes | None
    value: bytes


class FakeProducer:
    def __init__(self, broker: "FakeBroker") -> None:
        self.broker = broker

    async def send_and_wait(self, topic: str, value: bytes | None = None, key: bytes | None = None) -> FakeMessage:
        if self.broker.publish_delay:
            await asyncio.sleep(self.broker.publish_delay)
        if self.broker.fail_publish is not None and self.broker.fail_publish(topic, value or b""):
            raise KafkaError("broker rejected message")
        log = self.broker.messages.setdefault(topic, [])
        message = FakeMessage(topic=topic, offset=len(log), key=key, value=value or b"")
        log.append(message)
        return message


class FakeConsumer:
    def __init__(self, broker: "FakeBroker", topic: str, group_id: str) -> None:
        self.broker = broker
        self.topic = topic
        self.group_id = group_id
        self.position = broker.committed.get((topic, group_id), 0)

    async def getone(self) -> FakeMessage:
        log = self.broker.messages.get(self.topic, [])
        if self.position < len(log):
            message = log[self.position]
            self.position += 1
            return message
        # nothing more to fetch: block until the caller's deadline cancels us
        await asyncio.Event().wait()

    async def commit(self) -> None:
        self.broker.committed[(self.topic, self.group_id)] = self.position


class FakeBroker:
    """In-memory stand-in for KafkaBroker."""

    def __init__(self) -> None:
        self.reachable = True
        self.topics: dict[str, TopicSpec] = {}
        self.messages: dict[str, list[FakeMessage]] = {}
        self.committed: dict[tuple[str, str], int] = {}
        self.create_calls = 0
        self.consumer_groups: list[str] = []
        self.topic_errors: dict[str, KafkaError] = {}
        self.fail_publish: Callable[[str, bytes], bool] | None = None
        self.publish_delay = 0.0

    async def create_topics(self, specs: list[TopicSpec]) -> dict[str, KafkaError | None]:
        self.create_calls += 1
        if not self.reachable:
            raise BrokerUnavailableError("connection refused")
        results: dict[str, KafkaError | None] = {}
        for spec in specs:
            if spec.name in self.topic_errors:
                results[spec.name] = self.topic_errors[spec.name]
            elif spec.name in self.topics:
                results[spec.name] = TopicAlreadyExistsError()
            else:
                self.topics[spec.name] = spec
                results[spec.name] = None
        return results

    @asynccontextmanager
    async def producer(self):
        if not self.reachable:
            raise BrokerUnavailableError("connection refused")
        yield FakeProducer(self)

    @asynccontextmanager
    async def consumer(self, topic: str, group_id: str):
        if not self.reachable:
            raise BrokerUnavailableError("connection refused")
        self.consumer_groups.append(group_id)
        yield FakeConsumer(self, topic, group_id)

    def values(self, topic: str) -> list[bytes]:
        return [message.value for message in self.messages.get(topic, [])]


@pytest.fixture()
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        environment="test",
        upload_dir=str(tmp_path / "uploads"),
        publish_timeout_seconds=1.0,
        dead_letter_read_timeout_seconds=0.2,
    )


@pytest.fixture()
def client(settings, broker):
    app = create_app(settings=settings, broker=broker)
    with TestClient(app) as test_client:
        yield test_client
