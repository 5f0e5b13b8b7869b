import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Generic, TypeVar

from app.models.job import Job
from app.models.model import Model

T = TypeVar("T")


class ReadWriteLock:
    """Many concurrent readers or a single writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class Registry(Generic[T]):
    def __init__(self) -> None:
        self._items: dict[str, T] = {}
        self._lock = ReadWriteLock()

    def get(self, key: str) -> T | None:
        with self._lock.read():
            return self._items.get(key)

    def contains(self, key: str) -> bool:
        with self._lock.read():
            return key in self._items

    def list(self) -> list[T]:
        with self._lock.read():
            return list(self._items.values())

    def put(self, key: str, item: T) -> T:
        with self._lock.write():
            self._items[key] = item
        return item

    def delete(self, key: str) -> bool:
        with self._lock.write():
            return self._items.pop(key, None) is not None

    def update(self, key: str, fn: Callable[[T], T | None]) -> T | None:
        """Apply ``fn`` to the stored item under the write lock.

        ``fn`` may mutate the item in place or return a replacement.
        Returns the stored item, or None when ``key`` is unknown.
        """
        with self._lock.write():
            current = self._items.get(key)
            if current is None:
                return None
            replacement = fn(current)
            if replacement is not None:
                self._items[key] = replacement
                current = replacement
            return current


class JobStore(Registry[Job]):
    def add(self, job: Job) -> Job:
        return self.put(job.job_id, job)


class ModelStore(Registry[Model]):
    def add(self, model: Model) -> Model:
        return self.put(model.id, model)
