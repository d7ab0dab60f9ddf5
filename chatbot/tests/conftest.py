import asyncio
import threading
import time

import pytest

from chatbot.services.document_store import InMemoryDocumentStore
from chatbot.services.message_store import MessageLogStore

FIXED_NOW = 1741269454219


class SteppingClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = FIXED_NOW):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingStore(InMemoryDocumentStore):
    def __init__(self):
        super().__init__()
        self.calls = []

    def get(self, key):
        self.calls.append(("get", key))
        return super().get(key)

    def merge_set(self, key, fields):
        self.calls.append(("merge_set", key))
        super().merge_set(key, fields)

    def overwrite(self, key, document):
        self.calls.append(("overwrite", key))
        super().overwrite(key, document)

    def delete_field(self, key, field):
        self.calls.append(("delete_field", key))
        super().delete_field(key, field)


class SlowReadStore(InMemoryDocumentStore):
    """Widens the read-modify-write window so unserialized writers would collide."""

    def get(self, key):
        doc = super().get(key)
        time.sleep(0.05)
        return doc


class GatedStore(InMemoryDocumentStore):
    """Reads for `blocked_key` wait until `gate` is set."""

    def __init__(self, blocked_key: str):
        super().__init__()
        self.blocked_key = blocked_key
        self.gate = threading.Event()

    def get(self, key):
        if key == self.blocked_key:
            self.gate.wait(timeout=2)
        return super().get(key)


class SlowWriteStore(InMemoryDocumentStore):
    """Writes named in `slow_ops` take `delay` seconds, then still commit."""

    def __init__(self, delay: float = 0.3):
        super().__init__()
        self.delay = delay
        self.slow_ops = set()

    def _pause(self, op):
        if op in self.slow_ops:
            time.sleep(self.delay)

    def merge_set(self, key, fields):
        self._pause("merge_set")
        super().merge_set(key, fields)

    def overwrite(self, key, document):
        self._pause("overwrite")
        super().overwrite(key, document)

    def delete_field(self, key, field):
        self._pause("delete_field")
        super().delete_field(key, field)


class BrokenStore(InMemoryDocumentStore):
    def get(self, key):
        raise ConnectionError("backend down")


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def documents():
    return RecordingStore()


@pytest.fixture
def store(documents, clock):
    return MessageLogStore(documents, clock=clock)
