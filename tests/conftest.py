from __future__ import annotations

import asyncio
import copy
import threading
import time
from typing import Any, Callable, List, Optional, Tuple

import pytest

from logship.config import ShipperConfig
from logship.transport import AsyncTransport, Transport


class RecordingTransport(Transport):
    """Records every payload; outcomes are popped per call (default success)."""

    def __init__(self, outcomes: Optional[List[bool]] = None, gate: Optional[threading.Event] = None) -> None:
        self.calls: List[Tuple[Any, str]] = []
        self.outcomes = list(outcomes or [])
        self.always_fail = False
        self.gate = gate
        self.entered = threading.Event()
        self.closed = False
        self._lock = threading.Lock()

    def send(self, payload: Any, destination: str) -> bool:
        if self.gate is not None and isinstance(payload, list):
            self.entered.set()
            self.gate.wait(5)
        with self._lock:
            self.calls.append((copy.deepcopy(payload), destination))
            if self.always_fail:
                return False
            return self.outcomes.pop(0) if self.outcomes else True

    def close(self) -> None:
        self.closed = True

    @property
    def batches(self) -> List[Any]:
        with self._lock:
            return [payload for payload, _ in self.calls]


class AsyncRecordingTransport(AsyncTransport):
    def __init__(self, outcomes: Optional[List[bool]] = None) -> None:
        self.calls: List[Tuple[Any, str]] = []
        self.outcomes = list(outcomes or [])
        self.always_fail = False
        self.gate: Optional[asyncio.Event] = None
        self.closed = False

    async def send(self, payload: Any, destination: str) -> bool:
        if self.gate is not None and isinstance(payload, list):
            await self.gate.wait()
        self.calls.append((copy.deepcopy(payload), destination))
        if self.always_fail:
            return False
        return self.outcomes.pop(0) if self.outcomes else True

    async def aclose(self) -> None:
        self.closed = True

    @property
    def batches(self) -> List[Any]:
        return [payload for payload, _ in self.calls]


def wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


async def async_wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.005)
    return predicate()


def make_config(**overrides: Any) -> ShipperConfig:
    defaults: dict = dict(url="http://ingest.example.com", poll_interval=0.01)
    defaults.update(overrides)
    return ShipperConfig(**defaults)


@pytest.fixture()
def shutdown() -> threading.Event:
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture()
def transport() -> RecordingTransport:
    return RecordingTransport()
