"""Shared pytest fixtures for EggWisdom tests.

Provides recording doubles for the external collaborators the rewards
engine depends on (burn primitive, boost notifier, payment transfer), plus a
handler capturing records from the eggwisdom logger hierarchy.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

import pytest

from eggwisdom.rewards import Amount, BoostRegistry, InMemoryBoostStore

T0 = 1_700_000_000


class RecordingBurner:
    """Burn primitive double.

    Records every call; optionally fails, optionally yields to the event loop
    so that concurrent callers can interleave.
    """

    def __init__(self, fail_with: Optional[Exception] = None, delay: float = 0.0):
        self.calls: List[Tuple[str, Amount]] = []
        self.fail_with = fail_with
        self.delay = delay
        self.in_flight: dict[str, int] = {}
        self.max_in_flight: dict[str, int] = {}
        self.max_total_in_flight = 0

    async def __call__(self, user: str, amount: Amount) -> None:
        self.calls.append((user, amount))
        self.in_flight[user] = self.in_flight.get(user, 0) + 1
        self.max_in_flight[user] = max(self.max_in_flight.get(user, 0), self.in_flight[user])
        self.max_total_in_flight = max(self.max_total_in_flight, sum(self.in_flight.values()))
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_with is not None:
                raise self.fail_with
        finally:
            self.in_flight[user] -= 1


class RecordingNotifier:
    def __init__(self):
        self.events: List[Tuple[Amount, str, int]] = []

    def __call__(self, amount: Amount, user: str, duration: int) -> None:
        self.events.append((amount, user, duration))


class RecordingTransfer:
    """Payment transfer double; fails for recipients listed in `fail_for`."""

    def __init__(self, fail_for: Tuple[str, ...] = ()):
        self.calls: List[Tuple[str, Amount]] = []
        self.fail_for = fail_for

    async def __call__(self, recipient: str, amount: Amount) -> None:
        if recipient in self.fail_for:
            raise RuntimeError(f"insufficient funds for {recipient}")
        self.calls.append((recipient, amount))


@pytest.fixture
def burner() -> RecordingBurner:
    return RecordingBurner()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def store() -> InMemoryBoostStore:
    return InMemoryBoostStore()


@pytest.fixture
def registry(burner: RecordingBurner, store: InMemoryBoostStore, notifier: RecordingNotifier) -> BoostRegistry:
    return BoostRegistry(burner, store=store, notifier=notifier)


@pytest.fixture
def transfer() -> RecordingTransfer:
    return RecordingTransfer()


class RecordingLogHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: List[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def contexts(self, logger_name: str) -> List[dict]:
        return [getattr(r, "context", None) for r in self.records if r.name == logger_name]


@pytest.fixture
def domain_log() -> RecordingLogHandler:
    """Capture eggwisdom records directly, independent of configure_logging state."""
    root = logging.getLogger("eggwisdom")
    handler = RecordingLogHandler()
    previous_level = root.level
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    yield handler
    root.removeHandler(handler)
    root.setLevel(previous_level)
