"""Pytest configuration.

Makes the repository root importable when pytest runs without an editable
install, and provides a deterministic in-memory store.
"""

from __future__ import annotations

import itertools
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gym_admin.core import Settings  # noqa: E402
from gym_admin.db.memory import InMemoryDocumentStore  # noqa: E402
from gym_admin.db.models import OrderedRecord  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class StepClock:
    """Each call returns one second later than the previous one."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self._ticks = itertools.count()
        self._start = start

    def __call__(self) -> datetime:
        return self._start + timedelta(seconds=next(self._ticks))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://demo.supabase.co",
        supabase_service_key="service-key",
        environment="local",
        realtime_heartbeat_s=30,
    )


@pytest.fixture
def store() -> InMemoryDocumentStore:
    ids = (f"r{n}" for n in itertools.count(1))
    return InMemoryDocumentStore(clock=StepClock(), id_factory=lambda: next(ids))


def make_record(record_id: str | None, order: int | None, *, minutes: int = 0, **fields) -> OrderedRecord:
    return OrderedRecord(
        id=record_id,
        order=order,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        **fields,
    )


def ids_of(records) -> list[str | None]:
    return [record.id for record in records]
