"""Shared fixtures for the caption regeneration tests.

Async code is driven with ``asyncio.run`` from plain test functions.
"""

from pathlib import Path
from typing import Dict, List, Optional

import pytest

from core.config import Settings
from core.errors import StoreUnavailableError
from models.record import Record
from services.regeneration import RegenerationOptions


class ManualClock:
    """Deterministic replacement for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_record(record_id: str, caption: str = "old", **fields) -> Record:
    values = {
        "title": f"Title {record_id}",
        "language": "English",
        "quality": "1080p",
        "format": "MKV",
        "codec": "x265",
        "file_type": "video/x-matroska",
        "size": 1572864000,
    }
    values.update(fields)
    return Record(id=record_id, caption=caption, **values)


class FakeStore:
    """In-memory record store with call recording and failure injection."""

    def __init__(self, records: Optional[List[Record]] = None):
        self.records: Dict[str, Record] = {r.id: r for r in records or []}
        self.update_calls: List[tuple] = []
        self.fetch_calls: List[tuple] = []
        self.count_calls = 0
        self.missing_on_update: set = set()
        self.unavailable_on_update: set = set()
        self.unavailable = False

    async def count(self) -> int:
        self.count_calls += 1
        if self.unavailable:
            raise StoreUnavailableError("count", "connection refused")
        return len(self.records)

    async def fetch_page(self, offset: int, limit: int) -> List[Record]:
        self.fetch_calls.append((offset, limit))
        if self.unavailable:
            raise StoreUnavailableError("fetch_page", "connection refused")
        return list(self.records.values())[offset:offset + limit]

    async def fetch_by_id(self, record_id: str) -> Optional[Record]:
        self.fetch_calls.append(("by_id", record_id))
        return self.records.get(record_id)

    async def update_caption(self, record_id: str, caption: str) -> Optional[Record]:
        self.update_calls.append((record_id, caption))
        if self.unavailable or record_id in self.unavailable_on_update:
            raise StoreUnavailableError("update_caption", "connection reset")
        if record_id in self.missing_on_update or record_id not in self.records:
            return None
        current = self.records[record_id]
        updated = Record(**{**current.model_dump(), "caption": caption})
        self.records[record_id] = updated
        return updated


class FakeGenerator:
    """Generator returning canned captions keyed by record id."""

    def __init__(self, captions: Optional[Dict[str, Optional[str]]] = None,
                 default: Optional[str] = "NEW CAPTION"):
        self.captions = captions or {}
        self.default = default
        self.calls: List[str] = []

    async def generate(self, record: Record) -> Optional[str]:
        self.calls.append(record.id)
        return self.captions.get(record.id, self.default)


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch) -> None:
    """Keep service variables from the calling shell out of Settings."""
    for name in Settings.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def options() -> RegenerationOptions:
    return RegenerationOptions(
        cache_ttl=86400,
        inter_record_delay=1.5,
        batch_size=2,
        model="gpt-4o-mini",
        generation_timeout=5.0,
        store_timeout=5.0,
    )


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}",
        snapshot_path=str(tmp_path / "snapshot" / "records.json"),
        inter_record_delay=0.0,
        regen_interval_seconds=3600,
        shutdown_grace_seconds=5.0,
        openai_api_key="sk-test",
        anthropic_api_key=None,
        google_ai_api_key=None,
        log_format="console",
    )
