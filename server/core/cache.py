"""In-memory working cache of catalog records with per-entry TTL.

The regeneration cycle iterates this cache instead of re-querying the store
for every record. The store stays the source of truth: entries expire after
``ttl`` seconds and the next bulk load refreshes them.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from core.logging import get_logger, log_cache_operation
from models.record import Record

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """Last-known record snapshot and its expiration (clock seconds)."""
    record: Record
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class WorkingCache:
    """Bounded, TTL-expiring mapping from record id to record.

    Iteration order is insertion order. Overwriting an existing id keeps its
    position; when ``max_entries`` is exceeded the oldest entry is evicted.
    Expired entries are invisible to ``get``/``keys`` even before they are
    purged.
    """

    def __init__(self, ttl: int = 86400, max_entries: int = 100000,
                 clock: Callable[[], float] = time.monotonic):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self.loaded_at: Optional[float] = None

    def load(self, records: Iterable[Record]) -> int:
        """Insert every record, each expiring at load time + TTL."""
        self.loaded_at = self._clock()
        expires_at = self.loaded_at + self.ttl
        loaded = 0
        for record in records:
            self._store(record.id, record, expires_at)
            loaded += 1
        logger.info("Working cache loaded", records=loaded, live_entries=len(self), ttl=self.ttl)
        return loaded

    def load_expired(self) -> bool:
        """True before the first load and once the last bulk load passed its TTL."""
        return self.loaded_at is None or self._clock() >= self.loaded_at + self.ttl

    def get(self, record_id: str) -> Optional[Record]:
        """Cached record, or None if never inserted or past its TTL."""
        entry = self._entries.get(record_id)
        if entry is None:
            log_cache_operation(logger, "get", record_id, hit=False)
            return None
        if entry.is_expired(self._clock()):
            log_cache_operation(logger, "get", record_id, hit=False, expired=True)
            return None
        log_cache_operation(logger, "get", record_id, hit=True)
        return entry.record

    def put(self, record_id: str, record: Record) -> None:
        """Overwrite an entry and reset its expiration to now + TTL."""
        self._store(record_id, record, self._clock() + self.ttl)
        log_cache_operation(logger, "put", record_id, ttl=self.ttl)

    def keys(self) -> List[str]:
        """Snapshot of live ids at call time, in insertion order."""
        now = self._clock()
        return [key for key, entry in self._entries.items() if not entry.is_expired(now)]

    def purge_expired(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Expired cache entries purged", count=len(expired))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
        self.loaded_at = None

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for entry in self._entries.values() if not entry.is_expired(now))

    def __contains__(self, record_id: str) -> bool:
        entry = self._entries.get(record_id)
        return entry is not None and not entry.is_expired(self._clock())

    def _store(self, record_id: str, record: Record, expires_at: float) -> None:
        if record_id not in self._entries and len(self._entries) >= self.max_entries:
            self.purge_expired()
            if len(self._entries) >= self.max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                logger.warning("Working cache full, evicted oldest entry",
                               evicted=oldest, max_entries=self.max_entries)
        self._entries[record_id] = CacheEntry(record=record, expires_at=expires_at)
