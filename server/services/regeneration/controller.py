"""Regeneration cycle controller.

Drives one pass over the working cache:

    Start -> Iterating -> (per record: cache get -> generate -> persist
    -> refresh cache entry) -> Completed

Records are processed strictly one at a time. A record-level failure is
recorded and the loop moves on; only a store connectivity failure ends the
cycle early.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from core.cache import WorkingCache
from core.errors import StoreUnavailableError
from core.logging import get_logger
from models.record import Record
from .models import CycleOutcome, CycleSummary, OutcomeStatus, RegenerationOptions

logger = get_logger(__name__)


class RecordStore(Protocol):
    """Store operations the controller consumes."""

    async def count(self) -> int:
        ...

    async def fetch_page(self, offset: int, limit: int) -> list:
        ...

    async def update_caption(self, record_id: str, caption: str) -> Optional[Record]:
        ...


class Generator(Protocol):
    async def generate(self, record: Record) -> Optional[str]:
        ...


class RegenerationController:
    """Runs regeneration cycles, at most one at a time.

    ``trigger`` is the single-slot entry point used by the scheduler: a
    request that arrives while a run is active is dropped and logged.
    """

    def __init__(self, store: RecordStore, cache: WorkingCache, generator: Generator,
                 options: RegenerationOptions,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.store = store
        self.cache = cache
        self.generator = generator
        self.options = options
        self._sleep = sleep
        self._active = False
        self._needs_reload = False
        self.last_summary: Optional[CycleSummary] = None
        self.cycles_completed = 0
        self.dropped_requests = 0

    @property
    def is_running(self) -> bool:
        return self._active

    # =========================================================================
    # BULK LOAD
    # =========================================================================

    async def refresh_cache(self) -> int:
        """Reload the working cache from the store page by page.

        The cache is only replaced once every page was fetched, so a store
        failure leaves the previous contents in place (and raises).
        """
        total = await self.store.count()
        records = []
        offset = 0
        while offset < total:
            page = await self.store.fetch_page(offset, self.options.batch_size)
            if not page:
                break
            records.extend(page)
            offset += len(page)

        self.cache.clear()
        loaded = self.cache.load(records)
        self._needs_reload = False
        logger.info("Working cache refreshed from store", expected=total, loaded=loaded,
                    batch_size=self.options.batch_size)
        return loaded

    # =========================================================================
    # SCHEDULED ENTRY POINT
    # =========================================================================

    async def trigger(self) -> Optional[CycleSummary]:
        """Run one cycle unless another is active.

        The cache is reloaded first when the previous cycle aborted or the
        last bulk load is older than the cache TTL.
        """
        if self._active:
            self.dropped_requests += 1
            logger.warning("Regeneration already running, request dropped",
                           dropped_requests=self.dropped_requests)
            return None

        self._active = True
        try:
            if self._needs_reload or self.cache.load_expired():
                try:
                    await self.refresh_cache()
                except StoreUnavailableError as e:
                    self._needs_reload = True
                    logger.error("Cache reload failed, skipping this run", error=str(e))
                    return None
            return await self.run_cycle()
        finally:
            self._active = False

    # =========================================================================
    # CYCLE
    # =========================================================================

    async def run_cycle(self) -> CycleSummary:
        """One full pass over the ids present in the cache right now."""
        record_ids = self.cache.keys()
        summary = CycleSummary(keys_captured=len(record_ids))
        logger.info("Regeneration cycle started", cycle_id=summary.cycle_id,
                    records=len(record_ids), model=self.options.model)

        for index, record_id in enumerate(record_ids):
            try:
                outcome = await self._process_record(record_id, summary)
            except StoreUnavailableError as e:
                summary.record(record_id, OutcomeStatus.FAILED, str(e))
                summary.abort(str(e))
                self._needs_reload = True
                logger.error("Regeneration cycle aborted, store unavailable",
                             cycle_id=summary.cycle_id, record_id=record_id,
                             remaining=len(record_ids) - index, error=str(e))
                break

            # Pace calls to the generation service
            is_last = index == len(record_ids) - 1
            if not is_last and outcome.status != OutcomeStatus.SKIPPED_MISSING_FROM_CACHE:
                await self._sleep(self.options.inter_record_delay)

        summary.finish()
        self.last_summary = summary
        self.cycles_completed += 1
        self._log_summary(summary)
        return summary

    async def _process_record(self, record_id: str, summary: CycleSummary) -> CycleOutcome:
        record = self.cache.get(record_id)
        if record is None:
            logger.info("Record missing from cache, skipped", record_id=record_id)
            return summary.record(record_id, OutcomeStatus.SKIPPED_MISSING_FROM_CACHE)

        caption = await self.generator.generate(record)
        if not caption:
            logger.info("Empty generation, record skipped", record_id=record_id)
            return summary.record(record_id, OutcomeStatus.SKIPPED_EMPTY_GENERATION)

        try:
            updated = await asyncio.wait_for(
                self.store.update_caption(record_id, caption),
                timeout=self.options.store_timeout,
            )
        except StoreUnavailableError:
            raise
        except asyncio.TimeoutError:
            logger.error("Caption update timed out", record_id=record_id,
                         timeout=self.options.store_timeout)
            return summary.record(record_id, OutcomeStatus.FAILED, "store update timed out")
        except Exception as e:
            logger.error("Caption update failed", record_id=record_id,
                         error_type=type(e).__name__, error=str(e))
            return summary.record(record_id, OutcomeStatus.FAILED, str(e))

        if updated is None:
            logger.warning("Record vanished from store, update failed", record_id=record_id)
            return summary.record(record_id, OutcomeStatus.FAILED, "record not found in store")

        self.cache.put(record_id, updated)
        logger.info("Caption updated", record_id=record_id, caption_length=len(caption))
        return summary.record(record_id, OutcomeStatus.UPDATED)

    async def wait_idle(self, timeout: float, poll_interval: float = 0.1) -> bool:
        """Wait for an in-flight run to finish. Returns False on timeout."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self._active:
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(poll_interval)
        return True

    def _log_summary(self, summary: CycleSummary) -> None:
        log = logger.warning if summary.aborted else logger.info
        log("Regeneration cycle completed",
            cycle_id=summary.cycle_id,
            keys_captured=summary.keys_captured,
            visited=summary.visited,
            updated=summary.updated,
            skipped_empty=summary.skipped_empty,
            skipped_missing=summary.skipped_missing,
            failed=summary.failed,
            aborted=summary.aborted,
            duration_seconds=summary.duration_seconds)

    def status(self) -> Dict[str, Any]:
        """Controller state for logs and health reporting."""
        return {
            "running": self._active,
            "needs_reload": self._needs_reload,
            "cached_records": len(self.cache),
            "cycles_completed": self.cycles_completed,
            "dropped_requests": self.dropped_requests,
            "last_cycle": self.last_summary.to_dict() if self.last_summary else None,
        }
