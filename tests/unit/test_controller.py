import asyncio

import pytest

from conftest import FakeGenerator, FakeStore, make_record
from core.cache import WorkingCache
from core.errors import StoreUnavailableError
from services.regeneration import OutcomeStatus, RegenerationController, RegenerationOptions


def build(records, clock, options, sleep, generator=None, store=None):
    store = store or FakeStore(records)
    cache = WorkingCache(ttl=options.cache_ttl, clock=clock)
    cache.load(records)
    generator = generator or FakeGenerator()
    controller = RegenerationController(store, cache, generator, options, sleep=sleep)
    return controller, store, cache, generator


def statuses(summary):
    return {o.record_id: o.status for o in summary.outcomes}


def test_updated_record_is_persisted_and_cache_refreshed(clock, options, sleep) -> None:
    controller, store, cache, _ = build([make_record("r1", caption="old")], clock, options, sleep)

    summary = asyncio.run(controller.run_cycle())

    assert store.update_calls == [("r1", "NEW CAPTION")]
    assert store.records["r1"].caption == "NEW CAPTION"
    assert cache.get("r1").caption == "NEW CAPTION"
    assert statuses(summary) == {"r1": OutcomeStatus.UPDATED}
    assert summary.updated == 1


def test_empty_generation_skips_store(clock, options, sleep) -> None:
    generator = FakeGenerator(captions={"r2": None})
    controller, store, cache, _ = build([make_record("r2")], clock, options, sleep, generator=generator)

    summary = asyncio.run(controller.run_cycle())

    assert store.update_calls == []
    assert statuses(summary) == {"r2": OutcomeStatus.SKIPPED_EMPTY_GENERATION}
    assert cache.get("r2").caption == "old"


def test_not_found_on_update_fails_and_leaves_cache(clock, options, sleep) -> None:
    controller, store, cache, _ = build([make_record("r3")], clock, options, sleep)
    store.missing_on_update.add("r3")
    cached_before = cache.get("r3")

    summary = asyncio.run(controller.run_cycle())

    assert store.update_calls == [("r3", "NEW CAPTION")]
    assert statuses(summary) == {"r3": OutcomeStatus.FAILED}
    assert summary.outcomes[0].error == "record not found in store"
    assert cache.get("r3") is cached_before


def test_expired_entry_is_not_processed(clock, options, sleep) -> None:
    options = RegenerationOptions(cache_ttl=60, inter_record_delay=0.0)
    controller, store, cache, generator = build([make_record("r4")], clock, options, sleep)
    clock.advance(61)
    cache.put("r5", make_record("r5"))

    summary = asyncio.run(controller.run_cycle())

    assert "r4" not in cache.keys()
    assert generator.calls == ["r5"]
    assert [c[0] for c in store.update_calls] == ["r5"]
    assert summary.keys_captured == 1


def test_entry_expiring_mid_cycle_is_skipped_without_store_fallback(clock, options, sleep) -> None:
    records = [make_record("r1"), make_record("r2")]
    controller, store, cache, _ = build(records, clock, options, sleep)

    class ExpiringGenerator(FakeGenerator):
        async def generate(self, record):
            clock.advance(options.cache_ttl)
            return await super().generate(record)

    controller.generator = ExpiringGenerator()

    summary = asyncio.run(controller.run_cycle())

    assert statuses(summary) == {
        "r1": OutcomeStatus.UPDATED,
        "r2": OutcomeStatus.SKIPPED_MISSING_FROM_CACHE,
    }
    assert store.fetch_calls == []
    assert [c[0] for c in store.update_calls] == ["r1"]


def test_summary_counts_cover_every_captured_key(clock, options, sleep) -> None:
    records = [make_record(f"r{i}") for i in range(1, 6)]
    generator = FakeGenerator(captions={"r2": "", "r4": None})
    controller, store, cache, _ = build(records, clock, options, sleep, generator=generator)
    store.missing_on_update.add("r3")
    store.records.pop("r5")

    summary = asyncio.run(controller.run_cycle())

    counts = summary.counts()
    assert sum(counts.values()) == summary.keys_captured == 5
    assert counts == {
        "updated": 1,
        "skipped-empty-generation": 2,
        "skipped-missing-from-cache": 0,
        "failed": 2,
    }
    assert len(generator.calls) <= 5
    assert len(store.update_calls) <= 5
    assert not summary.aborted
    assert summary.finished_at is not None


def test_records_processed_in_load_order_with_pacing(clock, options, sleep) -> None:
    records = [make_record("c"), make_record("a"), make_record("b")]
    controller, store, _, generator = build(records, clock, options, sleep)

    asyncio.run(controller.run_cycle())

    assert generator.calls == ["c", "a", "b"]
    assert sleep.delays == [options.inter_record_delay] * 2


def test_store_outage_aborts_rest_of_cycle(clock, options, sleep) -> None:
    records = [make_record("r1"), make_record("r2"), make_record("r3")]
    controller, store, _, generator = build(records, clock, options, sleep)
    store.unavailable_on_update.add("r2")

    summary = asyncio.run(controller.run_cycle())

    assert summary.aborted
    assert "connection reset" in summary.abort_reason
    assert generator.calls == ["r1", "r2"]
    assert statuses(summary) == {"r1": OutcomeStatus.UPDATED, "r2": OutcomeStatus.FAILED}
    assert summary.outcomes[1].error == "[update_caption] connection reset"
    assert summary.visited == 2
    assert controller.status()["needs_reload"] is True


def test_unexpected_update_error_is_record_level(clock, options, sleep) -> None:
    records = [make_record("r1"), make_record("r2")]
    controller, store, _, _ = build(records, clock, options, sleep)
    original = store.update_caption

    async def flaky_update(record_id, caption):
        if record_id == "r1":
            raise ValueError("caption too long")
        return await original(record_id, caption)

    store.update_caption = flaky_update

    summary = asyncio.run(controller.run_cycle())

    assert statuses(summary) == {"r1": OutcomeStatus.FAILED, "r2": OutcomeStatus.UPDATED}
    assert summary.outcomes[0].error == "caption too long"


def test_store_update_timeout_is_record_level(clock, sleep) -> None:
    options = RegenerationOptions(store_timeout=0.05, inter_record_delay=0.0)
    controller, store, cache, _ = build([make_record("r1"), make_record("r2")], clock, options, sleep)
    original = store.update_caption

    async def slow_update(record_id, caption):
        if record_id == "r1":
            await asyncio.sleep(1.0)
        return await original(record_id, caption)

    store.update_caption = slow_update

    summary = asyncio.run(controller.run_cycle())

    assert statuses(summary) == {"r1": OutcomeStatus.FAILED, "r2": OutcomeStatus.UPDATED}
    assert summary.outcomes[0].error == "store update timed out"
    assert cache.get("r1").caption == "old"


def test_repeated_identical_caption_is_idempotent(clock, options, sleep) -> None:
    controller, store, _, _ = build([make_record("r1")], clock, options, sleep)

    asyncio.run(controller.run_cycle())
    first = store.records["r1"].model_dump()
    asyncio.run(controller.run_cycle())

    assert store.records["r1"].model_dump() == first
    assert controller.cycles_completed == 2


def test_refresh_cache_pages_through_store(clock, options, sleep) -> None:
    records = [make_record(f"r{i}") for i in range(5)]
    store = FakeStore(records)
    cache = WorkingCache(ttl=60, clock=clock)
    cache.put("stale", make_record("stale"))
    controller = RegenerationController(store, cache, FakeGenerator(), options, sleep=sleep)

    loaded = asyncio.run(controller.refresh_cache())

    assert loaded == 5
    assert store.fetch_calls == [(0, 2), (2, 2), (4, 2)]
    assert cache.keys() == [f"r{i}" for i in range(5)]


def test_trigger_reloads_after_abort(clock, options, sleep) -> None:
    records = [make_record("r1"), make_record("r2")]
    controller, store, _, _ = build(records, clock, options, sleep)
    store.unavailable_on_update.add("r1")

    first = asyncio.run(controller.trigger())
    store.unavailable_on_update.clear()
    second = asyncio.run(controller.trigger())

    assert first.aborted
    assert store.count_calls == 1
    assert second.updated == 2


def test_trigger_without_reload_while_load_is_fresh(clock, options, sleep) -> None:
    controller, store, _, _ = build([make_record("r1")], clock, options, sleep)

    summary = asyncio.run(controller.trigger())

    assert summary.updated == 1
    assert store.count_calls == 0


def test_trigger_skips_run_when_reload_fails(clock, options, sleep) -> None:
    store = FakeStore([make_record("r1")])
    store.unavailable = True
    cache = WorkingCache(ttl=60, clock=clock)
    generator = FakeGenerator()
    controller = RegenerationController(store, cache, generator, options, sleep=sleep)

    assert asyncio.run(controller.trigger()) is None
    assert generator.calls == []
    assert controller.status()["needs_reload"] is True
    assert not controller.is_running


def test_trigger_drops_overlapping_request(clock, options) -> None:
    gate = {}

    async def blocking_sleep(seconds):
        await gate["release"].wait()

    records = [make_record("r1"), make_record("r2")]
    controller, _, _, generator = build(records, clock, options, blocking_sleep)

    async def scenario():
        gate["release"] = asyncio.Event()
        first = asyncio.create_task(controller.trigger())
        await asyncio.sleep(0)
        while not controller.is_running:
            await asyncio.sleep(0)
        dropped = await controller.trigger()
        gate["release"].set()
        return dropped, await first

    dropped, summary = asyncio.run(scenario())

    assert dropped is None
    assert controller.dropped_requests == 1
    assert summary.updated == 2
    assert generator.calls == ["r1", "r2"]


def test_wait_idle(clock, options, sleep) -> None:
    controller, _, _, _ = build([], clock, options, sleep)

    assert asyncio.run(controller.wait_idle(timeout=0.1)) is True

    controller._active = True
    assert asyncio.run(controller.wait_idle(timeout=0.05, poll_interval=0.01)) is False


def test_store_errors_propagate_from_refresh(clock, options, sleep) -> None:
    store = FakeStore([make_record("r1")])
    store.unavailable = True
    controller = RegenerationController(store, WorkingCache(ttl=60, clock=clock),
                                        FakeGenerator(), options, sleep=sleep)

    with pytest.raises(StoreUnavailableError) as exc_info:
        asyncio.run(controller.refresh_cache())

    assert exc_info.value.operation == "count"
