from __future__ import annotations

import asyncio
import contextlib
import random

import polars as pl
import pytest

from tablr.core.constants import FAILED_RANGES_KEPT
from tablr.core.errors import PartitionReadError, WindowCancelledError
from tablr.core.ranges import RowRange
from tablr.core.window import ErrorSegment, Window
from tablr.view.cache import RequestState, WindowCache

# memory_plan() rows cost 8 bytes each
ROW_BYTES = 8


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def test_concurrent_requests_share_one_fetch(memory_plan, gated_source) -> None:
    plan = memory_plan()
    src = gated_source(gated=True)
    cache = WindowCache(src, plan, budget_bytes=ROW_BYTES * 1000)
    full = RowRange(0, 100)

    async def scenario():
        t1 = asyncio.create_task(cache.get_or_fetch(full))
        t2 = asyncio.create_task(cache.get_or_fetch(full))
        t3 = asyncio.create_task(cache.get_or_fetch(RowRange(10, 20)))
        await _settle()

        assert cache.state(full) is RequestState.PENDING
        assert src.calls == [full]

        src.release()
        return await asyncio.gather(t1, t2, t3)

    w1, w2, w3 = asyncio.run(scenario())

    assert w1 is w2
    assert w3.range == RowRange(10, 20)
    assert w3.to_frame()["x"].to_list() == list(range(10, 20))
    assert cache.stats.misses == 1
    assert cache.stats.coalesced == 2
    assert cache.state(full) is RequestState.READY
    assert cache.cached_rows == 100


def test_repeat_request_is_served_from_cache(memory_plan, gated_source) -> None:
    src = gated_source()
    cache = WindowCache(src, memory_plan(), budget_bytes=ROW_BYTES * 1000)

    async def scenario():
        first = await cache.get_or_fetch(RowRange(0, 50))
        again = await cache.get_or_fetch(RowRange(0, 50))
        inner = await cache.get_or_fetch(RowRange(5, 10))
        return first, again, inner

    first, again, inner = asyncio.run(scenario())

    assert first is again
    assert inner.to_frame()["x"].to_list() == [5, 6, 7, 8, 9]
    assert len(src.calls) == 1
    assert cache.stats.hits == 2
    assert cache.get(RowRange(0, 50)) is first


def test_budget_is_never_exceeded_and_lru_evicts(memory_plan, gated_source) -> None:
    src = gated_source()
    cache = WindowCache(src, memory_plan(), budget_bytes=ROW_BYTES * 250)
    a, b, c = RowRange(0, 100), RowRange(100, 200), RowRange(200, 300)

    async def scenario():
        await cache.get_or_fetch(a)
        await cache.get_or_fetch(b)
        assert cache.cached_rows <= cache.max_rows
        await cache.get_or_fetch(a)  # touch a so b becomes least recently used
        await cache.get_or_fetch(c)

    asyncio.run(scenario())

    assert cache.max_rows == 250
    assert cache.cached_rows == 200
    assert cache.cached_ranges() == [a, c]
    assert cache.state(b) is RequestState.UNREQUESTED
    assert cache.stats.evictions == 1


def test_budget_holds_under_random_requests(memory_plan, gated_source) -> None:
    rng = random.Random(1234)
    cache = WindowCache(gated_source(), memory_plan(), budget_bytes=ROW_BYTES * 300)

    async def scenario():
        for _ in range(300):
            start = rng.randrange(0, 1100)
            rows = RowRange(start, start + rng.randrange(0, 400))
            window = await cache.get_or_fetch(rows)
            assert window.range == rows.clamp(1000)
            assert cache.cached_rows <= cache.max_rows
            assert cache.cached_rows == sum(len(r) for r in cache.cached_ranges())

    asyncio.run(scenario())

    assert cache.stats.evictions > 0


def test_failed_ranges_are_bounded(memory_plan, gated_source) -> None:
    src = gated_source()
    src.fail_with = RuntimeError("unreadable")
    cache = WindowCache(src, memory_plan(), budget_bytes=ROW_BYTES * 1000)
    attempts = FAILED_RANGES_KEPT + 10

    async def scenario():
        for i in range(attempts):
            with pytest.raises(RuntimeError):
                await cache.get_or_fetch(RowRange(i, i + 1))

    asyncio.run(scenario())

    assert cache.stats.failures == attempts
    assert cache.state(RowRange(0, 1)) is RequestState.UNREQUESTED
    last = attempts - 1
    assert cache.state(RowRange(last, last + 1)) is RequestState.FAILED


def test_oversized_window_is_returned_but_not_cached(memory_plan, gated_source) -> None:
    cache = WindowCache(gated_source(), memory_plan(), budget_bytes=ROW_BYTES * 50)

    window = asyncio.run(cache.get_or_fetch(RowRange(0, 100)))

    assert window.height == 100
    assert cache.cached_rows == 0


def test_out_of_bounds_request_is_empty_without_fetch(memory_plan, gated_source) -> None:
    src = gated_source()
    cache = WindowCache(src, memory_plan(), budget_bytes=ROW_BYTES * 100)

    window = asyncio.run(cache.get_or_fetch(RowRange(2000, 2100)))

    assert window.height == 0
    assert src.calls == []


def test_invalidate_drops_in_flight_results(memory_plan, gated_source) -> None:
    src = gated_source(gated=True)
    cache = WindowCache(src, memory_plan(), budget_bytes=ROW_BYTES * 1000)

    async def scenario():
        task = asyncio.create_task(cache.get_or_fetch(RowRange(0, 10)))
        await _settle()
        cache.invalidate()
        src.release()
        with pytest.raises(WindowCancelledError):
            await task
        await cache.drain()

    asyncio.run(scenario())

    assert cache.generation == 1
    assert cache.cached_rows == 0
    assert cache.stats.stale == 1


def test_rebind_never_serves_old_projection(memory_plan, gated_source) -> None:
    src = gated_source()
    old = memory_plan()
    cache = WindowCache(src, old, budget_bytes=ROW_BYTES * 1000)

    async def scenario():
        await cache.get_or_fetch(RowRange(0, 10))
        cache.rebind(memory_plan())
        assert cache.get(RowRange(0, 10)) is None
        return await cache.get_or_fetch(RowRange(0, 10))

    fresh = asyncio.run(scenario())

    assert len(src.calls) == 2
    assert fresh.generation == cache.plan.generation
    assert fresh.generation != old.generation


def test_abandoned_fetch_is_discarded(memory_plan, gated_source) -> None:
    src = gated_source(gated=True)
    cache = WindowCache(src, memory_plan(), budget_bytes=ROW_BYTES * 1000)
    rows = RowRange(0, 10)

    async def scenario():
        task = asyncio.create_task(cache.get_or_fetch(rows))
        await _settle()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        # The shared fetch keeps running after its only waiter left
        assert cache.state(rows) is RequestState.PENDING
        src.release()
        await cache.drain()

    asyncio.run(scenario())

    assert cache.state(rows) is RequestState.UNREQUESTED
    assert cache.stats.discarded == 1
    assert cache.cached_rows == 0


def test_failed_fetch_is_recorded_and_retryable(memory_plan, gated_source) -> None:
    src = gated_source()
    src.fail_with = RuntimeError("disk on fire")
    cache = WindowCache(src, memory_plan(), budget_bytes=ROW_BYTES * 1000)
    rows = RowRange(0, 10)

    async def scenario():
        with pytest.raises(RuntimeError):
            await cache.get_or_fetch(rows)
        assert cache.state(rows) is RequestState.FAILED
        src.fail_with = None
        return await cache.get_or_fetch(rows)

    window = asyncio.run(scenario())

    assert window.height == 10
    assert cache.stats.failures == 1
    assert cache.state(rows) is RequestState.READY


class _BrokenSource:
    def __init__(self) -> None:
        self.calls = 0

    async def fetch_async(self, plan, rows: RowRange) -> Window:
        self.calls += 1
        err = PartitionReadError("memory://x.parquet", rows, "gone")
        return Window(rows, {"x": pl.Int64}, (ErrorSegment(rows, err),), plan.generation)


def test_windows_with_errors_are_not_cached(memory_plan) -> None:
    src = _BrokenSource()
    cache = WindowCache(src, memory_plan(), budget_bytes=ROW_BYTES * 1000)

    async def scenario():
        first = await cache.get_or_fetch(RowRange(0, 10))
        await cache.get_or_fetch(RowRange(0, 10))
        return first

    first = asyncio.run(scenario())

    assert not first.ok
    assert src.calls == 2
    assert cache.cached_rows == 0


def test_budget_must_be_positive(memory_plan, gated_source) -> None:
    with pytest.raises(ValueError):
        WindowCache(gated_source(), memory_plan(), budget_bytes=0)
