"""
Window cache with request coalescing, LRU eviction and generation-based invalidation.

Request lifecycle (per RowRange)
- UNREQUESTED -> PENDING -> READY, or PENDING -> FAILED.
- A PENDING request whose every waiter was cancelled is marked abandoned: the fetch runs to
  completion on its worker thread, but its result is discarded instead of cached.

Invariants
- At most one in-flight fetch per distinct range. Concurrent callers for the same range (or
  a range contained in a pending one) await the same task through asyncio.shield, so one
  cancelled caller never cancels the shared fetch.
- Cached rows never exceed max_rows = budget_bytes // plan.estimated_row_bytes(). Eviction
  is least-recently-used among READY entries; pending requests are not entries and are
  never evicted. A window larger than the whole budget is returned but not stored.
- rebind()/invalidate() bump the cache generation in one step. Entries and pending requests
  of an older generation are never returned; their late results are dropped.
- Windows with error segments are returned but not cached, so a retry re-reads them.

Notes
- All state is mutated on the event loop thread only; IO happens in the fetcher's executor.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from tablr.core.constants import FAILED_RANGES_KEPT
from tablr.core.errors import WindowCancelledError
from tablr.core.ranges import RowRange
from tablr.core.window import Window
from tablr.io.plan import LazyPlan

LOGGER = logging.getLogger(__name__)


class WindowSource(Protocol):
    async def fetch_async(self, plan: LazyPlan, rows: RowRange) -> Window: ...


class RequestState(enum.Enum):
    UNREQUESTED = "unrequested"
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass(slots=True)
class CacheEntry:
    """A READY window and its bookkeeping."""

    rows: RowRange
    window: Window
    last_access: float
    generation: int


@dataclass(slots=True)
class _Pending:
    rows: RowRange
    generation: int
    task: asyncio.Task[Window]
    waiters: int = 0
    abandoned: bool = False


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    evictions: int = 0
    discarded: int = 0
    stale: int = 0
    failures: int = 0


class WindowCache:
    """
    Bounded store of materialized windows for one plan at a time.

    Args:
        source (WindowSource): Object with an awaitable fetch_async(plan, rows).
        plan (LazyPlan): Plan whose windows are cached.
        budget_bytes (int): Memory budget; converted to a row budget per plan.
        clock (Callable[[], float]): Timestamp source for last-access bookkeeping.
    """

    def __init__(
        self,
        source: WindowSource,
        plan: LazyPlan,
        budget_bytes: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if budget_bytes < 1:
            raise ValueError("budget_bytes must be >= 1")
        self._source = source
        self._plan = plan
        self._budget_bytes = budget_bytes
        self._clock = clock
        self._generation = 0
        self._ready: OrderedDict[RowRange, CacheEntry] = OrderedDict()
        self._pending: dict[RowRange, _Pending] = {}
        # Most recent failures only, oldest first
        self._failed: OrderedDict[RowRange, None] = OrderedDict()
        self._rows = 0
        self._tasks: set[asyncio.Task[Window]] = set()
        self.stats = CacheStats()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def plan(self) -> LazyPlan:
        return self._plan

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def max_rows(self) -> int:
        return self._budget_bytes // self._plan.estimated_row_bytes()

    @property
    def cached_rows(self) -> int:
        return self._rows

    def cached_ranges(self) -> list[RowRange]:
        """READY ranges from least to most recently used."""
        return list(self._ready)

    def state(self, rows: RowRange) -> RequestState:
        rows = rows.clamp(self._plan.total_rows())
        if rows in self._ready:
            return RequestState.READY
        if rows in self._pending:
            return RequestState.PENDING
        if rows in self._failed:
            return RequestState.FAILED
        return RequestState.UNREQUESTED

    def get(self, rows: RowRange) -> Window | None:
        """Return a cached window covering rows without fetching, or None."""
        rows = rows.clamp(self._plan.total_rows())
        entry = self._lookup(rows)
        if entry is None:
            return None
        return entry.window if entry.rows == rows else entry.window.slice(rows)

    # ------------------------------------------------------------------
    # Generation control
    # ------------------------------------------------------------------
    def rebind(self, plan: LazyPlan) -> None:
        """Switch to a new plan (reload or projection change) and invalidate everything."""
        self._plan = plan
        self.invalidate()

    def invalidate(self) -> None:
        """Drop all entries and orphan in-flight requests by bumping the generation."""
        self._generation += 1
        self._ready.clear()
        self._pending.clear()
        self._failed.clear()
        self._rows = 0
        LOGGER.debug("cache invalidated; generation now %d", self._generation)

    # ------------------------------------------------------------------
    # Fetch path
    # ------------------------------------------------------------------
    async def get_or_fetch(self, rows: RowRange) -> Window:
        """
        Return the window for rows, fetching it on a miss.

        Args:
            rows (RowRange): Requested range; clamped to the table.

        Returns:
            Window: Cached, coalesced or freshly fetched window for exactly rows.

        Raises:
            WindowCancelledError: The cache was invalidated while the fetch was in flight.
            asyncio.CancelledError: The caller was cancelled (the shared fetch continues).
            Exception: Whatever the source raised for this range.
        """
        plan = self._plan
        rows = rows.clamp(plan.total_rows())
        if rows.is_empty:
            return Window.empty(rows, plan.schema, plan.generation)

        entry = self._lookup(rows)
        if entry is not None:
            self.stats.hits += 1
            return entry.window if entry.rows == rows else entry.window.slice(rows)

        pending = self._find_pending(rows)
        if pending is None:
            self.stats.misses += 1
            self._failed.pop(rows, None)
            pending = self._start(plan, rows)
        else:
            self.stats.coalesced += 1
            pending.abandoned = False

        pending.waiters += 1
        try:
            window = await asyncio.shield(pending.task)
        except asyncio.CancelledError:
            if not pending.task.done() and pending.waiters == 1:
                pending.abandoned = True
                LOGGER.debug("fetch for %s abandoned by all waiters", pending.rows)
            raise
        finally:
            pending.waiters -= 1

        if pending.generation != self._generation:
            raise WindowCancelledError(
                f"window {rows} belongs to generation {pending.generation}, "
                f"cache is at {self._generation}"
            )
        return window if pending.rows == rows else window.slice(rows)

    async def drain(self) -> None:
        """Wait for every in-flight fetch to settle (results still follow cache rules)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _lookup(self, rows: RowRange) -> CacheEntry | None:
        entry = self._ready.get(rows)
        if entry is None:
            entry = next((e for e in self._ready.values() if e.rows.contains(rows)), None)
        if entry is None or entry.generation != self._generation:
            return None
        entry.last_access = self._clock()
        self._ready.move_to_end(entry.rows)
        return entry

    def _find_pending(self, rows: RowRange) -> _Pending | None:
        pending = self._pending.get(rows)
        if pending is None:
            pending = next((p for p in self._pending.values() if p.rows.contains(rows)), None)
        if pending is None or pending.generation != self._generation:
            return None
        return pending

    def _start(self, plan: LazyPlan, rows: RowRange) -> _Pending:
        task = asyncio.create_task(self._source.fetch_async(plan, rows))
        pending = _Pending(rows=rows, generation=self._generation, task=task)
        self._pending[rows] = pending
        self._tasks.add(task)
        # Registered before any shield() so the entry is settled before waiters resume.
        task.add_done_callback(lambda t: self._settle(pending, t))
        return pending

    def _settle(self, pending: _Pending, task: asyncio.Task[Window]) -> None:
        self._tasks.discard(task)
        if self._pending.get(pending.rows) is pending:
            del self._pending[pending.rows]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            if pending.generation == self._generation:
                self._failed[pending.rows] = None
                self._failed.move_to_end(pending.rows)
                while len(self._failed) > FAILED_RANGES_KEPT:
                    self._failed.popitem(last=False)
                self.stats.failures += 1
            LOGGER.warning("fetch for %s failed: %s", pending.rows, exc)
            return
        window = task.result()
        if pending.generation != self._generation:
            self.stats.stale += 1
            LOGGER.debug(
                "dropping %s from generation %d (cancelled)", pending.rows, pending.generation
            )
            return
        if pending.abandoned:
            self.stats.discarded += 1
            LOGGER.debug("discarding %s: no waiters left (cancelled)", pending.rows)
            return
        self._store(pending.rows, window)

    def _store(self, rows: RowRange, window: Window) -> None:
        if not window.ok:
            LOGGER.debug("not caching %s: window has unreadable partitions", rows)
            return
        max_rows = self.max_rows
        if window.height > max_rows:
            LOGGER.debug("not caching %s: %d rows exceed budget of %d", rows, window.height, max_rows)
            return
        old = self._ready.pop(rows, None)
        if old is not None:
            self._rows -= old.window.height
        self._ready[rows] = CacheEntry(rows, window, self._clock(), self._generation)
        self._rows += window.height
        while self._rows > max_rows:
            _, evicted = self._ready.popitem(last=False)
            self._rows -= evicted.window.height
            self.stats.evictions += 1
            LOGGER.debug("evicted %s (%d rows)", evicted.rows, evicted.window.height)
