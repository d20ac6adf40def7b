"""
Scroll controller: viewport events in, window-ready notifications out.

Each viewport change is turned into one target range (visible rows plus a prefetch margin
on both sides, clamped to the table). Rapid changes are debounced so only the latest range
is fetched, and any fetch for a range the viewport has since left is cancelled
cooperatively: the controller stops waiting for it, the cache lets the scan finish on its
worker thread, and the result is discarded rather than delivered.

States
- IDLE: nothing scheduled; the current window (if any) has been delivered.
- DEBOUNCING: a fetch for the latest range is scheduled after the debounce interval.
- FETCHING(range): waiting on the cache for range.
- CANCELLING(range): a fetch for range was superseded; the new range is debouncing.

Delivery
- subscribe(callback) registers a callable receiving WindowReady events.
- notifications() is an async iterator over the same events.
- An event is delivered only if it belongs to the latest viewport epoch and to the cache's
  current plan generation; everything else is dropped and logged as cancelled.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

from tablr.core.errors import WindowCancelledError
from tablr.core.ranges import RowRange
from tablr.core.window import Window

from .cache import WindowCache

LOGGER = logging.getLogger(__name__)

Subscriber = Callable[["WindowReady"], None]


class ScrollState(enum.Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    FETCHING = "fetching"
    CANCELLING = "cancelling"


@dataclass(frozen=True)
class WindowReady:
    """
    A window delivered to the renderer.

    Attributes:
        rows (RowRange): Target range that was requested.
        window (Window | None): Materialized rows; None when the whole fetch failed.
        error (BaseException | None): Failure for the range, shown in place of the window.
        generation (int): Catalog generation the event belongs to.
    """

    rows: RowRange
    window: Window | None
    error: BaseException | None
    generation: int

    @property
    def ok(self) -> bool:
        return self.error is None and self.window is not None and self.window.ok


class ScrollController:
    """
    Debounced, cancellable viewport-to-window driver.

    Args:
        cache (WindowCache): Cache used to resolve target ranges.
        prefetch_margin (int): Rows added above and below the visible rows.
        debounce_s (float): Quiet period before a fetch; 0 fetches on the next loop turn.
    """

    def __init__(self, cache: WindowCache, *, prefetch_margin: int, debounce_s: float) -> None:
        self._cache = cache
        self._margin = prefetch_margin
        self._debounce = debounce_s
        self._epoch = 0
        self._state = ScrollState.IDLE
        self._state_rows: RowRange | None = None
        self._viewport: tuple[int, int] | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._task_rows: RowRange | None = None
        self._task_epoch = 0
        self._subscribers: list[Subscriber] = []
        self._queues: set[asyncio.Queue[WindowReady | None]] = set()
        self._closed = False
        self.delivered = 0
        self.discarded = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def state(self) -> ScrollState:
        return self._state

    @property
    def state_rows(self) -> RowRange | None:
        """Range attached to FETCHING/CANCELLING, else None."""
        return self._state_rows

    @property
    def subscribers(self) -> int:
        return len(self._subscribers)

    @property
    def viewport(self) -> tuple[int, int] | None:
        return self._viewport

    def _set_state(self, state: ScrollState, rows: RowRange | None = None) -> None:
        self._state = state
        self._state_rows = rows

    def target_range(self, first_visible_row: int, visible_row_count: int) -> RowRange:
        return RowRange.around(
            first_visible_row,
            visible_row_count,
            self._margin,
            self._cache.plan.total_rows(),
        )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def on_viewport_changed(self, first_visible_row: int, visible_row_count: int) -> None:
        """
        Record a new viewport and schedule delivery of its window. Never blocks.

        Must be called on the event loop thread.
        """
        if self._closed:
            raise RuntimeError("scroll controller is closed")
        self._viewport = (first_visible_row, visible_row_count)
        target = self.target_range(first_visible_row, visible_row_count)
        self._epoch += 1
        epoch = self._epoch
        self._cancel_timer()

        if self._task is not None and not self._task.done():
            if self._task_rows == target:
                # Same range already in flight; let it satisfy the newer epoch.
                self._task_epoch = epoch
                return
            LOGGER.debug("viewport moved; cancelling fetch for %s", self._task_rows)
            self._set_state(ScrollState.CANCELLING, self._task_rows)
            self._cancel_task()

        cached = self._cache.get(target)
        if cached is not None:
            self._set_state(ScrollState.IDLE)
            self._deliver(WindowReady(target, cached, None, self._cache.plan.generation))
            return

        loop = asyncio.get_running_loop()
        if self._state is not ScrollState.CANCELLING:
            self._set_state(ScrollState.DEBOUNCING)
        self._timer = loop.call_later(self._debounce, self._start_fetch, target, epoch)

    def refresh(self) -> None:
        """Re-request the current viewport (e.g., a retry after a partition error)."""
        if self._viewport is not None:
            self.on_viewport_changed(*self._viewport)

    def reset(self) -> None:
        """
        Forget in-flight work after the cache was rebound, then re-request the viewport.

        Nothing fetched before the reset is delivered afterwards.
        """
        self._epoch += 1
        self._cancel_timer()
        self._cancel_task()
        self._set_state(ScrollState.IDLE)
        self.refresh()

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._subscribers.remove(callback)

        return unsubscribe

    async def notifications(self) -> AsyncIterator[WindowReady]:
        """Yield delivered events until the controller is closed."""
        queue: asyncio.Queue[WindowReady | None] = asyncio.Queue()
        self._queues.add(queue)
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            self._queues.discard(queue)

    async def aclose(self) -> None:
        """Cancel timers and in-flight waits and end every notifications() iterator."""
        self._closed = True
        self._epoch += 1
        self._cancel_timer()
        task = self._cancel_task()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._set_state(ScrollState.IDLE)
        for queue in list(self._queues):
            queue.put_nowait(None)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_task(self) -> asyncio.Task[None] | None:
        """Cancel the in-flight wait (the shared fetch itself keeps running)."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return None
        task.cancel()
        return task

    def _start_fetch(self, target: RowRange, epoch: int) -> None:
        self._timer = None
        if epoch != self._epoch or self._closed:
            return
        self._set_state(ScrollState.FETCHING, target)
        self._task_rows = target
        self._task_epoch = epoch
        self._task = asyncio.create_task(self._run(target))
        self._task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        if not task.cancelled():
            return
        self.discarded += 1
        LOGGER.debug("fetch wait cancelled (superseded)")
        if self._task is None and self._state is ScrollState.CANCELLING:
            self._set_state(ScrollState.DEBOUNCING if self._timer is not None else ScrollState.IDLE)

    async def _run(self, target: RowRange) -> None:
        me = asyncio.current_task()
        window: Window | None = None
        error: BaseException | None = None
        try:
            window = await self._cache.get_or_fetch(target)
        except WindowCancelledError as exc:
            self.discarded += 1
            LOGGER.debug("fetch for %s cancelled: %s", target, exc)
            return
        except Exception as exc:
            error = exc

        if self._task is not me or self._task_epoch != self._epoch:
            self.discarded += 1
            LOGGER.debug("discarding stale window %s (cancelled)", target)
            return
        generation = self._cache.plan.generation
        if window is not None and window.generation != generation:
            self.discarded += 1
            LOGGER.debug("discarding %s from generation %d (cancelled)", target, window.generation)
            return
        self._set_state(ScrollState.IDLE)
        self._deliver(WindowReady(target, window, error, generation))

    def _deliver(self, event: WindowReady) -> None:
        self.delivered += 1
        if event.error is not None:
            LOGGER.warning("window %s failed: %s", event.rows, event.error)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                LOGGER.exception("window subscriber failed for %s", event.rows)
        for queue in self._queues:
            queue.put_nowait(event)
