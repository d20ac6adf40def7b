"""
Session facade bound to one opened dataset.

A Session wires a Catalog, a LazyPlan, a WindowFetcher (with its worker pool), a
WindowCache and a ScrollController together and exposes the surface a rendering shell
needs: viewport_changed(), subscribe()/notifications(), set_columns(), reload() and
get_window().

Notes
- open_session() raises file-level errors (UnreadableFileError, SchemaConflictError) and
  no session is created; once open, per-range problems arrive inline in WindowReady events.
- reload() builds a new Catalog; on failure the current catalog stays in place.
- Must be used from a running event loop; all IO happens on the session's thread pool.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator, Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType

from tablr.core.ranges import RowRange
from tablr.core.window import Window
from tablr.io.catalog import Catalog, load_async
from tablr.io.config import ViewerSettings
from tablr.io.fetch import WindowFetcher
from tablr.io.plan import LazyPlan

from .cache import WindowCache
from .scroll import ScrollController, Subscriber, WindowReady

LOGGER = logging.getLogger(__name__)


class Session:
    """
    Facade over the windowed materialization engine for one dataset.

    Args:
        paths (Sequence[str]): Paths the catalog was loaded from (kept for reload()).
        catalog (Catalog): Loaded catalog.
        settings (ViewerSettings): Validated settings.
        executor (ThreadPoolExecutor): Worker pool owned by the session.

    Notes:
        Prefer open_session() over constructing a Session directly.
    """

    def __init__(
        self,
        paths: Sequence[str],
        catalog: Catalog,
        settings: ViewerSettings,
        executor: ThreadPoolExecutor,
    ) -> None:
        self.settings = settings
        self._paths = list(paths)
        self._executor = executor
        self._fetcher = WindowFetcher(executor)
        self._plan = LazyPlan(catalog, None, settings.row_index_name or None)
        self._cache = WindowCache(self._fetcher, self._plan, settings.cache_budget_bytes)
        self._controller = ScrollController(
            self._cache,
            prefetch_margin=settings.prefetch_margin,
            debounce_s=settings.debounce_seconds,
        )
        self._closed = False

    # ---------------------------------------------------------------------
    # Introspection
    # ---------------------------------------------------------------------
    @property
    def paths(self) -> list[str]:
        return list(self._paths)

    @property
    def catalog(self) -> Catalog:
        return self._plan.catalog

    @property
    def plan(self) -> LazyPlan:
        return self._plan

    @property
    def cache(self) -> WindowCache:
        return self._cache

    @property
    def controller(self) -> ScrollController:
        return self._controller

    def total_rows(self) -> int:
        return self._plan.total_rows()

    # ---------------------------------------------------------------------
    # Rendering-shell surface
    # ---------------------------------------------------------------------
    def viewport_changed(self, first_row: int, count: int) -> None:
        """Forward a viewport change to the scroll controller (non-blocking)."""
        self._controller.on_viewport_changed(first_row, count)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a WindowReady callback; returns an unsubscribe function."""
        return self._controller.subscribe(callback)

    def notifications(self) -> AsyncIterator[WindowReady]:
        return self._controller.notifications()

    def retry(self) -> None:
        """Re-request the current viewport after a failed or partially failed window."""
        self._controller.refresh()

    async def get_window(self, rows: RowRange) -> Window:
        """Fetch a range directly through the cache (no debouncing)."""
        return await self._cache.get_or_fetch(rows)

    def set_columns(self, columns: Sequence[str] | None) -> None:
        """
        Change the projection. Cached windows of the old projection are never reused.

        Raises:
            ValueError: Unknown or duplicate columns, or an empty selection.
        """
        plan = self._plan.with_columns(columns)
        self._swap(plan)

    async def reload(self, paths: Iterable[str | os.PathLike[str]] | None = None) -> Catalog:
        """
        Rebuild the catalog (same paths by default) and invalidate all cached windows.

        Raises:
            UnreadableFileError, SchemaConflictError: The new file set cannot be opened;
                the session keeps serving the previous catalog.
        """
        requested = self._paths if paths is None else [os.fspath(p) for p in paths]
        catalog = await load_async(requested, self._executor)
        self._paths = list(requested)
        self._swap(self._plan.with_catalog(catalog))
        return catalog

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._controller.aclose()
        await self._cache.drain()
        self._executor.shutdown(wait=False, cancel_futures=True)
        LOGGER.debug("session closed")

    async def __aenter__(self) -> Session:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def _swap(self, plan: LazyPlan) -> None:
        self._plan = plan
        self._cache.rebind(plan)
        self._controller.reset()
        LOGGER.info(
            "plan now generation %d, %d column(s), %d rows",
            plan.generation,
            len(plan.columns),
            plan.total_rows(),
        )


async def open_session(
    paths: Iterable[str | os.PathLike[str]],
    settings: ViewerSettings | None = None,
) -> Session:
    """
    Open files and/or directories as one logical table.

    Args:
        paths (Iterable[str | PathLike]): Parquet files and/or directories.
        settings (ViewerSettings | None): Settings; defaults when None.

    Returns:
        Session: Ready session; call viewport_changed() to start receiving windows.

    Raises:
        UnreadableFileError: A file is missing, corrupt or not Parquet (or none was found).
        SchemaConflictError: Partitions cannot be unified; names the column.
        ConfigError: Invalid settings.
    """
    settings = (settings or ViewerSettings()).validate()
    requested = [os.fspath(p) for p in paths]
    executor = ThreadPoolExecutor(
        max_workers=settings.max_workers, thread_name_prefix="tablr-io"
    )
    try:
        catalog = await load_async(requested, executor)
    except BaseException:
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    return Session(requested, catalog, settings, executor)
