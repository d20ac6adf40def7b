"""
Background event loop for synchronous rendering shells.

Streamlit (and similar script-style UIs) run user code on their own threads without an
asyncio loop. SessionRunner owns a loop on a daemon thread, runs a Session on it, and
exposes blocking open/close calls, a fire-and-forget viewport_changed(), and a snapshot of
the latest delivered WindowReady event.
"""

from __future__ import annotations

import asyncio
import os
import threading
from collections.abc import Callable, Coroutine, Iterable, Sequence
from typing import Any, TypeVar

from tablr.core.ranges import RowRange
from tablr.core.window import Window
from tablr.io.catalog import Catalog
from tablr.io.config import ViewerSettings
from tablr.io.plan import LazyPlan

from .scroll import WindowReady
from .session import Session, open_session

T = TypeVar("T")


class SessionRunner:
    """
    Thread-safe wrapper running one Session on a private event loop.

    Args:
        settings (ViewerSettings | None): Settings used for every open().
        timeout (float): Seconds to wait for blocking calls (open, reload, get_window).
    """

    def __init__(self, settings: ViewerSettings | None = None, timeout: float = 60.0) -> None:
        self.settings = settings or ViewerSettings()
        self.timeout = timeout
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name="tablr-loop", daemon=True
        )
        self._thread.start()
        self._session: Session | None = None
        self._cond = threading.Condition()
        self._latest: WindowReady | None = None
        self._expected: tuple[int, list[str]] | None = None
        self._unsubscribe: Callable[[], None] | None = None

    # ------------------------------------------------------------------
    # Blocking calls
    # ------------------------------------------------------------------
    def _call(self, coro: Coroutine[Any, Any, T]) -> T:
        fut = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return fut.result(self.timeout)

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def catalog(self) -> Catalog | None:
        return self._session.catalog if self._session is not None else None

    def open(self, paths: Iterable[str | os.PathLike[str]]) -> Catalog:
        """
        Open a dataset, replacing any current session.

        Raises:
            UnreadableFileError, SchemaConflictError: The files cannot be opened; the
                previous session (if any) stays open.
        """
        requested = [os.fspath(p) for p in paths]
        session = self._call(open_session(requested, self.settings))
        previous = self._call(self._adopt(session))
        if previous is not None:
            self._call(previous.aclose())
        return session.catalog

    async def _adopt(self, session: Session) -> Session | None:
        # Runs on the loop, so no event of the previous session lands in between
        if self._unsubscribe is not None:
            self._unsubscribe()
        previous, self._session = self._session, session
        self._unsubscribe = session.subscribe(self._on_ready)
        self._expect(session.plan)
        return previous

    def reload(self, paths: Iterable[str | os.PathLike[str]] | None = None) -> Catalog:
        session = self._require()

        async def apply() -> Catalog:
            catalog = await session.reload(paths)
            self._expect(session.plan)
            return catalog

        return self._call(apply())

    def set_columns(self, columns: Sequence[str] | None) -> None:
        session = self._require()

        async def apply() -> None:
            session.set_columns(columns)
            self._expect(session.plan)

        self._call(apply())

    def get_window(self, rows: RowRange) -> Window:
        return self._call(self._require().get_window(rows))

    def close(self) -> None:
        """Close the session and stop the loop thread."""
        if self._session is not None:
            self._call(self._session.aclose())
            self._session = None
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(self.timeout)
        self._loop.close()

    # ------------------------------------------------------------------
    # Non-blocking calls
    # ------------------------------------------------------------------
    def viewport_changed(self, first_row: int, count: int) -> None:
        session = self._require()
        self._loop.call_soon_threadsafe(session.viewport_changed, first_row, count)

    def retry(self) -> None:
        session = self._require()
        self._loop.call_soon_threadsafe(session.retry)

    def latest(self) -> WindowReady | None:
        with self._cond:
            return self._latest

    def wait_for(self, rows: RowRange, timeout: float | None = None) -> WindowReady | None:
        """
        Block until the latest event covers rows (or failed), or the timeout elapses.

        Returns:
            WindowReady | None: The covering event, or None on timeout.
        """

        def covered() -> bool:
            ev = self._latest
            return ev is not None and (ev.error is not None or ev.rows.contains(rows))

        with self._cond:
            self._cond.wait_for(covered, self.timeout if timeout is None else timeout)
            return self._latest if covered() else None

    def _expect(self, plan: LazyPlan) -> None:
        """Accept only events of plan from now on and forget the previous snapshot."""
        with self._cond:
            self._expected = (plan.generation, list(plan.schema))
            self._latest = None

    def _accepts(self, event: WindowReady) -> bool:
        if self._expected is None:
            return False
        generation, columns = self._expected
        if event.generation != generation:
            return False
        return event.window is None or (
            event.window.generation == generation and event.window.columns == columns
        )

    def _on_ready(self, event: WindowReady) -> None:
        with self._cond:
            if not self._accepts(event):
                return
            self._latest = event
            self._cond.notify_all()

    def _require(self) -> Session:
        if self._session is None:
            raise RuntimeError("no dataset is open")
        return self._session
