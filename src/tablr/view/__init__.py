"""
tablr.view — Windowed, cached, scroll-driven access to an opened dataset.

## Responsibilities
- WindowCache: coalesced, LRU-bounded, generation-invalidated window store.
- ScrollController: debounced viewport-to-range driver with cooperative cancellation.
- Session / open_session: the surface consumed by rendering shells.
- SessionRunner: background event loop for synchronous shells (Streamlit).

## Import DAG discipline
- Depends on stdlib (asyncio, threading), tablr.core and tablr.io.
- MUST NOT import app.
"""

from __future__ import annotations

from .cache import CacheStats, RequestState, WindowCache
from .runner import SessionRunner
from .scroll import ScrollController, ScrollState, WindowReady
from .session import Session, open_session

__all__ = [
    "WindowCache",
    "CacheStats",
    "RequestState",
    "ScrollController",
    "ScrollState",
    "WindowReady",
    "Session",
    "open_session",
    "SessionRunner",
]
