from __future__ import annotations

from types import SimpleNamespace

import pytest

from app.ui import app as ui_app
from tablr.io.config import ViewerSettings


@pytest.fixture
def browser_session(monkeypatch):
    """Swap Streamlit's per-browser session_state for a plain dict; returns a switcher."""
    states: dict[str, dict] = {}

    def use(name: str) -> dict:
        state = states.setdefault(name, {})
        monkeypatch.setattr(ui_app, "st", SimpleNamespace(session_state=state))
        return state

    yield use
    for state in states.values():
        runner = state.get("tablr_runner")
        if runner is not None:
            runner.close()


def test_each_browser_session_gets_its_own_runner(browser_session, partitioned) -> None:
    settings = ViewerSettings(debounce_ms=0)

    browser_session("alice")
    alice = ui_app._runner(settings)
    alice.open(partitioned)
    assert ui_app._runner(settings) is alice

    browser_session("bob")
    bob = ui_app._runner(settings)
    bob.open(partitioned[:1])

    assert bob is not alice
    assert alice.catalog.total_rows == 450
    assert bob.catalog.total_rows == 100


def test_changed_settings_replace_runner_and_reopen(browser_session, partitioned) -> None:
    state = browser_session("alice")
    first = ui_app._runner(ViewerSettings(debounce_ms=0))
    first.open(partitioned)

    second = ui_app._runner(ViewerSettings(debounce_ms=0, prefetch_margin=5))

    assert second is not first
    assert state["tablr_runner"] is second
    assert second.catalog is not None
    assert second.catalog.total_rows == 450
    assert state["tablr_paths"] == [str(p) for p in partitioned]
