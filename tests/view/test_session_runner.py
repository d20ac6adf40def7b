from __future__ import annotations

from pathlib import Path

import pytest

from tablr.core.errors import UnreadableFileError
from tablr.core.ranges import RowRange
from tablr.io.config import ViewerSettings
from tablr.view.runner import SessionRunner


@pytest.fixture
def runner():
    r = SessionRunner(ViewerSettings(prefetch_margin=10, debounce_ms=0), timeout=10.0)
    yield r
    r.close()


def test_runner_requires_open_session(runner: SessionRunner) -> None:
    assert runner.session is None
    with pytest.raises(RuntimeError):
        runner.viewport_changed(0, 10)


def test_runner_open_scroll_and_wait(runner: SessionRunner, partitioned) -> None:
    catalog = runner.open(partitioned)
    assert catalog.total_rows == 450

    runner.viewport_changed(0, 20)
    ev = runner.wait_for(RowRange(0, 20), timeout=10.0)

    assert ev is not None
    assert ev.ok
    assert ev.rows == RowRange(0, 30)
    assert runner.latest() is ev

    window = runner.get_window(RowRange(440, 450))
    assert window.to_frame()["id"].to_list() == list(range(440, 450))


def test_runner_set_columns_clears_latest(runner: SessionRunner, partitioned) -> None:
    runner.open(partitioned)
    runner.viewport_changed(100, 5)
    assert runner.wait_for(RowRange(100, 105), timeout=10.0) is not None

    runner.set_columns(["name"])
    ev = runner.wait_for(RowRange(100, 105), timeout=10.0)

    assert ev is not None
    assert ev.window.columns == ["Row Index", "name"]


def test_runner_failed_open_keeps_previous_session(
    runner: SessionRunner, partitioned, tmp_path: Path
) -> None:
    first = runner.open(partitioned)

    with pytest.raises(UnreadableFileError):
        runner.open([tmp_path / "missing.parquet"])

    assert runner.catalog is first


def test_wait_for_times_out_without_events(runner: SessionRunner, partitioned) -> None:
    runner.open(partitioned)
    assert runner.wait_for(RowRange(0, 10), timeout=0.05) is None


def test_reload_never_leaves_previous_generation_in_latest(
    runner: SessionRunner, partitioned
) -> None:
    for _ in range(20):
        runner.open(partitioned)
        runner.viewport_changed(0, 20)
        catalog = runner.reload()
        ev = runner.latest()
        assert ev is None or ev.generation == catalog.generation


def test_events_of_replaced_plans_are_ignored(runner: SessionRunner, partitioned) -> None:
    runner.open(partitioned)
    runner.viewport_changed(0, 20)
    old = runner.wait_for(RowRange(0, 20), timeout=10.0)
    assert old is not None

    catalog = runner.reload()
    # A late delivery of the old window, as if it had been in flight during reload()
    runner._loop.call_soon_threadsafe(runner._on_ready, old)
    runner.viewport_changed(0, 20)
    ev = runner.wait_for(RowRange(0, 20), timeout=10.0)

    assert ev is not None
    assert ev.generation == catalog.generation
    assert ev.window.generation == catalog.generation

    runner.set_columns(["score"])
    projected = runner.wait_for(RowRange(0, 20), timeout=10.0)
    assert projected is not None
    assert projected.window.columns == ["Row Index", "score"]

    # Same generation, old projection
    runner._loop.call_soon_threadsafe(runner._on_ready, ev)
    runner.get_window(RowRange(0, 1))  # queued behind the late delivery
    assert runner.latest() is projected


def test_reopen_detaches_previous_session(runner: SessionRunner, partitioned) -> None:
    runner.open(partitioned)
    first = runner.session
    second_catalog = runner.open(partitioned[:1])

    # Events from the closed session's controller no longer reach the runner
    assert first is not None
    assert first.controller.subscribers == 0
    assert runner.catalog is second_catalog
    runner.viewport_changed(0, 20)
    ev = runner.wait_for(RowRange(0, 20), timeout=10.0)
    assert ev is not None
    assert ev.generation == second_catalog.generation
