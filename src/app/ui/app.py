"""
Streamlit application orchestrator for Tablr.

This module lays out the viewer page and drives a tablr SessionRunner. Streamlit re-runs
the script on every interaction, so the runner (and the asyncio loop it owns) is kept in
st.session_state: it survives reruns and each browser session gets its own dataset.

Responsibilities:
    - Configure Streamlit page.
    - Collect input paths and open them as one logical table.
    - Expose column selection and paging controls.
    - Forward the viewport to the runner and render the delivered window, with inline
      error blocks and a retry button for unreadable partitions.

Notes:
    - All IO happens on the runner's worker threads; this module only waits (with a
      timeout) for the window covering the visible rows.
"""

from __future__ import annotations

import streamlit as st

from tablr.core.errors import TablrError
from tablr.core.logging import get_logger, setup_logging
from tablr.io.config import ViewerSettings
from tablr.view.runner import SessionRunner

from .helpers import parse_paths, summarize_catalog, visible_range, window_to_blocks

LOGGER = get_logger("tablr.app")


def _runner(settings: ViewerSettings) -> SessionRunner:
    runner = st.session_state.get("tablr_runner")
    if runner is not None and runner.settings == settings:
        return runner
    paths: list[str] = []
    if runner is not None:
        paths = runner.session.paths if runner.session is not None else []
        runner.close()
    runner = SessionRunner(settings)
    st.session_state["tablr_runner"] = runner
    if paths:
        _open(runner, paths)
    return runner


def _open(runner: SessionRunner, paths: list[str]) -> None:
    try:
        runner.open(paths)
        st.session_state["tablr_paths"] = paths
        st.session_state["tablr_error"] = None
        st.session_state["tablr_columns"] = None
    except TablrError as exc:
        LOGGER.warning("open failed: %s", exc)
        st.session_state["tablr_error"] = str(exc)


def streamlit_app(default_paths: list[str] | None = None, log_level: str | None = None) -> None:
    """Render the Tablr Streamlit application.

    Args:
        default_paths (list[str] | None): Files/directories to open on first render.
        log_level (str | None): Overrides ViewerSettings.log_level when given.

    Returns:
        None
    """
    st.set_page_config(page_title="Tablr - Parquet Viewer", layout="wide")

    settings = ViewerSettings.load()
    setup_logging(log_level or settings.log_level)
    runner = _runner(settings)

    # File selector
    with st.sidebar:
        raw = st.text_area(
            "Parquet files or directories (one per line)",
            value="\n".join(st.session_state.get("tablr_paths", default_paths or [])),
        )
        if st.button("Open", type="primary"):
            paths = parse_paths(raw)
            if not paths:
                st.session_state["tablr_error"] = (
                    "No files selected. Please enter at least one Parquet file."
                )
            else:
                _open(runner, paths)

    if runner.catalog is None and default_paths and "tablr_paths" not in st.session_state:
        _open(runner, list(default_paths))

    err = st.session_state.get("tablr_error")
    if err:
        st.error(err)

    catalog = runner.catalog
    if catalog is None:
        st.info("Open one or more Parquet files to start browsing.")
        return

    cols = st.columns(4)
    for col, (label, value) in zip(cols, summarize_catalog(catalog).items(), strict=True):
        col.metric(label, value)

    # Column projection
    all_columns = list(catalog.schema)
    chosen = st.multiselect("Columns", all_columns, default=all_columns)
    selection = tuple(chosen) if chosen and len(chosen) < len(all_columns) else None
    if st.session_state.get("tablr_columns") != selection:
        runner.set_columns(selection)
        st.session_state["tablr_columns"] = selection

    # Viewport
    total = catalog.total_rows
    c1, c2 = st.columns([3, 1])
    page = int(c2.number_input("Rows per page", min_value=10, max_value=1000, value=50, step=10))
    first = int(
        c1.number_input("First row", min_value=0, max_value=max(0, total - 1), value=0, step=page)
    )
    visible = visible_range(first, page, total)
    runner.viewport_changed(visible.start, len(visible))

    event = runner.wait_for(visible, timeout=10.0)
    if event is None:
        st.warning("Still loading rows; interact again to refresh.")
        return
    if event.error is not None or event.window is None:
        st.error(f"Failed to load rows {event.rows}: {event.error}")
        if st.button("Retry"):
            runner.retry()
        return

    st.caption(f"Rows {visible.start:,} to {max(visible.start, visible.end - 1):,} of {total:,}")
    for block in window_to_blocks(event.window, visible):
        if block.is_error:
            st.warning(f"Rows {block.rows} unavailable: {block.message}")
            if st.button("Retry", key=f"retry-{block.rows.start}"):
                runner.retry()
        else:
            st.dataframe(block.frame, use_container_width=True, hide_index=True)
