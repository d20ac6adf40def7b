"""
Shared UI helper utilities for the Tablr Streamlit application.

This module centralizes small pure helpers (path parsing, byte formatting, paging math,
window-to-display conversion) used by the Streamlit page. Keeping these here keeps the
page module lean and makes the helpers testable without a Streamlit runtime.

Notes:
    - This module is UI-adjacent but contains no Streamlit state manipulation itself.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import polars as pl

from tablr.core.ranges import RowRange
from tablr.core.window import DataSegment, Window
from tablr.io.catalog import Catalog

_SPLIT = re.compile(r"[\n,]")
_UNITS = ("B", "KiB", "MiB", "GiB", "TiB")


@dataclass(frozen=True)
class DisplayBlock:
    """A contiguous run of visible rows: either a frame to render or an error span.

    Attributes:
        rows (RowRange): Global rows covered by the block.
        frame (pl.DataFrame | None): Rows to render; None for an error block.
        message (str | None): Failure reason for an error block.
    """

    rows: RowRange
    frame: pl.DataFrame | None = None
    message: str | None = None

    @property
    def is_error(self) -> bool:
        return self.frame is None


def parse_paths(text: str) -> list[str]:
    """Split a free-form path list (newline or comma separated) into clean entries.

    Args:
        text (str): Raw text from the path input box.

    Returns:
        list[str]: Non-empty, stripped paths in input order, without duplicates.
    """
    out: list[str] = []
    for token in _SPLIT.split(text or ""):
        p = token.strip().strip('"').strip("'")
        if p and p not in out:
            out.append(p)
    return out


def humanize_bytes(n: int) -> str:
    """Format a byte count with binary units, e.g. 1536 -> "1.5 KiB"."""
    size = float(n)
    for unit in _UNITS:
        if size < 1024 or unit == _UNITS[-1]:
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{n} B"  # pragma: no cover - loop always returns


def summarize_catalog(catalog: Catalog) -> dict[str, str]:
    """Display-ready summary of an opened dataset.

    Returns:
        dict[str, str]: Keys "Files", "Rows", "Columns", "Size".
    """
    info = catalog.describe()
    return {
        "Files": f"{info['files']:,}",
        "Rows": f"{info['rows']:,}",
        "Columns": f"{info['columns']:,}",
        "Size": humanize_bytes(int(info["bytes"])),  # type: ignore[arg-type]
    }


def visible_range(first_row: int, page_size: int, total_rows: int) -> RowRange:
    """Rows shown on screen for a first-row control and page size, clamped to the table."""
    first = min(max(0, first_row), max(0, total_rows - 1))
    return RowRange(first, first + max(0, page_size)).clamp(total_rows)


def window_to_blocks(window: Window, visible: RowRange) -> list[DisplayBlock]:
    """Cut the visible rows out of a (prefetched) window as renderable blocks.

    Args:
        window (Window): Delivered window; usually larger than the viewport.
        visible (RowRange): Rows on screen.

    Returns:
        list[DisplayBlock]: Data and error blocks in row order. Empty when the visible rows
        are not inside the window.
    """
    if not window.range.contains(visible) or visible.is_empty:
        return []
    blocks: list[DisplayBlock] = []
    for seg in window.slice(visible).segments:
        if isinstance(seg, DataSegment):
            blocks.append(DisplayBlock(seg.rows, frame=seg.frame))
        else:
            blocks.append(DisplayBlock(seg.rows, message=str(seg.error)))
    return blocks
