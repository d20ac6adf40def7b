from __future__ import annotations

import polars as pl

from app.ui.helpers import (
    humanize_bytes,
    parse_paths,
    summarize_catalog,
    visible_range,
    window_to_blocks,
)
from tablr.core.errors import PartitionReadError
from tablr.core.ranges import RowRange
from tablr.core.window import DataSegment, ErrorSegment, Window
from tablr.io.catalog import Catalog, Partition


def test_parse_paths_splits_strips_and_dedupes() -> None:
    text = ' data/a.parquet\n"data/b.parquet", data/a.parquet\n\n'
    assert parse_paths(text) == ["data/a.parquet", "data/b.parquet"]
    assert parse_paths("") == []


def test_humanize_bytes_units() -> None:
    assert humanize_bytes(500) == "500 B"
    assert humanize_bytes(1536) == "1.5 KiB"
    assert humanize_bytes(3 * 1024**3) == "3.0 GiB"


def test_summarize_catalog_formats_counts() -> None:
    part = Partition(path="p", rows=12_345, schema={"x": pl.Int64}, byte_size=2048)
    summary = summarize_catalog(Catalog.from_partitions([part], generation=1))
    assert summary == {"Files": "1", "Rows": "12,345", "Columns": "1", "Size": "2.0 KiB"}


def test_visible_range_clamps_to_table() -> None:
    assert visible_range(10, 25, 1000) == RowRange(10, 35)
    assert visible_range(990, 25, 1000) == RowRange(990, 1000)
    assert visible_range(5000, 25, 1000) == RowRange(999, 1000)
    assert visible_range(0, 25, 0).is_empty


def test_window_to_blocks_cuts_visible_rows_and_errors() -> None:
    # Window [0, 6): readable rows 0-2, unreadable rows 3-5
    bad = RowRange(3, 6)
    window = Window(
        RowRange(0, 6),
        {"x": pl.Int64},
        (
            DataSegment(RowRange(0, 3), pl.DataFrame({"x": pl.Series([0, 1, 2], dtype=pl.Int64)})),
            ErrorSegment(bad, PartitionReadError("gone.parquet", bad, "file not found")),
        ),
    )

    blocks = window_to_blocks(window, RowRange(1, 5))

    assert [b.rows for b in blocks] == [RowRange(1, 3), RowRange(3, 5)]
    assert blocks[0].frame["x"].to_list() == [1, 2]
    assert blocks[1].is_error
    assert "gone.parquet" in blocks[1].message
    assert window_to_blocks(window, RowRange(4, 10)) == []
