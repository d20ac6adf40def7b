"""
Window fetcher: materialize a global row range from a LazyPlan.

Algorithm
1. Binary-search the catalog offsets for the partitions intersecting the range
   (Catalog.locate).
2. Convert each hit to a partition-local half-open sub-range.
3. Issue one lazy Polars scan per partition with projection and slice pushdown
   (scan_parquet(path).select(columns).slice(offset, length)), then cast to the unified
   schema.
4. Concatenate segments in partition order, which is global row order; nothing is sorted.

Failure semantics
- An out-of-bounds or empty range yields an empty Window.
- A partition that became unreadable after the catalog was built (deleted, moved,
  truncated, rewritten with other columns) yields an ErrorSegment carrying a
  PartitionReadError for just its rows; other partitions are returned normally.

Notes
- fetch() is synchronous and meant for worker threads; fetch_async() hops onto an
  executor so the event loop never blocks on IO.
"""

from __future__ import annotations

import asyncio
import logging
import os
from concurrent.futures import Executor
from typing import TYPE_CHECKING

import polars as pl
import pyarrow as pa

from tablr.core.errors import PartitionReadError
from tablr.core.ranges import RowRange
from tablr.core.window import DataSegment, ErrorSegment, Segment, Window

from .catalog import PartitionSlice

if TYPE_CHECKING:
    from .plan import LazyPlan

LOGGER = logging.getLogger(__name__)


class WindowFetcher:
    """
    Reads windows for plans, one partition scan per intersecting file.

    Args:
        executor (Executor | None): Executor used by fetch_async(); None uses the event
            loop's default executor.
    """

    def __init__(self, executor: Executor | None = None) -> None:
        self._executor = executor

    def fetch(self, plan: LazyPlan, rows: RowRange) -> Window:
        """
        Materialize rows for a plan.

        Args:
            plan (LazyPlan): Plan providing catalog, projection and row index settings.
            rows (RowRange): Global range; clamped to the table.

        Returns:
            Window: Ordered segments covering the clamped range, stamped with the plan's
            catalog generation.
        """
        schema = plan.schema
        clamped = rows.clamp(plan.total_rows())
        if clamped.is_empty:
            return Window.empty(clamped, schema, plan.generation)

        segments: list[Segment] = [self._scan(plan, hit) for hit in plan.catalog.locate(clamped)]
        LOGGER.debug(
            "fetched %s across %d partition(s) (generation %d)",
            clamped,
            len(segments),
            plan.generation,
        )
        return Window(clamped, schema, tuple(segments), plan.generation)

    async def fetch_async(self, plan: LazyPlan, rows: RowRange) -> Window:
        """Run fetch() on the executor and await the result."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.fetch, plan, rows)

    def _scan(self, plan: LazyPlan, hit: PartitionSlice) -> Segment:
        path = hit.partition.path
        columns = list(plan.columns)
        try:
            if not os.path.exists(path):
                raise FileNotFoundError(f"partition file no longer exists: {path}")
            frame = (
                pl.scan_parquet(path)
                .select(columns)
                .slice(hit.local.start, len(hit.local))
                .collect()
            )
            if frame.height != len(hit.local):
                raise ValueError(
                    f"expected {len(hit.local)} rows at local {hit.local}, got {frame.height}"
                )
            casts = {
                c: plan.catalog.schema[c]
                for c in columns
                if frame.schema[c] != plan.catalog.schema[c]
            }
            if casts:
                frame = frame.cast(casts)
        except (OSError, ValueError, pl.exceptions.PolarsError, pa.ArrowException) as exc:
            err = PartitionReadError(path, hit.rows, str(exc))
            LOGGER.warning("%s", err)
            return ErrorSegment(hit.rows, err)

        if plan.row_index_name:
            # Int64 directly; the native row index type overflows past 2**32 rows
            index = pl.int_range(hit.rows.start, hit.rows.end, dtype=pl.Int64, eager=True)
            frame = frame.insert_column(0, index.alias(plan.row_index_name))
        return DataSegment(hit.rows, frame)
