"""
Lazy query plan: "all rows of the catalog, with a column projection".

A LazyPlan is a pure description. Building one performs no IO; evaluate() is the only
operation that reads data, and it does so through tablr.io.fetch.WindowFetcher for exactly
the requested rows and projected columns.

Notes
- Plans are immutable. with_columns() returns a new plan; because the plan key changes,
  windows cached under the old key are never reused for the new projection.
- The optional row index column is synthesized from global offsets, never read from disk.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import polars as pl

from tablr.core.ranges import RowRange
from tablr.core.window import Window

from .catalog import Catalog

if TYPE_CHECKING:
    from .fetch import WindowFetcher

PlanKey = tuple[int, tuple[str, ...], str | None]


@dataclass(frozen=True)
class LazyPlan:
    """
    Deferred row-range query over a Catalog.

    Attributes:
        catalog (Catalog): Dataset to read from.
        projection (tuple[str, ...] | None): Columns to materialize, in display order;
            None selects every column of the unified schema.
        row_index_name (str | None): Name of the synthetic global row index column,
            prepended to every window; None or "" disables it.

    Raises:
        ValueError: On unknown projected columns, duplicates, or a row index name that
            collides with a data column.
    """

    catalog: Catalog
    projection: tuple[str, ...] | None = None
    row_index_name: str | None = None

    def __post_init__(self) -> None:
        if self.projection is not None:
            if not self.projection:
                raise ValueError("projection must select at least one column")
            unknown = [c for c in self.projection if c not in self.catalog.schema]
            if unknown:
                raise ValueError(f"unknown columns in projection: {unknown!r}")
            if len(set(self.projection)) != len(self.projection):
                raise ValueError(f"duplicate columns in projection: {list(self.projection)!r}")
        if self.row_index_name and self.row_index_name in self.catalog.schema:
            raise ValueError(f"row index name {self.row_index_name!r} collides with a column")

    @property
    def columns(self) -> tuple[str, ...]:
        """Projected data columns (row index excluded)."""
        if self.projection is None:
            return tuple(self.catalog.schema)
        return self.projection

    @property
    def schema(self) -> dict[str, pl.DataType]:
        """Schema of the windows this plan produces (row index first when enabled)."""
        out: dict[str, pl.DataType] = {}
        if self.row_index_name:
            out[self.row_index_name] = pl.Int64
        for c in self.columns:
            out[c] = self.catalog.schema[c]
        return out

    @property
    def generation(self) -> int:
        return self.catalog.generation

    @property
    def key(self) -> PlanKey:
        """Hashable identity used to decide whether cached windows still apply."""
        return (self.catalog.generation, self.columns, self.row_index_name or None)

    def total_rows(self) -> int:
        return self.catalog.total_rows

    def with_columns(self, columns: Sequence[str] | None) -> LazyPlan:
        """Return a new plan with a different projection (None selects all columns)."""
        projection = None if columns is None else tuple(columns)
        return LazyPlan(self.catalog, projection, self.row_index_name)

    def with_catalog(self, catalog: Catalog) -> LazyPlan:
        """
        Rebind to a reloaded catalog, keeping the projection when every column survives.
        """
        projection = self.projection
        if projection is not None and any(c not in catalog.schema for c in projection):
            projection = None
        return LazyPlan(catalog, projection, self.row_index_name)

    def estimated_row_bytes(self) -> int:
        """
        Estimated in-memory bytes per materialized row for the projection (>= 1).

        Uses uncompressed column sizes from Parquet footers; the row index adds 8 bytes.
        """
        total = self.catalog.total_rows
        if total == 0:
            return 1
        cols = self.columns
        nbytes = sum(p.column_bytes.get(c, 0) for p in self.catalog.partitions for c in cols)
        per_row = nbytes // total
        if self.row_index_name:
            per_row += 8
        return max(1, per_row)

    def evaluate(self, rows: RowRange, fetcher: WindowFetcher | None = None) -> Window:
        """
        Materialize the rows of a range (the only data-reading operation of a plan).

        Args:
            rows (RowRange): Global range; clamped to the table.
            fetcher (WindowFetcher | None): Fetcher to use; a default one when None.

        Returns:
            Window: Rows in global order, with inline error segments for unreadable
            partitions.
        """
        if fetcher is None:
            from .fetch import WindowFetcher

            fetcher = WindowFetcher()
        return fetcher.fetch(self, rows)
