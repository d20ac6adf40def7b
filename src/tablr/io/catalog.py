"""
Dataset catalog: many Parquet files presented as one logical table.

Catalog layout
- partitions: ordered tuple of Partition (path, rows, schema, byte size, per-column
  uncompressed bytes), ordered by tablr.io.fs.natural_key.
- offsets: cumulative row offsets, offsets[i] = sum(rows of partitions before i), plus a
  final sentinel equal to total_rows.
- schema: unified column -> dtype mapping (tablr.core.schema.reconcile_schemas).
- generation: monotonically increasing id; every load() produces a new one so caches can
  invalidate everything stamped with an older id in one step.

Only Parquet footers are read here (pyarrow.parquet.read_metadata and
polars.read_parquet_schema); no row data is touched.

Notes
- A catalog is immutable. Reloading a file set builds a new Catalog.
- File-level failures raise UnreadableFileError; schema mismatches raise
  SchemaConflictError. Both are fatal to opening a session.
"""

from __future__ import annotations

import asyncio
import bisect
import itertools
import logging
import os
from collections.abc import Iterable, Iterator, Mapping
from concurrent.futures import Executor
from dataclasses import dataclass, field

import polars as pl
import pyarrow as pa
import pyarrow.parquet as pq

from tablr.core.errors import UnreadableFileError
from tablr.core.ranges import RowRange
from tablr.core.schema import reconcile_schemas

from .fs import expand_paths, file_size, is_parquet

LOGGER = logging.getLogger(__name__)

_GENERATIONS = itertools.count(1)


def next_generation() -> int:
    """Allocate a process-wide unique generation id."""
    return next(_GENERATIONS)


@dataclass(frozen=True, slots=True)
class Partition:
    """
    Metadata for one physical Parquet file.

    Attributes:
        path (str): Absolute file path.
        rows (int): Row count from the Parquet footer.
        schema (Mapping[str, pl.DataType]): Column -> dtype as Polars reads it.
        byte_size (int): File size on disk.
        column_bytes (Mapping[str, int]): Uncompressed bytes per top-level column, summed
            over row groups. Used to estimate materialized row size.
    """

    path: str
    rows: int
    schema: Mapping[str, pl.DataType]
    byte_size: int
    column_bytes: Mapping[str, int] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return os.path.basename(self.path)


@dataclass(frozen=True, slots=True)
class PartitionSlice:
    """One partition's contribution to a global range."""

    index: int
    partition: Partition
    local: RowRange
    rows: RowRange


def _column_bytes(meta: pq.FileMetaData) -> dict[str, int]:
    out: dict[str, int] = {}
    for rg in range(meta.num_row_groups):
        group = meta.row_group(rg)
        for ci in range(group.num_columns):
            col = group.column(ci)
            # Nested leaves ("a.list.element") roll up to their top-level column.
            top = col.path_in_schema.split(".", 1)[0]
            out[top] = out.get(top, 0) + int(col.total_uncompressed_size)
    return out


def probe_partition(path: str) -> Partition:
    """
    Read one file's footer metadata without reading row data.

    Args:
        path (str): Parquet file path.

    Returns:
        Partition: Immutable partition metadata.

    Raises:
        UnreadableFileError: Missing file, directory, non-Parquet or corrupt footer.
    """
    if not os.path.exists(path):
        raise UnreadableFileError(path, "file not found")
    if os.path.isdir(path):
        raise UnreadableFileError(path, "is a directory with no parquet files")
    if not is_parquet(path):
        LOGGER.debug("probing %s despite non-parquet extension", path)
    try:
        meta = pq.read_metadata(path)
        schema = pl.read_parquet_schema(path)
        size = file_size(path)
    except (OSError, pa.ArrowException, pl.exceptions.PolarsError) as exc:
        raise UnreadableFileError(path, f"not a readable parquet file ({exc})") from exc
    return Partition(
        path=path,
        rows=int(meta.num_rows),
        schema=dict(schema),
        byte_size=size,
        column_bytes=_column_bytes(meta),
    )


@dataclass(frozen=True)
class Catalog:
    """
    Immutable, ordered view of all partitions of a dataset.

    Attributes:
        partitions (tuple[Partition, ...]): Files in global row order.
        schema (Mapping[str, pl.DataType]): Unified schema.
        offsets (tuple[int, ...]): len(partitions) + 1 cumulative offsets; offsets[0] == 0
            and offsets[-1] == total_rows.
        generation (int): Unique id of this load.
    """

    partitions: tuple[Partition, ...]
    schema: Mapping[str, pl.DataType]
    offsets: tuple[int, ...]
    generation: int

    @classmethod
    def from_partitions(
        cls, partitions: Iterable[Partition], generation: int | None = None
    ) -> Catalog:
        """
        Assemble a catalog from already-probed partitions (kept in the given order).

        Raises:
            SchemaConflictError: If the partition schemas cannot be unified.
        """
        parts = tuple(partitions)
        schema = reconcile_schemas((p.path, p.schema) for p in parts)
        offsets = (0, *itertools.accumulate(p.rows for p in parts))
        return cls(
            partitions=parts,
            schema=schema,
            offsets=tuple(offsets),
            generation=next_generation() if generation is None else generation,
        )

    @property
    def total_rows(self) -> int:
        return self.offsets[-1]

    @property
    def paths(self) -> list[str]:
        return [p.path for p in self.partitions]

    def locate(self, rows: RowRange) -> Iterator[PartitionSlice]:
        """
        Resolve a global range to partition-local sub-ranges, in partition order.

        Args:
            rows (RowRange): Global range; clamped to the table first.

        Yields:
            PartitionSlice: One per partition intersecting the range. Empty partitions
            never intersect. Local ranges are exact half-open clamps, so boundary rows are
            neither dropped nor duplicated.
        """
        rows = rows.clamp(self.total_rows)
        if rows.is_empty:
            return
        # Last partition whose base offset is <= start; empty partitions share offsets
        # with their successor and are skipped by the intersection test below.
        first = bisect.bisect_right(self.offsets, rows.start) - 1
        last = bisect.bisect_left(self.offsets, rows.end) - 1
        for i in range(max(first, 0), min(last, len(self.partitions) - 1) + 1):
            base = self.offsets[i]
            span = RowRange(base, self.offsets[i + 1])
            hit = span.intersect(rows)
            if hit is None:
                continue
            yield PartitionSlice(i, self.partitions[i], hit.shift(-base), hit)

    def describe(self) -> dict[str, object]:
        """Summary for display: files, rows, columns and on-disk bytes."""
        return {
            "files": len(self.partitions),
            "rows": self.total_rows,
            "columns": len(self.schema),
            "bytes": sum(p.byte_size for p in self.partitions),
            "generation": self.generation,
        }


def load(paths: Iterable[str | os.PathLike[str]]) -> Catalog:
    """
    Discover and unify a set of Parquet files into one Catalog.

    Args:
        paths (Iterable[str | PathLike]): Files and/or directories.

    Returns:
        Catalog: New immutable catalog with a fresh generation id.

    Raises:
        UnreadableFileError: No files given/found, or a file is missing, corrupt or not
            Parquet. Nothing is partially loaded.
        SchemaConflictError: Partitions disagree on column names or incompatible dtypes.
    """
    requested = list(paths)
    files = expand_paths(requested)
    if not files:
        where = ", ".join(os.fspath(p) for p in requested) or "<none>"
        raise UnreadableFileError(where, "no parquet files found")
    parts = [probe_partition(f) for f in files]
    for p in parts:
        LOGGER.debug("cataloged %s rows=%d bytes=%d", p.path, p.rows, p.byte_size)
    catalog = Catalog.from_partitions(parts)
    LOGGER.info(
        "catalog generation %d: %d partition(s), %d rows, %d columns",
        catalog.generation,
        len(catalog.partitions),
        catalog.total_rows,
        len(catalog.schema),
    )
    return catalog


async def load_async(
    paths: Iterable[str | os.PathLike[str]], executor: Executor | None = None
) -> Catalog:
    """Run load() on a worker thread so the event loop never blocks on metadata IO."""
    loop = asyncio.get_running_loop()
    requested = list(paths)
    return await loop.run_in_executor(executor, load, requested)
