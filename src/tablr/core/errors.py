"""
Exception types raised by the catalog, fetcher, cache and configuration layers.

Provides typed exceptions for viewer failures:
- UnreadableFileError for files that are missing, corrupt, or not Parquet (fatal to open).
- SchemaConflictError for partitions whose columns cannot be unified (fatal to open).
- PartitionReadError for a cataloged file that can no longer be scanned (per window).
- WindowCancelledError for superseded fetches (internal, never delivered).
- ConfigError for invalid ViewerSettings values.

Notes:
    - This module uses only the Python standard library and has no side effects.
    - File-level errors are raised once by tablr.io.catalog.load; PartitionReadError is
      recorded inline in a Window rather than raised through the scroll path.

Examples:
    Name the conflicting column in a schema mismatch.

    >>> from tablr.core.errors import SchemaConflictError
    >>> err = SchemaConflictError("x", "b.parquet", expected="Int64", actual="String")
    >>> err.column
    'x'
    >>> "'x'" in str(err)
    True
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .ranges import RowRange

__all__ = [
    "TablrError",
    "ConfigError",
    "UnreadableFileError",
    "SchemaConflictError",
    "PartitionReadError",
    "WindowCancelledError",
]


class TablrError(Exception):
    """Base class for all tablr errors."""


class ConfigError(TablrError, ValueError):
    """Invalid or unsupported viewer configuration (e.g., negative prefetch margin)."""


class UnreadableFileError(TablrError):
    """
    Raised when an input file is missing, corrupt, or not in Parquet format.

    Attributes:
        path (str): Offending path.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"cannot read {path!r}: {reason}")
        self.path = path
        self.reason = reason


class SchemaConflictError(TablrError):
    """
    Raised when a partition's columns cannot be reconciled with the unified schema.

    Attributes:
        column (str): Conflicting column name.
        path (str): Partition that introduced the conflict.
        expected (str | None): Dtype (or presence) required by the unified schema.
        actual (str | None): Dtype (or absence) found in the partition.
    """

    def __init__(
        self,
        column: str,
        path: str,
        *,
        expected: str | None = None,
        actual: str | None = None,
    ) -> None:
        detail = f"expected {expected}, found {actual}"
        super().__init__(f"schema conflict on column {column!r} in {path!r}: {detail}")
        self.column = column
        self.path = path
        self.expected = expected
        self.actual = actual


class PartitionReadError(TablrError):
    """
    A cataloged partition became unreadable after load (deleted, moved, truncated).

    Attributes:
        path (str): Partition path.
        rows (RowRange): Global rows that could not be materialized.
    """

    def __init__(self, path: str, rows: RowRange, reason: str) -> None:
        super().__init__(f"failed to read rows {rows} from {path!r}: {reason}")
        self.path = path
        self.rows = rows
        self.reason = reason


class WindowCancelledError(TablrError):
    """A fetch was superseded (new viewport or new generation) and its result dropped."""
