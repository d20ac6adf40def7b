"""
tablr.core — Zero-IO building blocks shared by the io and view layers.

## Responsibilities
- Row ranges (half-open [start, end) intervals over global row indices).
- Windows: immutable, ordered results of evaluating a plan over a range, with inline
  error markers for unreadable partitions.
- Schema reconciliation (dtype widening) across partitions.
- Error taxonomy and configuration defaults.

## Import DAG discipline
- Depends only on stdlib and polars.
- MUST NOT import tablr.io, tablr.view, or app.
"""

from __future__ import annotations

from .errors import (
    ConfigError,
    PartitionReadError,
    SchemaConflictError,
    TablrError,
    UnreadableFileError,
    WindowCancelledError,
)
from .ranges import RowRange
from .window import DataSegment, ErrorSegment, RowErrorMarker, Window

__all__ = [
    "RowRange",
    "Window",
    "DataSegment",
    "ErrorSegment",
    "RowErrorMarker",
    "TablrError",
    "ConfigError",
    "UnreadableFileError",
    "SchemaConflictError",
    "PartitionReadError",
    "WindowCancelledError",
]
