"""
Materialized windows of rows.

A Window is the result of evaluating a plan over one RowRange. It is an ordered tuple of
segments, each covering a contiguous sub-range of the window:

- DataSegment: rows that were read successfully, held as a Polars DataFrame.
- ErrorSegment: rows of a partition that could not be read; the rows are kept in place
  as error markers so the grid can show a retry affordance for just that span.

Segments are contiguous and ordered, so the window's row order equals global row order.

Notes:
    - Windows are immutable once built and are shared by reference between the cache,
      the scroll controller and subscribers.
    - Depends only on polars and tablr.core.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

import polars as pl

from .errors import PartitionReadError
from .ranges import RowRange

__all__ = ["DataSegment", "ErrorSegment", "RowErrorMarker", "Segment", "Window"]


@dataclass(frozen=True, slots=True, eq=False)
class DataSegment:
    """Rows read from one partition; frame.height == len(rows)."""

    rows: RowRange
    frame: pl.DataFrame


@dataclass(frozen=True, slots=True, eq=False)
class ErrorSegment:
    """Rows of one partition that failed to materialize."""

    rows: RowRange
    error: PartitionReadError


Segment = DataSegment | ErrorSegment


@dataclass(frozen=True, slots=True)
class RowErrorMarker:
    """
    Placeholder for a row that could not be read.

    Attributes:
        row (int): Global row index.
        path (str): Partition the row belongs to.
        message (str): Human-readable failure reason.
    """

    row: int
    path: str
    message: str


@dataclass(frozen=True, eq=False)
class Window:
    """
    Ordered rows for a RowRange.

    Attributes:
        range (RowRange): Rows covered (already clamped to the dataset).
        schema (Mapping[str, pl.DataType]): Projected column -> dtype mapping.
        segments (tuple[Segment, ...]): Contiguous segments in global row order.
        generation (int): Catalog/plan generation the rows were read under.
    """

    range: RowRange
    schema: Mapping[str, pl.DataType]
    segments: tuple[Segment, ...] = ()
    generation: int = 0
    _height: int = field(init=False, repr=False, default=0)

    def __post_init__(self) -> None:
        pos = self.range.start
        for seg in self.segments:
            if seg.rows.start != pos:
                raise ValueError(f"segment {seg.rows} is not contiguous at row {pos}")
            if isinstance(seg, DataSegment) and seg.frame.height != len(seg.rows):
                raise ValueError(
                    f"segment {seg.rows} holds {seg.frame.height} rows, expected {len(seg.rows)}"
                )
            pos = seg.rows.end
        if self.segments and pos != self.range.end:
            raise ValueError(f"segments end at {pos}, window ends at {self.range.end}")
        object.__setattr__(self, "_height", pos - self.range.start if self.segments else 0)

    @classmethod
    def empty(
        cls, rows: RowRange, schema: Mapping[str, pl.DataType], generation: int = 0
    ) -> Window:
        return cls(RowRange(rows.start, rows.start), dict(schema), (), generation)

    @property
    def height(self) -> int:
        return self._height

    @property
    def columns(self) -> list[str]:
        return list(self.schema)

    @property
    def errors(self) -> list[PartitionReadError]:
        return [s.error for s in self.segments if isinstance(s, ErrorSegment)]

    @property
    def ok(self) -> bool:
        return not any(isinstance(s, ErrorSegment) for s in self.segments)

    def rows(self) -> Iterator[dict[str, Any] | RowErrorMarker]:
        """
        Iterate rows in global order.

        Yields:
            dict[str, Any] | RowErrorMarker: A column -> value mapping (None for nulls) for
            readable rows, or a RowErrorMarker for rows of an unreadable partition.
        """
        for seg in self.segments:
            if isinstance(seg, DataSegment):
                yield from seg.frame.iter_rows(named=True)
            else:
                msg = str(seg.error)
                for row in range(seg.rows.start, seg.rows.end):
                    yield RowErrorMarker(row, seg.error.path, msg)

    def to_frame(self) -> pl.DataFrame:
        """Concatenate the readable segments into one DataFrame (error rows omitted)."""
        frames = [s.frame for s in self.segments if isinstance(s, DataSegment)]
        if not frames:
            return pl.DataFrame(schema=dict(self.schema))
        if len(frames) == 1:
            return frames[0]
        return pl.concat(frames, how="vertical")

    def slice(self, rows: RowRange) -> Window:
        """
        Sub-window for a range contained in this window.

        Raises:
            ValueError: If rows is not inside self.range.
        """
        if not self.range.contains(rows):
            raise ValueError(f"{rows} is not inside window {self.range}")
        if rows == self.range:
            return self
        out: list[Segment] = []
        for seg in self.segments:
            part = seg.rows.intersect(rows)
            if part is None:
                continue
            if isinstance(seg, DataSegment):
                offset = part.start - seg.rows.start
                out.append(DataSegment(part, seg.frame.slice(offset, len(part))))
            else:
                out.append(ErrorSegment(part, seg.error))
        if not out:
            return Window.empty(rows, self.schema, self.generation)
        return Window(rows, self.schema, tuple(out), self.generation)
