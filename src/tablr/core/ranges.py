"""
Half-open row ranges over the global row index space.

A RowRange is the key used by the fetcher, the cache and the scroll controller. It is
immutable and hashable so it can key dictionaries of pending and ready windows.
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["RowRange"]


@dataclass(frozen=True, slots=True, order=True)
class RowRange:
    """
    Half-open interval [start, end) of global row indices.

    Attributes:
        start (int): First row (inclusive, >= 0).
        end (int): One past the last row (>= start).

    Raises:
        ValueError: If start < 0 or end < start.

    Examples:
        >>> r = RowRange(90, 110)
        >>> len(r)
        20
        >>> r.intersect(RowRange(0, 100))
        RowRange(start=90, end=100)
        >>> str(r.shift(-90))
        '[0, 20)'
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"start must be >= 0, got {self.start}")
        if self.end < self.start:
            raise ValueError(f"end must be >= start, got [{self.start}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.start

    def __str__(self) -> str:
        return f"[{self.start}, {self.end})"

    @property
    def is_empty(self) -> bool:
        return self.end == self.start

    def clamp(self, total_rows: int) -> RowRange:
        """Clip the range to [0, total_rows); an out-of-bounds range collapses to empty."""
        end = min(self.end, total_rows)
        start = min(self.start, end)
        return RowRange(start, end)

    def contains(self, other: RowRange) -> bool:
        return self.start <= other.start and other.end <= self.end

    def intersect(self, other: RowRange) -> RowRange | None:
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if start >= end:
            return None
        return RowRange(start, end)

    def shift(self, delta: int) -> RowRange:
        return RowRange(self.start + delta, self.end + delta)

    @classmethod
    def around(cls, first: int, count: int, margin: int, total_rows: int) -> RowRange:
        """
        Range covering a viewport plus a prefetch margin on both sides, clamped to the table.

        Args:
            first (int): First visible row (negative values are treated as 0).
            count (int): Number of visible rows (negative values are treated as 0).
            margin (int): Extra rows above and below the viewport.
            total_rows (int): Rows in the dataset.

        Returns:
            RowRange: Target range; empty when the viewport lies past the end of the table.
        """
        first = max(0, first)
        count = max(0, count)
        start = max(0, first - margin)
        end = first + count + margin
        return cls(start, max(start, end)).clamp(total_rows)
