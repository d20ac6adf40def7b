from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import polars as pl
import pytest

from tablr.core.ranges import RowRange
from tablr.core.window import DataSegment, Window
from tablr.io.catalog import Catalog, Partition
from tablr.io.plan import LazyPlan


def make_frame(start: int, rows: int) -> pl.DataFrame:
    # "id" carries the global row index so order can be checked after concatenation
    ids = list(range(start, start + rows))
    return pl.DataFrame(
        {
            "id": pl.Series(ids, dtype=pl.Int64),
            "name": [f"row-{i}" for i in ids],
            "score": [i * 0.5 for i in ids],
        }
    )


@pytest.fixture
def write_parquet(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a frame to tmp_path/<name> (parents created) and returning the path."""

    def _write(name: str, df: pl.DataFrame) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        df.write_parquet(path)
        return path

    return _write


@pytest.fixture
def partitioned(write_parquet) -> list[Path]:
    """Three partitions with 100, 200 and 150 rows (450 total), ids 0..449 in order."""
    sizes = [100, 200, 150]
    paths: list[Path] = []
    start = 0
    for i, n in enumerate(sizes):
        paths.append(write_parquet(f"dataset/part-{i}.parquet", make_frame(start, n)))
        start += n
    return paths


@pytest.fixture
def memory_plan() -> Callable[..., LazyPlan]:
    """Plan over a synthetic catalog (no files); rows cost `row_bytes` bytes each."""

    def _plan(total_rows: int = 1000, row_bytes: int = 8) -> LazyPlan:
        part = Partition(
            path="memory://x.parquet",
            rows=total_rows,
            schema={"x": pl.Int64},
            byte_size=0,
            column_bytes={"x": total_rows * row_bytes},
        )
        return LazyPlan(Catalog.from_partitions([part]))

    return _plan


def synth_window(plan: LazyPlan, rows: RowRange) -> Window:
    rows = rows.clamp(plan.total_rows())
    if rows.is_empty:
        return Window.empty(rows, plan.schema, plan.generation)
    frame = pl.DataFrame({"x": pl.Series(list(range(rows.start, rows.end)), dtype=pl.Int64)})
    return Window(rows, plan.schema, (DataSegment(rows, frame),), plan.generation)


class GatedSource:
    """In-memory window source; fetches block until release() when gated."""

    def __init__(self, gated: bool = False) -> None:
        self.calls: list[RowRange] = []
        self.gated = gated
        self._gate = asyncio.Event()
        self.fail_with: BaseException | None = None

    def release(self) -> None:
        self._gate.set()

    async def fetch_async(self, plan: LazyPlan, rows: RowRange) -> Window:
        self.calls.append(rows)
        if self.gated:
            await self._gate.wait()
        else:
            await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        return synth_window(plan, rows)


@pytest.fixture
def gated_source() -> Callable[..., GatedSource]:
    return GatedSource


@pytest.fixture
def frame_factory() -> Callable[[int, int], pl.DataFrame]:
    return make_frame
