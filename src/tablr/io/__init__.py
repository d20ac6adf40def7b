"""
tablr.io — Metadata discovery and windowed reads over partitioned Parquet datasets.

## Responsibilities
- Expand user paths (files and directories) into an ordered set of Parquet partitions.
- Build an immutable Catalog (unified schema, per-partition row counts, cumulative offsets)
  from Parquet footers only.
- Describe reads as LazyPlans (row range + column projection) and materialize them with
  WindowFetcher using Polars lazy scans with projection and slice pushdown.

## Public API
- ViewerSettings — Configuration (defaults sourced from tablr.core.constants).
- Catalog, Partition, load, load_async — Dataset catalog.
- LazyPlan — Deferred row-range query.
- WindowFetcher — Partition-aware window reads.

## Import DAG discipline
- Depends only on stdlib, polars/pyarrow, and tablr.core.*.
- MUST NOT import tablr.view or app.

## Examples
```python
from tablr.io import LazyPlan, WindowFetcher, load
from tablr.core import RowRange

catalog = load(["data/"])  # doctest: +SKIP
plan = LazyPlan(catalog, projection=("id", "name"), row_index_name="Row Index")  # doctest: +SKIP
window = WindowFetcher().fetch(plan, RowRange(90, 110))  # doctest: +SKIP
window.to_frame()  # doctest: +SKIP
```
"""

from __future__ import annotations

from .catalog import Catalog, Partition, load, load_async
from .config import ViewerSettings
from .fetch import WindowFetcher
from .plan import LazyPlan

__all__ = [
    "ViewerSettings",
    "Catalog",
    "Partition",
    "load",
    "load_async",
    "LazyPlan",
    "WindowFetcher",
]
