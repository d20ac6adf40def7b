"""
Tablr viewer defaults.

Defines prefetch, cache, debounce and worker defaults consumed by tablr.io.config and the
view layer. This module is zero-IO and uses only the Python standard library.

Notes:
    - ViewerSettings reads these values as its dataclass defaults; change them here rather
      than in the settings class.
    - The cache budget is expressed in bytes and converted to a row budget using the
      projected uncompressed row size reported by Parquet footers.
"""

from __future__ import annotations

__all__ = [
    "PREFETCH_MARGIN",
    "CACHE_BUDGET_BYTES",
    "DEBOUNCE_MS",
    "MAX_WORKERS",
    "ROW_INDEX_NAME",
    "LOG_LEVEL",
    "PARQUET_SUFFIXES",
    "FAILED_RANGES_KEPT",
]

# Rows fetched above and below the visible viewport.
PREFETCH_MARGIN: int = 200

# Memory budget for materialized windows held by the cache.
CACHE_BUDGET_BYTES: int = 64 * 1024 * 1024

# Quiet period after the last viewport change before a fetch is issued.
DEBOUNCE_MS: int = 40

# Worker threads used for metadata probes and partition scans.
MAX_WORKERS: int = 4

# Name of the synthetic global row index column ("" disables it).
ROW_INDEX_NAME: str = "Row Index"

LOG_LEVEL: str = "WARNING"

PARQUET_SUFFIXES: tuple[str, ...] = (".parquet", ".pq")

# Failed ranges remembered by the cache for state(); oldest are forgotten first.
FAILED_RANGES_KEPT: int = 64
