"""
Filesystem helpers for tablr.io (file protocol baseline).

Responsibilities
- Expand user-supplied paths (files and directories) into a de-duplicated list of Parquet
  files.
- Provide the deterministic partition ordering used by the catalog.

Ordering
- Partitions are ordered by natural_key() over the full normalized path: digit runs compare
  numerically and text compares case-folded. Hive-style directories therefore sort
  key=2 before key=10, and file_2.parquet before file_10.parquet. The key depends only on
  the path, so reloading the same file set reproduces the same global row order.

Import DAG discipline
- stdlib + tablr.core only.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable

from tablr.core.constants import PARQUET_SUFFIXES

_DIGITS = re.compile(r"(\d+)")


def exists(path: str) -> bool:
    """Return True if path exists."""
    return os.path.exists(path)


def file_size(path: str) -> int:
    """Size of a file in bytes (raises OSError if it is gone)."""
    return int(os.path.getsize(path))


def is_parquet(path: str) -> bool:
    """
    Check if a path appears to be a parquet file by extension.

    Args:
        path (str): File path.

    Returns:
        bool: True if path ends with ".parquet" or ".pq" (case-insensitive).
    """
    return path.lower().endswith(PARQUET_SUFFIXES)


def walk_parquet_files(root: str) -> list[str]:
    """
    Recursively collect all Parquet files under a root directory.

    Args:
        root (str): Directory to walk.

    Returns:
        list[str]: Full paths to parquet files found beneath root. Hidden entries
        (names starting with "." or "_", e.g. _SUCCESS or .crc files) are skipped.
    """
    out: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if not d.startswith((".", "_"))]
        for name in filenames:
            if name.startswith((".", "_")):
                continue
            if is_parquet(name):
                out.append(os.path.join(dirpath, name))
    return out


def natural_key(path: str) -> tuple[tuple[int, int | str], ...]:
    """
    Sort key comparing digit runs numerically and text case-insensitively.

    Examples:
        >>> sorted(["p=10/a.parquet", "p=2/a.parquet"], key=natural_key)
        ['p=2/a.parquet', 'p=10/a.parquet']
    """
    norm = os.path.normpath(path).replace(os.sep, "/")
    key: list[tuple[int, int | str]] = []
    for token in _DIGITS.split(norm):
        if not token:
            continue
        if token.isdigit():
            key.append((0, int(token)))
        else:
            key.append((1, token.casefold()))
    return tuple(key)


def expand_paths(paths: Iterable[str | os.PathLike[str]]) -> list[str]:
    """
    Expand files and directories into a sorted, de-duplicated list of file paths.

    Args:
        paths (Iterable[str | PathLike]): Files and/or directories. Directories expand to
            the Parquet files beneath them; explicit file paths are kept as given even when
            they lack a Parquet extension or do not exist (the catalog reports those).

    Returns:
        list[str]: Absolute paths ordered by natural_key().
    """
    seen: set[str] = set()
    out: list[str] = []
    for raw in paths:
        p = os.path.abspath(os.fspath(raw))
        found = walk_parquet_files(p) if os.path.isdir(p) else [p]
        for f in found:
            if f not in seen:
                seen.add(f)
                out.append(f)
    return sorted(out, key=natural_key)
