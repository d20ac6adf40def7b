from __future__ import annotations

import os
from pathlib import Path

from tablr.io.fs import expand_paths, is_parquet, natural_key, walk_parquet_files


def _touch(p: Path) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(b"")
    return p


def test_is_parquet_case_insensitive() -> None:
    assert is_parquet("a.parquet")
    assert is_parquet("A.PQ")
    assert not is_parquet("a.csv")


def test_natural_key_orders_digit_runs_numerically() -> None:
    names = ["part-10.parquet", "part-2.parquet", "Part-1.parquet"]
    assert sorted(names, key=natural_key) == [
        "Part-1.parquet",
        "part-2.parquet",
        "part-10.parquet",
    ]
    hive = ["day=10/a.parquet", "day=9/a.parquet"]
    assert sorted(hive, key=natural_key) == ["day=9/a.parquet", "day=10/a.parquet"]


def test_walk_skips_hidden_and_non_parquet(tmp_path: Path) -> None:
    keep = _touch(tmp_path / "d" / "x.parquet")
    _touch(tmp_path / "d" / "_SUCCESS")
    _touch(tmp_path / "d" / ".x.parquet.crc")
    _touch(tmp_path / "d" / "notes.txt")
    _touch(tmp_path / "_tmp" / "y.parquet")

    assert walk_parquet_files(str(tmp_path)) == [str(keep)]


def test_expand_paths_dedupes_and_sorts(tmp_path: Path) -> None:
    a = _touch(tmp_path / "ds" / "file_10.parquet")
    b = _touch(tmp_path / "ds" / "file_2.parquet")

    out = expand_paths([tmp_path / "ds", a, str(a)])

    assert out == [os.path.abspath(b), os.path.abspath(a)]


def test_expand_paths_keeps_explicit_missing_file(tmp_path: Path) -> None:
    missing = tmp_path / "nope.parquet"
    assert expand_paths([missing]) == [os.path.abspath(missing)]
