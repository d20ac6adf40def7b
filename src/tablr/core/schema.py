"""
Schema reconciliation across partitions.

Purpose
- Unify the per-file Polars schemas of a partitioned dataset into one ordered schema.
- Allow safe widening (narrow int -> wide int, int -> float, Float32 -> Float64, Null -> any).
- Reject anything else with SchemaConflictError naming the offending column.

Checks performed
- Column sets must be identical across partitions (order may differ; the first partition's
  order wins).
- Dtypes must be equal or widenable according to widen_dtype().

Notes
- Depends only on polars and tablr.core.errors; performs no IO.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import polars as pl

from .errors import SchemaConflictError

__all__ = ["widen_dtype", "reconcile_schemas"]

Schema = Mapping[str, pl.DataType]

# Integer widths keyed by dtype; polars dtypes compare equal to their classes.
_SIGNED_BITS: dict[object, int] = {pl.Int8: 8, pl.Int16: 16, pl.Int32: 32, pl.Int64: 64}
_UNSIGNED_BITS: dict[object, int] = {pl.UInt8: 8, pl.UInt16: 16, pl.UInt32: 32, pl.UInt64: 64}
_SIGNED_BY_BITS = {bits: dtype for dtype, bits in _SIGNED_BITS.items()}
_UNSIGNED_BY_BITS = {bits: dtype for dtype, bits in _UNSIGNED_BITS.items()}


def _bits(dtype: pl.DataType, table: dict[object, int]) -> int | None:
    for key, bits in table.items():
        if dtype == key:
            return bits
    return None


def _is_float(dtype: pl.DataType) -> bool:
    return dtype == pl.Float32 or dtype == pl.Float64


def _is_integer(dtype: pl.DataType) -> bool:
    return _bits(dtype, _SIGNED_BITS) is not None or _bits(dtype, _UNSIGNED_BITS) is not None


def widen_dtype(left: pl.DataType, right: pl.DataType) -> pl.DataType | None:
    """
    Return the narrowest dtype both inputs can be cast to without loss, or None.

    Args:
        left (pl.DataType): Dtype already in the unified schema.
        right (pl.DataType): Dtype from the partition being merged.

    Returns:
        pl.DataType | None: Common dtype, or None when the pair is incompatible
        (e.g., Int64 vs String).

    Examples:
        >>> widen_dtype(pl.Int32, pl.Int64)
        Int64
        >>> widen_dtype(pl.Int64, pl.Float32)
        Float64
        >>> widen_dtype(pl.Int64, pl.String) is None
        True
    """
    if left == right:
        return left
    if left == pl.Null:
        return right
    if right == pl.Null:
        return left

    ls, rs = _bits(left, _SIGNED_BITS), _bits(right, _SIGNED_BITS)
    lu, ru = _bits(left, _UNSIGNED_BITS), _bits(right, _UNSIGNED_BITS)
    if ls is not None and rs is not None:
        return _SIGNED_BY_BITS[max(ls, rs)]
    if lu is not None and ru is not None:
        return _UNSIGNED_BY_BITS[max(lu, ru)]
    # Mixed signedness fits in a signed type one step wider than the unsigned side.
    if ls is not None and ru is not None:
        return _SIGNED_BY_BITS.get(max(ls, ru * 2))
    if lu is not None and rs is not None:
        return _SIGNED_BY_BITS.get(max(rs, lu * 2))

    if (_is_integer(left) or _is_float(left)) and (_is_integer(right) or _is_float(right)):
        return pl.Float64
    return None


def reconcile_schemas(schemas: Iterable[tuple[str, Schema]]) -> dict[str, pl.DataType]:
    """
    Fold per-partition schemas into one unified schema.

    Args:
        schemas (Iterable[tuple[str, Schema]]): (path, schema) pairs in partition order.

    Returns:
        dict[str, pl.DataType]: Unified column -> dtype mapping (first partition's order).
        Empty when no schemas are given.

    Raises:
        SchemaConflictError: A column is missing/extra in some partition or its dtype
            cannot be widened to a common type.
    """
    unified: dict[str, pl.DataType] = {}
    first = True
    for path, schema in schemas:
        if first:
            unified = dict(schema)
            first = False
            continue
        missing = [c for c in unified if c not in schema]
        if missing:
            raise SchemaConflictError(missing[0], path, expected="present", actual="missing")
        extras = [c for c in schema if c not in unified]
        if extras:
            raise SchemaConflictError(extras[0], path, expected="absent", actual="present")
        for col, dtype in schema.items():
            merged = widen_dtype(unified[col], dtype)
            if merged is None:
                raise SchemaConflictError(
                    col, path, expected=str(unified[col]), actual=str(dtype)
                )
            unified[col] = merged
    return unified
