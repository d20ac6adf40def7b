"""
Configuration for the tablr viewer.

Defines ViewerSettings, a frozen dataclass carrying the knobs consumed (not owned) by the
core: prefetch margin, cache memory budget, debounce interval, worker count, the synthetic
row index column name, and the log level for the app shell.

Source of truth
- tablr.core.constants provides every default.

Import DAG discipline
- Depends only on stdlib and tablr.core.
- Does not import tablr.view or app.

Notes
- Precedence is env > TOML > defaults (see ViewerSettings.load).
- Values are validated with ViewerSettings.validate(); loaders skip unparsable values and
  keep the previous layer's value instead of raising.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from tablr.core.constants import CACHE_BUDGET_BYTES as CORE_CACHE_BUDGET_BYTES
from tablr.core.constants import DEBOUNCE_MS as CORE_DEBOUNCE_MS
from tablr.core.constants import LOG_LEVEL as CORE_LOG_LEVEL
from tablr.core.constants import MAX_WORKERS as CORE_MAX_WORKERS
from tablr.core.constants import PREFETCH_MARGIN as CORE_PREFETCH_MARGIN
from tablr.core.constants import ROW_INDEX_NAME as CORE_ROW_INDEX_NAME
from tablr.core.errors import ConfigError

_INT_KEYS = ("prefetch_margin", "cache_budget_bytes", "debounce_ms", "max_workers")
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class ViewerSettings:
    """
    Runtime settings for the viewer core.

    Attributes:
        prefetch_margin (int): Rows fetched above and below the viewport (>= 0).
        cache_budget_bytes (int): Memory budget for cached windows (>= 1).
        debounce_ms (int): Quiet period before a viewport change triggers a fetch (>= 0).
        max_workers (int): Worker threads for metadata probes and partition scans (>= 1).
        row_index_name (str): Name of the synthetic global row index column; "" disables it.
        log_level (str): Level passed to tablr.core.logging.setup_logging by the app shell.

    Examples:
        >>> from tablr.io.config import ViewerSettings
        >>> ViewerSettings(prefetch_margin=50).debounce_seconds
        0.04
    """

    prefetch_margin: int = CORE_PREFETCH_MARGIN
    cache_budget_bytes: int = CORE_CACHE_BUDGET_BYTES
    debounce_ms: int = CORE_DEBOUNCE_MS
    max_workers: int = CORE_MAX_WORKERS
    row_index_name: str = CORE_ROW_INDEX_NAME
    log_level: str = CORE_LOG_LEVEL

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    def validate(self) -> ViewerSettings:
        """
        Check value ranges and return self.

        Raises:
            ConfigError: On a negative margin/debounce, a budget or worker count below 1,
                or an unknown log level.
        """
        if self.prefetch_margin < 0:
            raise ConfigError(f"prefetch_margin must be >= 0, got {self.prefetch_margin}")
        if self.cache_budget_bytes < 1:
            raise ConfigError(f"cache_budget_bytes must be >= 1, got {self.cache_budget_bytes}")
        if self.debounce_ms < 0:
            raise ConfigError(f"debounce_ms must be >= 0, got {self.debounce_ms}")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigError(f"unknown log_level {self.log_level!r}")
        return self

    # Configuration loaders (env/TOML) with precedence: env > TOML > defaults.

    @classmethod
    def _apply_mapping(cls, base: ViewerSettings, cfg: dict[str, Any] | None) -> ViewerSettings:
        """Apply a loose config mapping onto ViewerSettings, returning a new instance."""
        if not isinstance(cfg, dict):
            return base

        s = base
        for key in _INT_KEYS:
            if key in cfg:
                try:
                    s = replace(s, **{key: int(cfg[key])})
                except (TypeError, ValueError):
                    pass

        if "row_index_name" in cfg and isinstance(cfg["row_index_name"], str):
            s = replace(s, row_index_name=cfg["row_index_name"])

        if "log_level" in cfg and isinstance(cfg["log_level"], str):
            level = cfg["log_level"].strip().upper()
            if level in _LOG_LEVELS:
                s = replace(s, log_level=level)

        return s

    @classmethod
    def from_env(
        cls, base: ViewerSettings | None = None, prefix: str = "TABLR_"
    ) -> ViewerSettings:
        """
        Build ViewerSettings from environment variables. Precedence is env > base > defaults.

        Recognized variables:
            - TABLR_PREFETCH_MARGIN
            - TABLR_CACHE_BUDGET_BYTES
            - TABLR_DEBOUNCE_MS
            - TABLR_MAX_WORKERS
            - TABLR_ROW_INDEX_NAME (set to an empty string to disable the column)
            - TABLR_LOG_LEVEL
        """
        s = base or cls()
        mapping: dict[str, Any] = {}
        for key in (*_INT_KEYS, "log_level"):
            v = os.getenv(prefix + key.upper())
            if v:
                mapping[key] = v
        v = os.getenv(prefix + "ROW_INDEX_NAME")
        if v is not None:
            mapping["row_index_name"] = v
        return cls._apply_mapping(s, mapping)

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str] | None = None) -> ViewerSettings:
        """
        Build ViewerSettings from a TOML file.

        Search order when `path` is None:
            1) ./tablr.toml (with either a [viewer] table or top-level keys)
            2) ./pyproject.toml under [tool.tablr]

        Returns defaults if no file is present or the file cannot be parsed.
        """
        s = cls()

        def _load_toml(p: Path) -> dict[str, Any] | None:
            try:
                with p.open("rb") as fh:
                    return tomllib.load(fh)
            except (OSError, tomllib.TOMLDecodeError):
                return None

        cand: list[Path] = []
        if path is not None:
            cand.append(Path(path))
        else:
            cand.append(Path.cwd() / "tablr.toml")
            cand.append(Path.cwd() / "pyproject.toml")

        cfg: dict[str, Any] | None = None
        for p in cand:
            if not p.exists():
                continue
            data = _load_toml(p)
            if not isinstance(data, dict):
                continue
            if p.name == "pyproject.toml":
                tool = data.get("tool", {})
                cfg = tool.get("tablr") if isinstance(tool, dict) else None
            elif isinstance(data.get("viewer"), dict):
                cfg = data["viewer"]
            else:
                cfg = data
            if cfg:
                break

        return cls._apply_mapping(s, cfg)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> ViewerSettings:
        """
        Load ViewerSettings applying precedence: environment > TOML > defaults.

        Args:
            path: Optional explicit TOML path. If None, search tablr.toml then pyproject.toml.

        Returns:
            ViewerSettings: Validated settings.

        Raises:
            ConfigError: If the merged values are out of range.
        """
        s = cls.from_toml(path)
        s = cls.from_env(base=s)
        return s.validate()
