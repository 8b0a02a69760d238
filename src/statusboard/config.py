from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import logging
import os
import yaml

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

def _expand(path: str) -> str:
    return os.path.expanduser(os.path.expandvars(path))

def _positive(value, key: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a number, got {value!r}") from None
    if number <= 0:
        raise ValueError(f"{key} must be positive, got {number}")
    return number

@dataclass(frozen=True)
class Config:
    raw: dict
    path: Path | None = None

    @property
    def fetch_timeout(self) -> float:
        return _positive(self.raw.get("scheduler", {}).get("fetch_timeout", 15), "scheduler.fetch_timeout")

    @property
    def reload_seconds(self) -> float:
        return _positive(self.raw.get("scheduler", {}).get("reload_seconds", 5), "scheduler.reload_seconds")

    @property
    def log_level(self) -> int:
        level = str(self.raw.get("logging", {}).get("level", "INFO")).upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unsupported log level {level!r}. Supported: {list(LOG_LEVELS)}")
        return getattr(logging, level)

    @property
    def log_file(self) -> Path | None:
        out = self.raw.get("logging", {}).get("file")
        return Path(_expand(str(out))) if out else None

    @property
    def store_path(self) -> Path:
        """Where the widget list lives: ``store.path``, else this config file."""
        out = self.raw.get("store", {}).get("path")
        if out:
            p = Path(_expand(str(out)))
            if not p.is_absolute() and self.path is not None:
                p = self.path.parent / p
            return p
        if self.path is None:
            raise ValueError("No store.path configured and config was not loaded from a file.")
        return self.path

def load_config(path: str | Path) -> Config:
    p = Path(_expand(str(path)))
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("config.yaml must contain a YAML mapping at top level.")
    return Config(raw=raw, path=p)
