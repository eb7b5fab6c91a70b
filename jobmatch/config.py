"""
Runtime settings for jobmatch.

Values come from environment variables (optionally loaded from a .env
file by ``load_env``); CLI flags override them.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

from .errors import ValidationError

ENV_PREFIX = "JOBMATCH_"

DEFAULTS: Dict[str, str] = {
    "DB_PATH": "data/jobmatch.db",
    "LOG_LEVEL": "INFO",
    "LOG_DIR": "logs",
    "LOG_FILE": "true",
    "MAX_WORKERS": "4",
}

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    db_path: Path
    log_level: str
    log_dir: Path
    log_to_file: bool
    max_workers: int

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


def _get(env: Mapping[str, str], name: str) -> str:
    return env.get(ENV_PREFIX + name, DEFAULTS[name]).strip()


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValidationError(f"{ENV_PREFIX}{name} must be a boolean, got {raw!r}")


def _parse_positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValidationError(f"{ENV_PREFIX}{name} must be at least 1, got {value}")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build settings from environment variables.

    Args:
        env: Mapping to read from (default: os.environ)

    Raises:
        ValidationError: If a value cannot be parsed
    """
    env = os.environ if env is None else env

    level = _get(env, "LOG_LEVEL").upper()
    if level not in LOG_LEVELS:
        raise ValidationError(f"{ENV_PREFIX}LOG_LEVEL must be one of {sorted(LOG_LEVELS)}, got {level!r}")

    return Settings(
        db_path=Path(_get(env, "DB_PATH")),
        log_level=level,
        log_dir=Path(_get(env, "LOG_DIR")),
        log_to_file=_parse_bool("LOG_FILE", _get(env, "LOG_FILE")),
        max_workers=_parse_positive_int("MAX_WORKERS", _get(env, "MAX_WORKERS")),
    )
