from __future__ import annotations

"""Settings loader backed by environment variables.

``get_settings`` reads the environment once and caches the resulting
``Settings`` object.  Tests may call ``reset_settings_cache`` to force a
reload after changing variables at runtime.
"""

from dataclasses import dataclass
import logging
import os
from functools import lru_cache


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


@dataclass
class Settings:
    log_level: str = "INFO"
    random_seed: int | None = None
    max_combinations: int = 1000
    min_sample_size: int = 10
    high_threshold: float = 0.7
    medium_threshold: float = 0.4
    worker_kind: str = "thread"
    max_workers: int = 4


@lru_cache()
def get_settings() -> Settings:
    """Return settings loaded from environment variables."""

    return Settings(
        log_level=os.getenv("WRE_LOG_LEVEL", "INFO").upper(),
        random_seed=_env_int("WRE_RANDOM_SEED", None),
        max_combinations=_env_int("WRE_MAX_COMBINATIONS", 1000),
        min_sample_size=_env_int("WRE_MIN_SAMPLE_SIZE", 10),
        high_threshold=_env_float("WRE_HIGH_THRESHOLD", 0.7),
        medium_threshold=_env_float("WRE_MEDIUM_THRESHOLD", 0.4),
        worker_kind=os.getenv("WRE_WORKER_KIND", "thread").lower(),
        max_workers=_env_int("WRE_MAX_WORKERS", 4),
    )


def reset_settings_cache() -> None:
    """Clear the settings cache (mainly for tests)."""

    get_settings.cache_clear()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the CLI and HTTP entry points."""

    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
