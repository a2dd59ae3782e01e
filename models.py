"""Models for the lazy sequence toolkit (engine settings, execution enums)."""

import logging
import os
from enum import Enum
from functools import lru_cache
import psutil
from pydantic import BaseModel, Field, field_validator


class ExecutionMode(str, Enum):
    """How a pipeline evaluates its stateless steps."""
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


class BuilderState(str, Enum):
    """Lifecycle of an incremental sequence builder."""
    OPEN = "open"
    BUILT = "built"


def _default_workers() -> int:
    return psutil.cpu_count(logical=True) or 1


class EngineSettings(BaseModel):
    """Tunables for the lazy sequence engine."""
    max_workers: int = Field(
        default_factory=_default_workers,
        ge=1,
        description="Worker threads used by a parallel evaluation"
    )
    batch_size: int = Field(
        default=64,
        ge=1,
        description="Elements handed to the worker pool per round"
    )
    log_level: str = Field(
        default="INFO",
        description="Root logging level name"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Accept any standard logging level name, case-insensitive."""
        level = str(v).strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def load(cls) -> "EngineSettings":
        """Build settings from LAZYKIT_* environment variables."""
        values = {}
        max_workers = os.environ.get('LAZYKIT_MAX_WORKERS')
        if max_workers:
            values['max_workers'] = max_workers
        batch_size = os.environ.get('LAZYKIT_BATCH_SIZE')
        if batch_size:
            values['batch_size'] = batch_size
        log_level = os.environ.get('LAZYKIT_LOG_LEVEL')
        if log_level:
            values['log_level'] = log_level
        return cls(**values)


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    return EngineSettings.load()


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() reloads them."""
    get_settings.cache_clear()
