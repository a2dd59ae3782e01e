"""
Configuration for pytest to set up the import path and shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add the parent directory to Python path so we can import lazy, op, st, etc.
parent_dir = Path(__file__).parent.parent
sys.path.insert(0, str(parent_dir))

# Import after path setup
from models import EngineSettings, reset_settings


@pytest.fixture
def parallel_settings():
    """Small batches so parallel pipelines span several worker rounds."""
    return EngineSettings(max_workers=4, batch_size=2)


@pytest.fixture
def clean_env(monkeypatch):
    """Strip LAZYKIT_* variables and drop cached settings around a test."""
    for name in ("LAZYKIT_MAX_WORKERS", "LAZYKIT_BATCH_SIZE", "LAZYKIT_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield monkeypatch
    reset_settings()


@pytest.fixture
def call_log():
    """A list plus a recorder appending every call's argument to it."""
    calls = []

    def record(x):
        calls.append(x)

    return calls, record
