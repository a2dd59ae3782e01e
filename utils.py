"""Shared error types, logging setup and the content-aware emptiness check."""

import logging
from collections.abc import Collection, Mapping
from functools import singledispatch
from typing import Any

from models import get_settings

# Configure logging
logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

# Index reported by indexed operations whenever no position can be given.
NOT_FOUND_INDEX = -1


class KitError(Exception):
    """Unchecked domain failure raised by the toolkit."""
    pass


class NoSuchElementError(KitError, LookupError):
    """Raised when a value is forced out of an empty optional."""
    pass


class IllegalStateError(KitError, RuntimeError):
    """Raised when a pipeline or builder is used in a state that forbids it."""
    pass


class VerifyError(ValueError):
    """Raised when an assertion helper rejects its input."""
    pass


@singledispatch
def is_blank_or_empty(value: Any) -> bool:
    """True when value is None, blank text, an empty mapping or an empty collection."""
    return value is None


@is_blank_or_empty.register
def _(value: str) -> bool:
    return not value.strip()


@is_blank_or_empty.register
def _(value: Mapping) -> bool:
    return len(value) == 0


@is_blank_or_empty.register
def _(value: Collection) -> bool:
    return len(value) == 0


def require_callable(fn, name: str = "function"):
    """Reject a missing callback up front instead of failing mid-pipeline."""
    if fn is None:
        raise TypeError(f"{name} must not be None")
    if not callable(fn):
        raise TypeError(f"{name} must be callable, got {type(fn).__name__}")
    return fn
