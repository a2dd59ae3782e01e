"""
Adapters for fallible callbacks.

Any plain callable may raise; `unchecked` gives it the toolkit's default
entry point, where every failure surfaces as a KitError chained to the
original exception. The remaining helpers compose callbacks left to right.
"""

import functools
from typing import Any, Callable

from utils import KitError, require_callable


def unchecked(fn: Callable) -> Callable:
    """Wrap fn so that any exception it raises is re-raised as KitError."""
    require_callable(fn, "fn")

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except KitError:
            raise
        except Exception as e:
            raise KitError(f"{getattr(fn, '__name__', 'callback')} failed: {e}") from e

    return wrapper


def identity(value: Any) -> Any:
    return value


def and_then(first: Callable, second: Callable) -> Callable:
    """Return a function applying `first` then feeding its result to `second`."""
    require_callable(first, "first")
    require_callable(second, "second")

    def composed(*args, **kwargs):
        return second(first(*args, **kwargs))

    return composed


def compose(outer: Callable, inner: Callable) -> Callable:
    """Return outer(inner(...)), the mirror of and_then."""
    return and_then(inner, outer)


def chain_consumers(*consumers: Callable) -> Callable:
    """Run each consumer on the same arguments, in order. No consumers is a no-op."""
    for consumer in consumers:
        require_callable(consumer, "consumer")

    def chained(*args, **kwargs) -> None:
        for consumer in consumers:
            consumer(*args, **kwargs)

    return chained
