"""Condition-to-exception helpers sharing the toolkit's notion of emptiness."""

from typing import Any, Callable, Optional, Union

from utils import VerifyError, is_blank_or_empty

ErrorSpec = Optional[Union[str, Callable[[], BaseException]]]


def _fail(error: ErrorSpec, default_message: str):
    if callable(error):
        raise error()
    raise VerifyError(error or default_message)


class Assert:
    """Static guards. `error` is a message or a zero-argument exception factory."""

    @staticmethod
    def is_true(expression: bool, error: ErrorSpec = None) -> None:
        if not expression:
            _fail(error, "The value must be true")

    @staticmethod
    def is_false(expression: bool, error: ErrorSpec = None) -> None:
        if expression:
            _fail(error, "The value must be false")

    @staticmethod
    def is_null(value: Any, error: ErrorSpec = None) -> None:
        """Pass for None and for blank text, empty mappings or empty collections."""
        if not is_blank_or_empty(value):
            _fail(error, "The value must be null")

    @staticmethod
    def non_null(value: Any, error: ErrorSpec = None) -> None:
        """Fail for None and for blank text, empty mappings or empty collections."""
        if is_blank_or_empty(value):
            _fail(error, "The value must be non null")
