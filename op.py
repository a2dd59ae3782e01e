"""
Op: an optional value whose idea of "empty" looks at the content.

None, blank text, empty mappings and empty collections are all empty. An Op
built by `of_try` may instead carry the exception that stopped its supplier.
Lookups over a sequence use `of_element`, where only None is absent.
"""

import logging
from collections.abc import Sized
from typing import Any, Callable, Generic, Optional, TypeVar

from functions import chain_consumers
from utils import KitError, NoSuchElementError, is_blank_or_empty, require_callable

logger = logging.getLogger(__name__)

T = TypeVar('T')
U = TypeVar('U')


class Op(Generic[T]):
    """Zero or one value, or the failure that prevented producing one."""

    __slots__ = ("_value", "_failure", "_found")

    _EMPTY: "Op[Any]"

    def __init__(self, value: Optional[T] = None, failure: Optional[Exception] = None,
                 found: bool = False):
        self._value = value
        self._failure = failure
        # set for elements returned by a lookup: only None counts as absent
        self._found = found

    # --------- construction ----------
    @classmethod
    def empty(cls) -> "Op[T]":
        return cls._EMPTY

    @classmethod
    def of(cls, value: T) -> "Op[T]":
        """Wrap a value that must be present. None or blank/empty content raises KitError."""
        if value is None:
            raise KitError("Op.of requires a non-null value")
        if is_blank_or_empty(value):
            raise KitError(f"Op.of requires non-blank content, got {value!r}")
        return cls(value)

    @classmethod
    def of_nullable(cls, value: Optional[T]) -> "Op[T]":
        if is_blank_or_empty(value):
            return cls.empty()
        return cls.of(value)

    @classmethod
    def of_optional(cls, optional: Any) -> "Op[T]":
        """Unwrap another Op (or take a plain nullable value) and re-check its content."""
        if isinstance(optional, Op):
            optional = optional.get()
        return cls.of_nullable(optional)

    @classmethod
    def of_element(cls, value: Optional[T]) -> "Op[T]":
        """Wrap an element found in a sequence. Blank text or an empty collection is still present."""
        if value is None:
            return cls.empty()
        return cls(value, found=True)

    @classmethod
    def of_try(cls, supplier: Callable[[], T]) -> "Op[T]":
        """Call supplier; a raised exception is captured, never propagated."""
        try:
            return cls.of_nullable(supplier())
        except Exception as e:
            logger.debug(f"Op.of_try captured {type(e).__name__}: {e}")
            return cls(failure=e)

    # --------- queries ----------
    def get(self) -> Optional[T]:
        return self._value

    def get_failure(self) -> Optional[Exception]:
        return self._failure

    def is_failed(self) -> bool:
        return self._failure is not None

    def is_empty(self) -> bool:
        return not self.is_present()

    def is_present(self) -> bool:
        if self._found:
            return self._value is not None
        return not is_blank_or_empty(self._value)

    def __bool__(self) -> bool:
        return self.is_present()

    # --------- callbacks ----------
    def if_present(self, consumer: Callable[[T], None]) -> None:
        if self.is_present():
            consumer(self._value)

    def if_present_or_else(self, consumer: Callable[[T], None], else_action: Callable[[], None]) -> None:
        if self.is_present():
            consumer(self._value)
        else:
            else_action()

    # --------- transformations ----------
    def filter(self, predicate: Callable[[T], bool]) -> "Op[T]":
        require_callable(predicate, "predicate")
        return self if self.is_empty() or predicate(self._value) else Op.empty()

    def map(self, mapper: Callable[[T], U]) -> "Op[U]":
        require_callable(mapper, "mapper")
        return Op.empty() if self.is_empty() else Op.of_nullable(mapper(self._value))

    def flat_map(self, mapper: Callable[[T], "Op[U]"]) -> "Op[U]":
        require_callable(mapper, "mapper")
        if self.is_empty():
            return Op.empty()
        result = mapper(self._value)
        if not isinstance(result, Op):
            raise TypeError(f"flat_map mapper must return an Op, got {type(result).__name__}")
        return result

    def flatted_map(self, mapper: Callable[[T], Any]) -> "Op[U]":
        """Like flat_map, but mapper returns any nullable wrapper: an Op or a plain value/None."""
        require_callable(mapper, "mapper")
        return Op.empty() if self.is_empty() else Op.of_optional(mapper(self._value))

    def peek(self, action: Callable[[T], None]) -> "Op[T]":
        require_callable(action, "action")
        if self.is_empty():
            return Op.empty()
        action(self._value)
        return self

    def peeks(self, *actions: Callable[[T], None]) -> "Op[T]":
        return self.peek(chain_consumers(*actions))

    def or_(self, supplier: Callable[[], "Op[T]"]) -> "Op[T]":
        require_callable(supplier, "supplier")
        return self if self.is_present() else supplier()

    # --------- terminals ----------
    def or_else(self, other: T) -> T:
        return self._value if self.is_present() else other

    def or_else_get(self, supplier: Callable[[], T]) -> T:
        return self._value if self.is_present() else supplier()

    def or_else_run(self, action: Callable[[], Any]) -> Optional[T]:
        """Return the value, or run action and return None; the action's result is dropped."""
        if self.is_present():
            return self._value
        action()
        return None

    def fail_or_else(self, other: T) -> Optional[T]:
        """Return other when a failure was captured, else the held value (even if empty)."""
        return other if self.is_failed() else self._value

    def or_else_throw(self, failure_supplier: Optional[Callable[[], BaseException]] = None) -> T:
        if self.is_present():
            return self._value
        if failure_supplier is None:
            raise NoSuchElementError("No value present")
        raise failure_supplier()

    def stream(self):
        from st import St
        return St.empty() if self.is_empty() else St.of(self._value)

    # --------- value semantics ----------
    def __eq__(self, other) -> bool:
        if self is other:
            return True
        if not isinstance(other, Op):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        try:
            return hash(self._value)
        except TypeError:
            # unhashable content: equal values always share a length
            return len(self._value) if isinstance(self._value, Sized) else 0

    def __repr__(self) -> str:
        if self.is_failed():
            return f"Op.failed({self._failure!r})"
        if self.is_empty():
            return "Op.empty"
        return f"Op({self._value!r})"


Op._EMPTY = Op()
