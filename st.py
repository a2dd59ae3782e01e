"""
St: a decorator over LazyCollection.

Adds index-aware steps, null/blank-tolerant flattening, last-element lookups,
reversal and aggregate exports on top of the engine, while keeping its lazy,
single-use, optionally parallel evaluation.

Indexed operations (`filter_idx`, `map_idx`, `flat_idx`, `for_each_idx`,
`find_first_idx`, `find_last_idx`) report 0-based positions only while the
pipeline is sequential. In parallel mode every position is NOT_FOUND_INDEX
(-1): no ordering is safe to expose across worker threads.
"""

import functools
import itertools
import logging
import re
from typing import Any, Callable, Dict, Generic, Iterable, Iterator, List, Optional, Set, TypeVar

import collectors
from collectors import Collector
from functions import identity
from lazy import LazyCollection
from models import BuilderState, EngineSettings, ExecutionMode
from op import Op
from utils import NOT_FOUND_INDEX, IllegalStateError, require_callable

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')

_UNSET = object()


class IndexTracker:
    """Per-call position source: a counter while sequential, the sentinel while parallel."""

    def __init__(self, parallel: bool):
        self.mode = ExecutionMode.PARALLEL if parallel else ExecutionMode.SEQUENTIAL
        self._counter = itertools.count()

    def next_index(self) -> int:
        if self.mode is ExecutionMode.PARALLEL:
            return NOT_FOUND_INDEX
        return next(self._counter)


def _unfold(seed, next_fn, has_next=None):
    t = seed
    while has_next is None or has_next(t):
        yield t
        t = next_fn(t)


def _supply(supplier):
    while True:
        yield supplier()


def _found(item) -> Op:
    """Op for a lookup result; _UNSET means the sequence had no such element."""
    return Op.empty() if item is _UNSET else Op.of_element(item)


def _to_key(comparator, key):
    if comparator is not None:
        return functools.cmp_to_key(comparator)
    return key


class St(Generic[T]):
    """A lazy, single-use sequence owning exactly one LazyCollection."""

    def __init__(self, source: LazyCollection):
        if not isinstance(source, LazyCollection):
            raise TypeError(f"St wraps a LazyCollection, got {type(source).__name__}")
        self._source = source

    # --------- construction ----------
    @staticmethod
    def builder() -> "StBuilder":
        return StBuilder()

    @classmethod
    def empty(cls) -> "St[T]":
        return cls(LazyCollection(()))

    @classmethod
    def of(cls, *values: T) -> "St[T]":
        """A sequence over the given values, in order. No values gives an empty sequence."""
        return cls(LazyCollection(values)) if values else cls.empty()

    @classmethod
    def of_iterable(cls, iterable: Optional[Iterable[T]], parallel: bool = False,
                    settings: Optional[EngineSettings] = None) -> "St[T]":
        """A sequence over an iterable. None or an empty collection gives an empty sequence."""
        return (Op.of_nullable(iterable)
                .map(lambda it: cls(LazyCollection(it, parallel=parallel, settings=settings)))
                .or_else_get(cls.empty))

    @classmethod
    def iterate(cls, seed: T, next_fn: Callable[[T], T],
                has_next: Optional[Callable[[T], bool]] = None) -> "St[T]":
        """Unfold seed, next_fn(seed), ... forever, or while has_next holds.

        has_next is checked before each element is emitted; the sequence ends
        the first time it fails, so a failing seed gives an empty sequence.
        """
        require_callable(next_fn, "next_fn")
        if has_next is not None:
            require_callable(has_next, "has_next")
        return cls(LazyCollection(_unfold(seed, next_fn, has_next)))

    @classmethod
    def generate(cls, supplier: Callable[[], T]) -> "St[T]":
        """An infinite sequence of supplier() results; bound it with limit()."""
        require_callable(supplier, "supplier")
        return cls(LazyCollection(_supply(supplier)))

    @classmethod
    def concat(cls, first: "St[T]", second: "St[T]") -> "St[T]":
        return cls(LazyCollection.concat(first._source, second._source))

    @classmethod
    def split(cls, text: Optional[str], pattern: str) -> "St[str]":
        """Split text on a regex. Trailing empty strings are dropped; blank text gives nothing.

        Group captures are not returned, and a zero-width match at the start
        does not produce a leading empty piece.
        """
        separator = re.compile(pattern)

        def parts(s):
            pieces = []
            start = 0
            for match in separator.finditer(s):
                if match.end() == 0:
                    continue
                pieces.append(s[start:match.start()])
                start = match.end()
            pieces.append(s[start:])
            while pieces and pieces[-1] == "":
                pieces.pop()
            return cls.of(*pieces)

        return Op.of_nullable(text).map(str).map(parts).or_else_get(cls.empty)

    # --------- filtering ----------
    def filter(self, fn: Callable[[T], Any], value: Any = _UNSET) -> "St[T]":
        """Keep elements where fn holds, or, given a value, where fn(element) == value.

        In the second form None and blank/empty derived values count as absent,
        so filter(fn, None) keeps elements with no derived value.
        """
        if value is _UNSET:
            return St(self._source.filter(fn))
        require_callable(fn, "mapper")
        return St(self._source.filter(lambda item: Op.of_nullable(item).map(fn).get() == value))

    def filter_idx(self, predicate: Callable[[T, int], bool]) -> "St[T]":
        require_callable(predicate, "predicate")
        tracker = self._index_tracker()
        return self.filter(lambda e: predicate(e, tracker.next_index()))

    def non_null(self) -> "St[T]":
        return self.filter(lambda e: e is not None)

    # --------- mapping ----------
    def map(self, mapper: Callable[[T], R]) -> "St[R]":
        return St(self._source.map(mapper))

    def map_idx(self, mapper: Callable[[T, int], R]) -> "St[R]":
        require_callable(mapper, "mapper")
        tracker = self._index_tracker()
        return self.map(lambda e: mapper(e, tracker.next_index()))

    def map_to_int(self, mapper: Callable[[T], Any] = identity) -> "St[int]":
        require_callable(mapper, "mapper")
        return self.map(lambda e: int(mapper(e)))

    def map_to_float(self, mapper: Callable[[T], Any] = identity) -> "St[float]":
        require_callable(mapper, "mapper")
        return self.map(lambda e: float(mapper(e)))

    def flat(self, mapper: Callable[[T], Optional[Iterable[R]]]) -> "St[R]":
        """Flatten per-element iterables; a None or empty result contributes nothing."""
        require_callable(mapper, "mapper")
        return self.flat_map(
            lambda e: Op.of_nullable(e).map(mapper).map(St.of_iterable).or_else_get(St.empty))

    def flat_map(self, mapper: Callable[[T], Any]) -> "St[R]":
        """Flatten the nested sequence (St, LazyCollection or iterable) each element maps to."""
        require_callable(mapper, "mapper")
        return St(self._source.flat_map(mapper))

    def flat_idx(self, mapper: Callable[[T, int], Any]) -> "St[R]":
        require_callable(mapper, "mapper")
        tracker = self._index_tracker()
        return self.flat_map(lambda e: mapper(e, tracker.next_index()))

    def map_multi(self, mapper: Callable[[T, Callable[[R], None]], None]) -> "St[R]":
        """mapper(element, emit) may call emit any number of times."""
        require_callable(mapper, "mapper")

        def expand(e):
            buffer = St.builder()
            mapper(e, buffer.accept)
            return buffer.build()

        return self.flat_map(expand)

    # --------- other intermediate steps ----------
    def distinct(self) -> "St[T]":
        return St(self._source.distinct())

    def sorted(self, comparator: Optional[Callable[[T, T], int]] = None, *,
               key: Optional[Callable[[T], Any]] = None, reverse: bool = False) -> "St[T]":
        """Stable sort, by natural order, a cmp-style comparator or a key function."""
        return St(self._source.sorted(key=_to_key(comparator, key), reverse=reverse))

    def peek(self, action: Callable[[T], None]) -> "St[T]":
        return St(self._source.peek(action))

    def println(self) -> "St[T]":
        return self.peek(print)

    def limit(self, max_size: int) -> "St[T]":
        return St(self._source.take(max_size))

    def skip(self, n: int) -> "St[T]":
        return St(self._source.skip(n))

    def batch(self, size: int) -> "St[tuple]":
        """Group consecutive elements into tuples of up to size elements."""
        return St(self._source.batch(size))

    def unordered(self) -> "St[T]":
        return St(self._source.unordered())

    def reverse(self) -> "St[T]":
        """Reverse the sequence. Unlike every other step this one evaluates the whole
        pipeline up front and buffers it; the result keeps the current parallel-ness."""
        parallel = self.is_parallel()
        items = self._source.to_list()
        items.reverse()
        return St.of_iterable(items, parallel=parallel, settings=self._source.settings)

    # --------- execution mode & lifecycle ----------
    def sequential(self) -> "St[T]":
        self._source.sequential()
        return self

    def parallel(self) -> "St[T]":
        self._source.parallel()
        return self

    def is_parallel(self) -> bool:
        return self._source.is_parallel()

    def on_close(self, handler: Callable[[], None]) -> "St[T]":
        self._source.on_close(handler)
        return self

    def close(self) -> None:
        self._source.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # --------- terminal operations ----------
    def for_each(self, action: Callable[[T], None]) -> None:
        """Run action on every element; concurrently and in no fixed order when parallel."""
        self._source.for_each(action)

    def for_each_ordered(self, action: Callable[[T], None]) -> None:
        require_callable(action, "action")
        for item in self._source:
            action(item)

    def for_each_idx(self, action: Callable[[T, int], None]) -> None:
        require_callable(action, "action")
        tracker = self._index_tracker()
        self._source.for_each(lambda e: action(e, tracker.next_index()))

    def to_list(self) -> List[T]:
        return self._source.to_list()

    def to_tuple(self) -> tuple:
        return tuple(self._source)

    def reduce(self, accumulator: Callable, identity: Any = _UNSET,
               combiner: Optional[Callable] = None):
        """Fold the sequence.

        Without identity the result is an Op (empty for an empty sequence);
        with identity the folded value itself is returned. A combiner merges
        per-batch partial results in parallel mode.
        """
        require_callable(accumulator, "accumulator")
        if identity is not _UNSET:
            return self._source.reduce(accumulator, identity, combiner)

        def step(acc, item):
            return item if acc is _UNSET else accumulator(acc, item)

        result = self._source.reduce(step, _UNSET)
        return _found(result)

    def collect(self, collector, accumulator: Optional[Callable] = None,
                combiner: Optional[Callable] = None):
        """collect(Collector) or collect(supplier, accumulator, combiner)."""
        return self._source.collect(collector, accumulator, combiner)

    def min(self, comparator: Optional[Callable[[T, T], int]] = None, *,
            key: Optional[Callable[[T], Any]] = None) -> Op[T]:
        return _found(self._source.min(key=_to_key(comparator, key), default=_UNSET))

    def max(self, comparator: Optional[Callable[[T, T], int]] = None, *,
            key: Optional[Callable[[T], Any]] = None) -> Op[T]:
        return _found(self._source.max(key=_to_key(comparator, key), default=_UNSET))

    def count(self) -> int:
        return self._source.count()

    def sum(self, start=0):
        return self._source.sum(start)

    def any_match(self, predicate: Callable[[T], bool]) -> bool:
        return self._source.any(require_callable(predicate, "predicate"))

    def all_match(self, predicate: Callable[[T], bool]) -> bool:
        return self._source.all(require_callable(predicate, "predicate"))

    def none_match(self, predicate: Callable[[T], bool]) -> bool:
        return not self.any_match(predicate)

    def find_first(self, predicate: Optional[Callable[[T], bool]] = None) -> Op[T]:
        if predicate is None:
            return _found(self._source.first(_UNSET))
        return _found(self._source.filter(require_callable(predicate, "predicate")).first(_UNSET))

    def find_any(self) -> Op[T]:
        return self.find_first()

    def find_first_idx(self, predicate: Callable[[T], bool]) -> int:
        """Position of the first match, or -1 when nothing matches or the pipeline is parallel."""
        require_callable(predicate, "predicate")
        if self.is_parallel():
            return NOT_FOUND_INDEX
        for index, item in enumerate(self._source):
            if predicate(item):
                return index
        return NOT_FOUND_INDEX

    def find_last(self, predicate: Optional[Callable[[T], bool]] = None) -> Op[T]:
        if predicate is not None:
            require_callable(predicate, "predicate")
            if self.is_parallel():
                return self.filter(predicate).find_last()
            last = _UNSET
            for item in self._source:
                if predicate(item):
                    last = item
            return _found(last)
        if self.is_parallel():
            items = self._source.to_list()
            return _found(items[-1]) if items else Op.empty()
        return _found(self._source.last(_UNSET))

    def find_last_idx(self, predicate: Callable[[T], bool]) -> int:
        require_callable(predicate, "predicate")
        if self.is_parallel():
            return NOT_FOUND_INDEX
        holder = [NOT_FOUND_INDEX]

        def track(e, i):
            if predicate(e):
                holder[0] = i

        self.for_each_idx(track)
        return holder[0]

    def iterator(self) -> Iterator[T]:
        return iter(self._source)

    def __iter__(self) -> Iterator[T]:
        return iter(self._source)

    # --------- aggregate exports ----------
    def to_set(self) -> Set[T]:
        return self.collect(collectors.to_set())

    def to_coll(self, factory: Callable[[], Any]):
        require_callable(factory, "factory")
        return self.collect(collectors.to_collection(factory))

    def to_map(self, key_mapper: Callable[[T], Any], value_mapper: Callable[[T], Any] = identity,
               merge: Optional[Callable[[Any, Any], Any]] = None,
               map_factory: Callable[[], Dict] = dict) -> Dict:
        """Build a mapping; on duplicate keys merge(old, new) decides, by default the later value wins."""
        require_callable(key_mapper, "key_mapper")
        require_callable(value_mapper, "value_mapper")
        return self.collect(collectors.to_dict(key_mapper, value_mapper, merge, map_factory))

    def group(self, classifier: Callable[[T], Any], downstream: Optional[Collector] = None,
              map_factory: Callable[[], Dict] = dict) -> Dict:
        require_callable(classifier, "classifier")
        return self.collect(collectors.grouping_by(classifier, downstream, map_factory))

    def to_zip(self, other: Optional[Iterable[R]]) -> Dict[T, Optional[R]]:
        """Map each element to the next item of other; once other runs out the value is None."""
        values = Op.of_nullable(other).map(iter).or_else_get(lambda: iter(()))
        if self.is_parallel():
            keys = self._source.to_list()
            return {key: next(values, None) for key in keys}
        return self.to_map(identity, lambda e: next(values, None))

    def join(self, delimiter: str = "", prefix: str = "", suffix: str = "") -> str:
        return self.map(str).collect(collectors.joining(delimiter, prefix, suffix))

    # --------- helpers ----------
    def _index_tracker(self) -> IndexTracker:
        return IndexTracker(self.is_parallel())

    def __repr__(self) -> str:
        return f"St(mode={self._source.mode.value})"


class StBuilder(Generic[T]):
    """Accumulates elements, then finalizes them into a St exactly once."""

    def __init__(self):
        self._items: List[T] = []
        self.state = BuilderState.OPEN

    def accept(self, item: T) -> None:
        if self.state is not BuilderState.OPEN:
            raise IllegalStateError("builder has already been built")
        self._items.append(item)

    def add(self, item: T) -> "StBuilder[T]":
        self.accept(item)
        return self

    def build(self) -> St[T]:
        if self.state is not BuilderState.OPEN:
            raise IllegalStateError("builder has already been built")
        self.state = BuilderState.BUILT
        logger.debug(f"Builder finalized with {len(self._items)} elements")
        return St(LazyCollection(tuple(self._items)))
