import functools
import itertools
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from assertions import Assert
from collectors import Collector
from models import EngineSettings, ExecutionMode, get_settings
from utils import IllegalStateError, require_callable

logger = logging.getLogger(__name__)

MISSING = object()

# Steps that look at one element at a time; fused and run on the worker pool in parallel mode.
STATELESS_OPS = frozenset({"map", "filter", "flat_map", "peek"})


@dataclass
class PipelineState:
    """Mode and lifecycle shared by every stage derived from one source."""
    settings: EngineSettings
    parallel: bool = False
    ordered: bool = True
    close_handlers: List[Callable[[], None]] = field(default_factory=list)
    closed: bool = False


def _chunks(it, size):
    bucket = []
    for x in it:
        bucket.append(x)
        if len(bucket) == size:
            yield bucket
            bucket = []
    if bucket:
        yield bucket


def _nested_items(inner):
    """Yield the items of a per-element result; nested pipelines are closed once drained."""
    if inner is None:
        return
    try:
        yield from inner
    finally:
        if hasattr(inner, "on_close"):
            inner.close()


class LazyCollection:
    """
    A chainable, lazy, single-use collection. Transformations are stored and
    applied only when you iterate. In parallel mode the stateless steps run on
    a thread pool, one batch of elements at a time.
    """
    def __init__(self, source, ops=None, state: Optional[PipelineState] = None,
                 parallel: bool = False, settings: Optional[EngineSettings] = None):
        self._source = source
        self._ops = ops or []          # sequence of ("op_name", callable/arg)
        self._state = state or PipelineState(settings or get_settings(), parallel=parallel)
        self._linked = False           # set once this stage has been transformed or consumed

    @classmethod
    def concat(cls, first: "LazyCollection", second: "LazyCollection") -> "LazyCollection":
        """Lazily chain two pipelines. Closing the result closes both inputs."""
        head = first._consume()
        tail = second._consume()
        state = PipelineState(
            first._state.settings,
            parallel=first.is_parallel() or second.is_parallel(),
            ordered=first._state.ordered and second._state.ordered,
        )

        def close_both():
            try:
                first._close_pipeline()
            finally:
                second._close_pipeline()

        state.close_handlers.append(close_both)
        return cls(itertools.chain(head, tail), state=state)

    # --------- chainable operators (lazy) ----------
    def map(self, fn):
        return self._with_op(("map", require_callable(fn, "mapper")))

    def filter(self, pred):
        return self._with_op(("filter", require_callable(pred, "predicate")))

    def flat_map(self, fn):
        return self._with_op(("flat_map", require_callable(fn, "mapper")))

    def peek(self, fn):
        return self._with_op(("peek", require_callable(fn, "action")))

    def distinct(self):
        return self._with_op(("distinct", None))

    def sorted(self, key=None, reverse=False):
        return self._with_op(("sorted", (key, reverse)))

    def skip(self, n):
        Assert.is_true(n >= 0, f"skip size must not be negative: {n}")
        return self._with_op(("skip", int(n)))

    def take(self, n):
        Assert.is_true(n >= 0, f"take size must not be negative: {n}")
        return self._with_op(("take", int(n)))

    def batch(self, size):
        Assert.is_true(size > 0, f"batch size must be positive: {size}")
        return self._with_op(("batch", int(size)))

    def unordered(self):
        c = self._with_op(None)
        c._state.ordered = False
        return c

    # --------- execution mode & lifecycle ----------
    def parallel(self):
        self._check_open()
        self._state.parallel = True
        return self

    def sequential(self):
        self._check_open()
        self._state.parallel = False
        return self

    def is_parallel(self) -> bool:
        return self._state.parallel

    @property
    def mode(self) -> ExecutionMode:
        return ExecutionMode.PARALLEL if self._state.parallel else ExecutionMode.SEQUENTIAL

    @property
    def settings(self) -> EngineSettings:
        return self._state.settings

    def on_close(self, handler):
        self._check_open()
        self._state.close_handlers.append(require_callable(handler, "close handler"))
        return self

    def close(self):
        """Run the close handlers once, in registration order. Closing again is a no-op."""
        self._close_pipeline()

    # --------- reducing operations (force evaluation) ----------
    def to_list(self):
        return list(self)

    def reduce(self, fn, initial=MISSING, combiner=None):
        """Apply a function of two arguments cumulatively to items, from left to right.

        With a combiner in parallel mode each batch is folded on a worker
        starting from `initial`, and the partial results are merged with it.
        """
        require_callable(fn, "accumulator")
        if initial is MISSING:
            return functools.reduce(fn, self)
        if combiner is None or not self._state.parallel:
            return functools.reduce(fn, self, initial)

        def fold(chunk):
            return functools.reduce(fn, chunk, initial)

        with self._executor() as executor:
            partials = list(executor.map(fold, _chunks(iter(self), self._state.settings.batch_size)))
        return functools.reduce(combiner, partials, initial)

    def collect(self, supplier, accumulator=None, combiner=None):
        """Mutable reduction, from a Collector or from (supplier, accumulator, combiner).

        In the three-argument form the combiner merges the right container
        into the left one in place, its return value is ignored.
        """
        if isinstance(supplier, Collector):
            collector = supplier
        else:
            require_callable(supplier, "supplier")
            require_callable(accumulator, "accumulator")
            merge = None
            if combiner is not None:
                require_callable(combiner, "combiner")

                def merge(left, right):
                    combiner(left, right)
                    return left
            collector = Collector(supplier, accumulator, merge)

        if not self._state.parallel or collector.combiner is None:
            container = collector.supplier()
            for item in self:
                collector.accumulator(container, item)
            return collector.finisher(container)

        def fill(chunk):
            container = collector.supplier()
            for item in chunk:
                collector.accumulator(container, item)
            return container

        with self._executor() as executor:
            partials = list(executor.map(fill, _chunks(iter(self), self._state.settings.batch_size)))
        container = functools.reduce(collector.combiner, partials) if partials else collector.supplier()
        return collector.finisher(container)

    def sum(self, start=0):
        """Return the sum of all elements"""
        total = start
        for item in self:
            total += item
        return total

    def count(self):
        """Return the count of elements"""
        count = 0
        for _ in self:
            count += 1
        return count

    def min(self, key=None, default=None):
        """Return the minimum element, or default if empty"""
        return min(self, key=key, default=default)

    def max(self, key=None, default=None):
        """Return the maximum element, or default if empty"""
        return max(self, key=key, default=default)

    def first(self, default=None):
        """Return the first element, or default if empty"""
        for item in self:
            return item
        return default

    def last(self, default=None):
        """Return the last element, or default if empty"""
        last_item = default
        for item in self:
            last_item = item
        return last_item

    def any(self, pred=None):
        """Return True if any element is truthy (or satisfies predicate)"""
        if pred is None:
            return any(self)
        else:
            return any(pred(x) for x in self)

    def all(self, pred=None):
        """Return True if all elements are truthy (or satisfy predicate)"""
        if pred is None:
            return all(self)
        else:
            return all(pred(x) for x in self)

    def find(self, pred):
        """Return the first element that satisfies the predicate, or None"""
        for item in self:
            if pred(item):
                return item
        return None

    def for_each(self, action):
        """Run action on every element; on worker threads when parallel."""
        require_callable(action, "action")
        if self._state.parallel:
            for _ in self.peek(action):
                pass
        else:
            for item in self:
                action(item)

    # --------- iterator protocol ----------
    def __iter__(self):
        return self._consume()

    def _evaluate(self):
        if self._state.parallel:
            yield from self._evaluate_parallel()
            return

        it = iter(self._source)
        for op, arg in self._ops:
            it = self._apply(op, arg, it)
        yield from it

    def _evaluate_parallel(self):
        settings = self._state.settings
        logger.debug(f"Parallel evaluation: {len(self._ops)} steps, "
                     f"{settings.max_workers} workers, batch size {settings.batch_size}")
        with self._executor() as executor:
            it = iter(self._source)
            pending = []
            for op, arg in self._ops:
                if op in STATELESS_OPS:
                    pending.append((op, arg))
                    continue
                if pending:
                    it = self._run_stage(executor, pending, it)
                    pending = []
                it = self._apply(op, arg, it)
            if pending:
                it = self._run_stage(executor, pending, it)
            yield from it
        logger.debug("Parallel evaluation finished")

    def _run_stage(self, executor, steps, it):
        """Apply a fused run of stateless steps to upstream items, batch by batch."""
        ordered = self._state.ordered

        def run_one(item):
            out = [item]
            for op, fn in steps:
                if op == "map":
                    out = [fn(x) for x in out]
                elif op == "filter":
                    out = [x for x in out if fn(x)]
                elif op == "flat_map":
                    out = [y for x in out for y in _nested_items(fn(x))]
                elif op == "peek":
                    for x in out:
                        fn(x)
            return out

        for chunk in _chunks(it, self._state.settings.batch_size):
            if ordered:
                results = executor.map(run_one, chunk)
            else:
                results = (f.result() for f in as_completed([executor.submit(run_one, x) for x in chunk]))
            for out in results:
                yield from out

    def _apply(self, op, arg, it):
        if op == "map":
            fn = arg
            return (fn(x) for x in it)
        elif op == "filter":
            pred = arg
            return (x for x in it if pred(x))
        elif op == "flat_map":
            fn = arg
            return (y for x in it for y in _nested_items(fn(x)))
        elif op == "peek":
            def _peek(gen, fn=arg):
                for x in gen:
                    fn(x)
                    yield x
            return _peek(it)
        elif op == "distinct":
            def _distinct(gen):
                seen = set()
                for x in gen:
                    if x not in seen:
                        seen.add(x)
                        yield x
            return _distinct(it)
        elif op == "sorted":
            key, reverse = arg
            def _sorted(gen):
                yield from sorted(gen, key=key, reverse=reverse)
            return _sorted(it)
        elif op == "skip":
            k = arg
            def _skip(gen, k=k):
                skipped = 0
                for x in gen:
                    if skipped < k:
                        skipped += 1
                        continue
                    yield x
            return _skip(it)
        elif op == "take":
            n = arg
            def _take(gen, n=n):
                if n <= 0:
                    return
                taken = 0
                for x in gen:
                    yield x
                    taken += 1
                    if taken >= n:
                        return
            return _take(it)
        elif op == "batch":
            return (tuple(bucket) for bucket in _chunks(it, arg))
        else:
            raise ValueError(f"Unknown op: {op}")

    # --------- helpers ----------
    def _with_op(self, op_tuple):
        self._link()
        ops = self._ops + [op_tuple] if op_tuple is not None else list(self._ops)
        return LazyCollection(self._source, ops, self._state)

    def _consume(self):
        self._link()
        return self._evaluate()

    def _link(self):
        if self._linked or self._state.closed:
            raise IllegalStateError("stream has already been operated upon or closed")
        self._linked = True

    def _check_open(self):
        if self._state.closed:
            raise IllegalStateError("stream has already been closed")

    def _executor(self):
        return ThreadPoolExecutor(max_workers=self._state.settings.max_workers)

    def _close_pipeline(self):
        state = self._state
        if state.closed:
            return
        state.closed = True
        logger.debug(f"Closing pipeline with {len(state.close_handlers)} close handlers")
        errors = []
        for handler in state.close_handlers:
            try:
                handler()
            except Exception as e:
                errors.append(e)
        if errors:
            for extra in errors[1:]:
                logger.error(f"Close handler failed after an earlier failure: {extra}")
            raise errors[0]
