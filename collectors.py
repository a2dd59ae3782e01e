"""
Mutable reduction recipes for LazyCollection.collect / St.collect.

A Collector bundles four callables:
    supplier()            -> new container
    accumulator(c, item)  -> folds one item into c (mutating it)
    combiner(left, right) -> merges right into left and returns the result
    finisher(c)           -> final value
Parallel evaluation builds one container per batch and merges them with the
combiner, so the combiner must not assume anything about batch boundaries.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from functions import identity


@dataclass(frozen=True)
class Collector:
    supplier: Callable[[], Any]
    accumulator: Callable[[Any, Any], None]
    combiner: Callable[[Any, Any], Any]
    finisher: Callable[[Any], Any] = identity


def _extend(left, right):
    left.extend(right)
    return left


def _update(left, right):
    left.update(right)
    return left


def to_list() -> Collector:
    return Collector(list, list.append, _extend)


def to_set() -> Collector:
    return Collector(set, set.add, _update)


def _add_to(container, item):
    adder = getattr(container, "append", None) or getattr(container, "add")
    adder(item)


def _merge_collections(left, right):
    for item in right:
        _add_to(left, item)
    return left


def to_collection(factory: Callable[[], Any]) -> Collector:
    """Collect into factory(); items go through append() or add()."""
    return Collector(factory, _add_to, _merge_collections)


def counting() -> Collector:
    def accumulate(box, _item):
        box[0] += 1

    def combine(left, right):
        left[0] += right[0]
        return left

    return Collector(lambda: [0], accumulate, combine, lambda box: box[0])


def summing(mapper: Callable[[Any], Any] = identity) -> Collector:
    def accumulate(box, item):
        box[0] += mapper(item)

    def combine(left, right):
        left[0] += right[0]
        return left

    return Collector(lambda: [0], accumulate, combine, lambda box: box[0])


def joining(delimiter: str = "", prefix: str = "", suffix: str = "") -> Collector:
    def accumulate(parts, item):
        parts.append(str(item))

    return Collector(list, accumulate, _extend,
                     lambda parts: f"{prefix}{delimiter.join(parts)}{suffix}")


def mapping(mapper: Callable[[Any], Any], downstream: Collector) -> Collector:
    """Adapt downstream to accept items after passing them through mapper."""
    def accumulate(container, item):
        downstream.accumulator(container, mapper(item))

    return Collector(downstream.supplier, accumulate, downstream.combiner, downstream.finisher)


def _keep_right(_left, right):
    return right


def to_dict(key_mapper: Callable[[Any], Any],
            value_mapper: Callable[[Any], Any] = identity,
            merge: Optional[Callable[[Any, Any], Any]] = None,
            map_factory: Callable[[], Any] = dict) -> Collector:
    """Collect into a mapping. Duplicate keys are merged; by default the later value wins."""
    merge = merge or _keep_right

    def put(target, key, value):
        if key in target:
            target[key] = merge(target[key], value)
        else:
            target[key] = value

    def accumulate(target, item):
        put(target, key_mapper(item), value_mapper(item))

    def combine(left, right):
        for key, value in right.items():
            put(left, key, value)
        return left

    return Collector(map_factory, accumulate, combine)


def grouping_by(classifier: Callable[[Any], Any],
                downstream: Optional[Collector] = None,
                map_factory: Callable[[], Any] = dict) -> Collector:
    """Group items by classifier(item), reducing each group with downstream (default: to_list)."""
    downstream = downstream or to_list()

    def accumulate(groups, item):
        key = classifier(item)
        if key not in groups:
            groups[key] = downstream.supplier()
        downstream.accumulator(groups[key], item)

    def combine(left, right):
        for key, container in right.items():
            if key in left:
                left[key] = downstream.combiner(left[key], container)
            else:
                left[key] = container
        return left

    def finish(groups):
        for key in list(groups):
            groups[key] = downstream.finisher(groups[key])
        return groups

    return Collector(map_factory, accumulate, combine, finish)
