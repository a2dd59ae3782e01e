import pytest

from lazy import LazyCollection
from st import St
from utils import IllegalStateError


class TestConstruction:
    """Test every way of creating a St"""

    def test_empty_and_of(self):
        """empty(), single value and fixed values"""
        assert St.empty().to_list() == []
        assert St.of().to_list() == []
        assert St.of(1).to_list() == [1]
        assert St.of(1, 2, 3).to_list() == [1, 2, 3]
        assert St.of([1, 2]).to_list() == [[1, 2]], "A single list is a single element"

    def test_of_iterable(self):
        """Iterables are iterated; None and empty collections give empty sequences"""
        assert St.of_iterable([3, 4]).to_list() == [3, 4]
        assert St.of_iterable(x * 2 for x in range(3)).to_list() == [0, 2, 4]
        assert St.of_iterable(None).to_list() == []
        assert St.of_iterable([]).to_list() == []
        assert not St.of_iterable([1]).is_parallel()
        assert St.of_iterable([1], parallel=True).is_parallel()

    def test_iterate_unbounded(self):
        """The one-function unfold is infinite until limited"""
        result = St.iterate(1, lambda x: x * 2).limit(5).to_list()
        assert result == [1, 2, 4, 8, 16], f"Expected powers of two, got {result}"

    def test_iterate_bounded(self):
        """has_next is checked before each element, stopping at the first failure"""
        result = St.iterate(0, lambda x: x + 3, has_next=lambda x: x < 10).to_list()
        assert result == [0, 3, 6, 9], f"Expected [0, 3, 6, 9], got {result}"
        assert St.iterate(100, lambda x: x + 1, has_next=lambda x: x < 10).to_list() == []

    def test_iterate_bounded_stops_at_first_failure(self):
        """Elements after the first failing one are never produced"""
        values = [1, 2, -1, 3]
        result = St.iterate(0, lambda i: i + 1, has_next=lambda i: i < len(values) and values[i] > 0).to_list()
        assert result == [0, 1], f"Expected [0, 1], got {result}"

    def test_generate(self):
        """generate() is infinite and lazy"""
        counter = iter(range(1000))
        result = St.generate(lambda: next(counter)).limit(3).to_list()
        assert result == [0, 1, 2]
        assert next(counter) == 3, "Only the limited elements should be pulled"

    def test_concat(self):
        """concat chains lazily and combines the mode"""
        result = St.concat(St.of(1, 2), St.of(3)).to_list()
        assert result == [1, 2, 3]
        assert St.concat(St.of(1), St.of_iterable([2], parallel=True)).is_parallel()
        assert not St.concat(St.of(1), St.of(2)).is_parallel()

    def test_concat_closes_both(self):
        """Closing the concatenation closes both inputs in order"""
        closed = []
        a = St.of(1).on_close(lambda: closed.append("a"))
        b = St.of(2).on_close(lambda: closed.append("b"))
        joined = St.concat(a, b)
        joined.close()
        assert closed == ["a", "b"], f"Expected both inputs closed, got {closed}"

    def test_split(self):
        """Regex split drops trailing empty strings; blank text gives nothing"""
        assert St.split("a,b,,c", ",").to_list() == ["a", "b", "", "c"]
        assert St.split("a1b22c", r"\d+").to_list() == ["a", "b", "c"]
        assert St.split("a,b,,", ",").to_list() == ["a", "b"]
        assert St.split("   ", ",").to_list() == []
        assert St.split(None, ",").to_list() == []

    def test_split_ignores_group_captures(self):
        """Separator text matched by a group is not part of the result"""
        assert St.split("a,b", "(,)").to_list() == ["a", "b"]
        assert St.split("a1b22c", r"(\d)+").to_list() == ["a", "b", "c"]

    def test_split_zero_width_pattern(self):
        """An empty pattern splits between characters without a leading empty piece"""
        assert St.split("abc", "").to_list() == ["a", "b", "c"]
        assert St.split(",a", ",").to_list() == ["", "a"]

    def test_wraps_only_lazy_collections(self):
        """The constructor takes the engine object"""
        assert St(LazyCollection([1])).to_list() == [1]
        with pytest.raises(TypeError):
            St([1, 2])


class TestBuilder:
    """Test the two-state builder"""

    def test_build(self):
        """Accumulated elements come out in order"""
        builder = St.builder()
        builder.accept(1)
        builder.add(2).add(3)
        assert builder.build().to_list() == [1, 2, 3]

    def test_writes_after_build_fail(self):
        """The builder refuses writes and a second build once finalized"""
        builder = St.builder().add("x")
        builder.build()
        with pytest.raises(IllegalStateError):
            builder.accept("y")
        with pytest.raises(IllegalStateError):
            builder.add("y")
        with pytest.raises(IllegalStateError):
            builder.build()

    def test_state(self):
        """The builder reports its lifecycle"""
        from models import BuilderState

        builder = St.builder()
        assert builder.state is BuilderState.OPEN
        builder.build()
        assert builder.state is BuilderState.BUILT
