import pytest
from st import St


class TestReductions:
    """Test reduction operations (reduce, sum, count, min/max, matching)"""

    def test_sum_reduction(self):
        """Test sum reduction operation"""
        assert St.of_iterable(range(1, 6)).sum() == 15
        assert St.of_iterable(range(5)).map(lambda x: x * 2).sum() == 20

    def test_count_reduction(self):
        """Test count reduction operation"""
        assert St.of_iterable(range(10)).count() == 10
        result = St.of_iterable(range(20)).filter(lambda x: x % 3 == 0).count()
        assert result == 7, f"Expected 7, got {result}"

    def test_reduce_without_identity_returns_op(self):
        """The accumulator-only form yields an Op, empty for an empty sequence"""
        assert St.of(1, 2, 3, 4).reduce(lambda a, b: a * b).get() == 24
        assert St.empty().reduce(lambda a, b: a + b).is_empty()
        assert St.of(7).reduce(lambda a, b: a + b).get() == 7

    def test_reduce_with_identity(self):
        """The identity forms return the folded value"""
        assert St.of(1, 2, 3).reduce(lambda a, b: a + b, 10) == 16
        assert St.empty().reduce(lambda a, b: a + b, 0) == 0
        assert St.of("a", "bb").reduce(lambda acc, s: acc + len(s), 0, lambda l, r: l + r) == 3

    def test_min_max(self):
        """min/max by natural order, comparator or key, as Op"""
        words = St.of_iterable
        assert words(["pear", "fig", "banana"]).min().get() == "banana"
        assert words(["pear", "fig", "banana"]).max(key=len).get() == "banana"
        assert words(["pear", "fig", "banana"]).min(lambda l, r: len(l) - len(r)).get() == "fig"
        assert St.empty().max().is_empty()

    def test_matching(self):
        """any/all/none match"""
        assert St.of(1, 2, 3).any_match(lambda x: x > 2)
        assert not St.of(1, 2, 3).all_match(lambda x: x > 2)
        assert St.of(1, 2, 3).none_match(lambda x: x > 5)
        assert St.empty().all_match(lambda x: False), "all_match is vacuously true on empty"

    def test_find_first(self):
        """find_first / find_any return Op"""
        assert St.of(4, 5, 6).find_first().get() == 4
        assert St.of(4, 5, 6).find_first(lambda x: x % 2 == 1).get() == 5
        assert St.empty().find_first().is_empty()
        assert St.of(9).find_any().get() == 9

    def test_lookups_keep_blank_elements(self):
        """A blank or empty element that was found is reported as present"""
        assert St.of([], [1]).find_first().is_present()
        assert St.of([], [1]).find_first().get() == []
        assert St.of("b", "").find_first(lambda s: s == "").is_present()
        assert St.of("", "b").min().get() == ""
        assert St.of("", "b").max(key=lambda s: -len(s)).get() == ""
        assert St.of("  ", "x").reduce(lambda a, b: a if len(a) > len(b) else b).get() == "  "

    def test_find_first_short_circuits(self, call_log):
        """find_first stops at the first match"""
        calls, record = call_log
        St.of_iterable(range(100)).peek(record).find_first(lambda x: x == 2)
        assert calls == [0, 1, 2], f"Expected three pulls, got {calls}"

    def test_to_list_and_tuple(self):
        assert St.of(1, 2).to_tuple() == (1, 2)
        assert St.of(1, 2).to_list() == [1, 2]

    def test_reduction_lazy_evaluation(self):
        """Test that reductions trigger lazy evaluation properly"""
        call_count = 0

        def track_calls(x):
            nonlocal call_count
            call_count += 1
            return x * 2

        st = St.of_iterable(range(10)).map(track_calls)
        assert call_count == 0, "Should not execute during definition"

        result = st.sum()
        assert call_count == 10, f"Should execute all 10 operations, got {call_count}"
        assert result == 90, f"Expected 90, got {result}"

    @pytest.mark.parametrize("size", [0, 1, 1000])
    def test_count_matches_input(self, size):
        assert St.of_iterable(range(size)).count() == size
