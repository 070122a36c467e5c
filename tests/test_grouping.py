"""Balance grouper tests."""

import pytest

from conftest import make_census
from core.grouping import group_participants, sort_by_balance, validate_groups
from schema.census import Participant


def balances(groups):
    return [[p.balance for p in g] for g in groups]


def test_worked_example(worked_census):
    groups = group_participants(worked_census, min_group_size=3, max_gap=10)
    assert balances(groups) == [[100, 101, 200], [950, 960, 970]]


def test_gap_extends_group_beyond_threshold():
    census = make_census([1, 2, 3, 4, 5, 100])
    groups = group_participants(census, min_group_size=2, max_gap=1)

    assert balances(groups) == [[1, 2, 3, 4, 5], [100]]


def test_unsorted_input_is_sorted():
    census = make_census([970, 100, 960, 200, 101, 950])
    groups = group_participants(census, min_group_size=3, max_gap=10)

    assert balances(groups) == [[100, 101, 200], [950, 960, 970]]


def test_threshold_one_gap_zero_isolates_distinct_balances():
    census = make_census([5, 1, 3, 3, 9])
    groups = group_participants(census, min_group_size=1, max_gap=0)

    assert balances(groups) == [[1], [3, 3], [5], [9]]


def test_last_group_may_be_short():
    census = make_census([1, 2, 3, 1000])
    groups = group_participants(census, min_group_size=3, max_gap=0)

    assert balances(groups) == [[1, 2, 3], [1000]]


def test_threshold_larger_than_census():
    census = make_census([1, 50, 900])
    groups = group_participants(census, min_group_size=10, max_gap=0)

    assert balances(groups) == [[1, 50, 900]]


def test_equal_balances_keep_input_order():
    census = [
        Participant("b", 5),
        Participant("a", 5),
        Participant("c", 1),
    ]
    assert [p.address for p in sort_by_balance(census)] == ["c", "b", "a"]

    groups = group_participants(census, min_group_size=1, max_gap=0)
    assert [[p.address for p in g] for g in groups] == [["c"], ["b", "a"]]


def test_empty_census():
    assert group_participants([], min_group_size=3, max_gap=1) == []


def test_input_not_modified(worked_census):
    before = list(worked_census)
    group_participants(list(reversed(worked_census)), 3, 10)
    assert worked_census == before


@pytest.mark.parametrize("k,gap", [(1, 0), (3, 1), (7, 1000), (50, 0), (600, 10)])
def test_groups_cover_sorted_census(random_census, k, gap):
    groups = group_participants(random_census, k, gap)

    flat = [p for g in groups for p in g]
    assert flat == sort_by_balance(random_census)
    assert validate_groups(groups, k, gap) == []
    assert all(len(g) >= k for g in groups[:-1])


def test_groups_are_balance_ordered(random_census):
    groups = group_participants(random_census, 5, 100)

    for left, right in zip(groups, groups[1:]):
        assert left[-1].balance <= right[0].balance


def test_validate_groups_reports_violations():
    groups = [
        [Participant("a", 1), Participant("b", 50)],
        [Participant("c", 60), Participant("d", 61), Participant("e", 62)],
        [Participant("f", 100)],
    ]
    assert validate_groups(groups, min_group_size=3, max_gap=5) == [0]


def test_invalid_parameters():
    with pytest.raises(ValueError):
        group_participants(make_census([1]), min_group_size=0, max_gap=1)
    with pytest.raises(ValueError):
        group_participants(make_census([1]), min_group_size=1, max_gap=-1)
