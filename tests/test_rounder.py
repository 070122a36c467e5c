"""Common-prefix rounder tests."""

import numpy as np
import pytest

from conftest import make_census
from core.rounder import (
    CommonPrefixRounder,
    digit_count,
    leading_digits,
    round_groups,
    round_to_common_prefix,
)


@pytest.mark.parametrize("value,expected", [
    (0, 1), (9, 1), (10, 2), (99, 2), (100, 3),
    (10**18, 19), (10**30 - 1, 30), (10**30, 31),
])
def test_digit_count(value, expected):
    assert digit_count(value) == expected
    assert digit_count(value) == len(str(value))


def test_leading_digits():
    assert leading_digits(12345, 5, 1) == 1
    assert leading_digits(12345, 5, 3) == 123
    assert leading_digits(12345, 5, 5) == 12345


@pytest.mark.parametrize("group,expected", [
    ([1234, 1239], 1230),
    ([950, 960, 970], 900),
    ([1200, 12345], 1200),
    ([100, 101, 200], 100),
    ([50, 50, 50, 50], 50),
    ([7], 7),
    ([0, 0], 0),
    ([0, 5], 0),
    ([99, 100], 99),
])
def test_round_to_common_prefix(group, expected):
    assert round_to_common_prefix(group) == expected


def test_prefix_stops_at_first_difference():
    # Trailing "13" agrees but the second digit does not
    assert round_to_common_prefix([1213, 1313]) == 1000


def test_large_balances_are_exact():
    base = 10**24
    assert round_to_common_prefix([base + 5, base + 7]) == base
    assert round_to_common_prefix([123456789 * 10**18, 123456788 * 10**18]) == 12345678 * 10**19


def test_empty_group_rejected():
    with pytest.raises(ValueError):
        round_to_common_prefix([])


def test_never_inflates():
    rng = np.random.default_rng(11)
    for _ in range(200):
        size = int(rng.integers(1, 8))
        group = [int(b) for b in rng.integers(0, 10**9, size=size)]
        representative = round_to_common_prefix(group)
        assert 0 <= representative <= min(group)


def test_idempotent():
    for group in ([1234, 1239], [950, 960, 970], [100, 101, 200]):
        representative = round_to_common_prefix(group)
        assert round_to_common_prefix([representative] * len(group)) == representative


def test_round_groups_preserves_holders():
    groups = [make_census([100, 101, 200], "a"), make_census([950, 960, 970], "b")]
    rounded = round_groups(groups)

    assert [p.address for p in rounded] == ["a0", "a1", "a2", "b0", "b1", "b2"]
    assert [p.balance for p in rounded] == [100, 100, 100, 900, 900, 900]
    # originals untouched
    assert groups[1][0].balance == 950


def test_rounder_skips_empty_groups():
    rounder = CommonPrefixRounder()
    rounded = rounder.round([[], make_census([1234, 1239])])

    assert [p.balance for p in rounded] == [1230, 1230]
