"""
Rounding engine tests.

Covers the single pass, the threshold search and the adaptive driver:
- worked examples with known accuracy
- cardinality, holder identity and non-inflation of the final census
- determinism and parallel/sequential agreement
- accuracy floor reporting
"""

import pytest

from conftest import make_census
from core.accuracy import DegenerateCensusError
from core.config import RoundingConfig
from core.grouping import group_participants
from core.outliers import OutlierDetector
from engine.census_rounding import (
    RoundingStatus,
    ThresholdSearch,
    adaptive_group_and_round,
    fixed_group_and_round,
    group_and_round,
    round_census,
)

WORKED_ACCURACY = 100 * 3000 / 3281


def test_group_and_round_worked_example(worked_census):
    rounded, accuracy = group_and_round(worked_census, min_group_size=3, max_gap=10)

    assert [p.balance for p in rounded] == [100, 100, 100, 900, 900, 900]
    assert [p.address for p in rounded] == [p.address for p in worked_census]
    assert accuracy == pytest.approx(WORKED_ACCURACY)


def test_group_and_round_uniform_census():
    rounded, accuracy = group_and_round(make_census([50] * 4), 3, 1)

    assert [p.balance for p in rounded] == [50] * 4
    assert accuracy == 100.0


def test_group_and_round_single_holder():
    rounded, accuracy = group_and_round(make_census([42]), 3, 1)

    assert [p.balance for p in rounded] == [42]
    assert accuracy == 100.0


def test_threshold_one_gap_zero_is_lossless(random_census):
    _, accuracy = group_and_round(random_census, 1, 0)
    assert accuracy == 100.0


def test_rounding_rounded_census_is_stable(worked_census):
    rounded, _ = group_and_round(worked_census, 3, 10)
    again, accuracy = group_and_round(rounded, 3, 10)

    assert [p.balance for p in again] == [p.balance for p in rounded]
    assert accuracy == 100.0


def test_schedule_small_population():
    search = ThresholdSearch(3, 1, population_size=100)

    assert search.max_privacy_threshold == 33
    assert search.schedule() == list(range(3, 34))


def test_schedule_step_grows():
    search = ThresholdSearch(1, 1, population_size=10000)
    schedule = search.schedule()

    assert schedule[0] == 1
    assert schedule[-1] <= 10000
    assert len(schedule) < 300
    for current, following in zip(schedule, schedule[1:]):
        assert following - current == max(1, current // 33)


def test_empty_schedule_falls_back_to_minimum():
    search = ThresholdSearch(5, 1, population_size=10)
    result = search.run(make_census([1, 2, 3, 4, 5, 6, 7, 8, 9, 10]))

    assert search.schedule() == []
    assert result.best_threshold == 5
    assert result.best_accuracy == 0.0
    assert result.sweep == []


def test_ties_keep_lowest_threshold():
    census = make_census([50] * 10)
    result = ThresholdSearch(1, 1, population_size=10).run(census)

    assert len(result.sweep) == 10
    assert all(e.accuracy == 100.0 for e in result.sweep)
    assert result.best_threshold == 1


def test_search_picks_most_accurate(random_census):
    result = ThresholdSearch(3, 1000, population_size=len(random_census)).run(random_census)

    best = max(e.accuracy for e in result.sweep)
    assert result.best_accuracy == best
    first_best = next(e for e in result.sweep if e.accuracy == best)
    assert result.best_threshold == first_best.threshold
    assert result.to_records()[0].keys() == {"threshold", "accuracy", "groups"}


def test_parallel_search_matches_sequential(random_census):
    sequential = ThresholdSearch(3, 1000, len(random_census)).run(random_census)
    parallel = ThresholdSearch(3, 1000, len(random_census), max_workers=2).run(random_census)

    assert parallel.best_threshold == sequential.best_threshold
    assert parallel.best_accuracy == sequential.best_accuracy
    assert parallel.to_records() == sequential.to_records()


def test_search_parameter_validation():
    with pytest.raises(ValueError):
        ThresholdSearch(0, 1, 10)
    with pytest.raises(ValueError):
        ThresholdSearch(1, 1, 10, step_divisor=0)
    with pytest.raises(ValueError):
        ThresholdSearch(1, 1, 10, max_workers=0)


def test_adaptive_floor_unmet(worked_census):
    result = adaptive_group_and_round(worked_census, 3, 10, min_accuracy=95.0)

    assert result.status is RoundingStatus.ACCURACY_FLOOR_UNMET
    assert not result.success
    assert result.privacy_threshold == 3
    assert result.accuracy == pytest.approx(WORKED_ACCURACY)
    assert len(result.participants) == 6


def test_adaptive_floor_met(worked_census):
    participants, accuracy, threshold, status = adaptive_group_and_round(
        worked_census, 3, 10, min_accuracy=90.0
    )

    assert status is RoundingStatus.OK
    assert threshold == 3
    assert accuracy == pytest.approx(WORKED_ACCURACY)
    assert sorted(p.balance for p in participants) == [100, 100, 100, 900, 900, 900]


def test_adaptive_keeps_outliers_unrounded():
    census = make_census([10] * 9 + [1000])
    result = adaptive_group_and_round(census, 3, 1, min_accuracy=95.0)

    assert result.success
    assert [p.address for p in result.outliers] == ["holder9"]
    assert result.participants[-1] == census[-1]
    assert result.accuracy == 100.0
    assert result.overall_accuracy == 100.0


def test_adaptive_zero_balance_after_outliers():
    census = make_census([0] * 9 + [1000])
    result = adaptive_group_and_round(census, 3, 1, min_accuracy=95.0)

    assert result.success
    assert result.accuracy == 100.0
    assert sorted(p.balance for p in result.participants) == [0] * 9 + [1000]


def test_adaptive_single_holder():
    result = adaptive_group_and_round(make_census([42]), 3, 1, min_accuracy=95.0)

    assert result.success
    assert result.privacy_threshold == 3
    assert result.accuracy == 100.0
    assert [p.balance for p in result.participants] == [42]


def test_adaptive_degenerate_census():
    with pytest.raises(DegenerateCensusError):
        adaptive_group_and_round([], 3, 1, 95.0)
    with pytest.raises(DegenerateCensusError):
        adaptive_group_and_round(make_census([0, 0, 0]), 3, 1, 95.0)


def test_adaptive_preserves_holders(random_census):
    result = adaptive_group_and_round(random_census, 3, 1000, min_accuracy=0.0)
    original = {p.address: p.balance for p in random_census}

    assert len(result.participants) == len(random_census)
    assert {p.address for p in result.participants} == set(original)
    assert all(p.balance <= original[p.address] for p in result.participants)
    assert 0.0 <= result.accuracy <= 100.0
    assert result.sweep


def test_adaptive_is_deterministic(random_census):
    first = adaptive_group_and_round(random_census, 3, 1000, min_accuracy=0.0)
    second = adaptive_group_and_round(random_census, 3, 1000, min_accuracy=0.0)

    assert first.participants == second.participants
    assert first.privacy_threshold == second.privacy_threshold
    assert first.accuracy == second.accuracy


def test_adaptive_groups_respect_threshold(random_census):
    result = adaptive_group_and_round(random_census, 5, 100, min_accuracy=0.0)
    groups = group_participants(random_census, result.privacy_threshold, 100)

    assert all(len(g) >= result.privacy_threshold for g in groups[:-1])


def test_adaptive_custom_detector():
    census = make_census(list(range(1, 21)))
    detector = OutlierDetector('lower_percentile', lower_percentile=10.0)
    result = adaptive_group_and_round(census, 2, 0, min_accuracy=0.0, detector=detector)

    assert [p.balance for p in result.outliers] == [1, 2]
    assert result.participants[-2:] == census[:2]


def test_fixed_threshold(worked_census):
    result = fixed_group_and_round(worked_census, privacy_threshold=3, max_gap=10)

    assert result.success
    assert result.privacy_threshold == 3
    assert result.accuracy == pytest.approx(WORKED_ACCURACY)
    assert result.outliers == []
    assert len(result.sweep) == 1
    assert result.sweep[0].groups == 2
    assert result.to_records() == [{"threshold": 3, "accuracy": result.accuracy, "groups": 2}]


def test_fixed_threshold_validation(worked_census):
    with pytest.raises(ValueError):
        fixed_group_and_round(worked_census, privacy_threshold=0, max_gap=10)


def test_round_census_fixed_mode(worked_census):
    config = RoundingConfig(privacy_threshold=3, group_balance_diff=10, outlier_method='none')
    result = round_census(worked_census, config)

    assert result.status is RoundingStatus.ACCURACY_FLOOR_UNMET
    assert len(result.sweep) == 1


def test_round_census_adaptive_mode(worked_census):
    config = RoundingConfig(group_balance_diff=10, min_accuracy=90.0)
    result = round_census(worked_census, config)

    assert result.success
    assert result.privacy_threshold == 3
    assert result.to_dict()["status"] == "ok"
