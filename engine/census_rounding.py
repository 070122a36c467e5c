"""
Census Rounding Engine.

Anonymizes a census by grouping holders with similar balances and rounding
every group to a shared representative balance, searching for the privacy
threshold that keeps the most of the total balance.

PIPELINE:
1. Outlier detection: statistically extreme holders are set aside untouched
2. Threshold search: for candidate privacy thresholds k in
   [k_min, population // k_min], group + round + measure accuracy
3. Final pass at the best k; outliers are appended to the rounded census

SEARCH SCHEDULE:
The threshold advances by max(1, k // 33), so small thresholds are scanned
one by one and large ones geometrically. The schedule only depends on k,
which allows candidates to be evaluated concurrently without changing the
outcome. Ties keep the lowest threshold.

The search does not guarantee the accuracy floor; when no candidate reaches
it the best-effort census is still returned with
RoundingStatus.ACCURACY_FLOOR_UNMET so the caller can decide.
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from core.accuracy import DegenerateCensusError, calculate_accuracy
from core.config import RoundingConfig
from core.grouping import group_participants, sort_by_balance
from core.outliers import OutlierDetector, OutlierResult
from core.rounder import round_groups
from schema.census import Participant, total_balance


logger = logging.getLogger(__name__)


DEFAULT_STEP_DIVISOR = 33


class RoundingStatus(Enum):
    """Outcome of a rounding run."""
    OK = "ok"
    ACCURACY_FLOOR_UNMET = "accuracy_floor_unmet"


@dataclass
class ThresholdEvaluation:
    """One grouping/rounding pass at a candidate threshold."""
    threshold: int
    accuracy: float
    groups: int


def sweep_records(sweep: List[ThresholdEvaluation]) -> List[Dict[str, Any]]:
    """Sweep as plain records (threshold, accuracy, groups) for tables and files."""
    return [
        {"threshold": e.threshold, "accuracy": e.accuracy, "groups": e.groups}
        for e in sweep
    ]


@dataclass
class SearchResult:
    """Outcome of the threshold scan."""
    best_threshold: int
    best_accuracy: float
    sweep: List[ThresholdEvaluation] = field(default_factory=list)

    def to_records(self) -> List[Dict[str, Any]]:
        return sweep_records(self.sweep)


@dataclass
class CensusRoundingResult:
    """
    Rounded census plus the figures describing it.

    Unpacks as ``(participants, accuracy, privacy_threshold, status)``.
    """
    participants: List[Participant]
    accuracy: float
    privacy_threshold: int
    status: RoundingStatus
    outliers: List[Participant] = field(default_factory=list)
    overall_accuracy: Optional[float] = None
    sweep: List[ThresholdEvaluation] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status is RoundingStatus.OK

    def __iter__(self) -> Iterator[Any]:
        return iter((self.participants, self.accuracy, self.privacy_threshold, self.status))

    def to_records(self) -> List[Dict[str, Any]]:
        """Threshold sweep as plain records."""
        return sweep_records(self.sweep)

    def to_dict(self) -> Dict[str, Any]:
        """Summary without the census itself."""
        return {
            "accuracy": self.accuracy,
            "overall_accuracy": self.overall_accuracy,
            "privacy_threshold": self.privacy_threshold,
            "status": self.status.value,
            "holders": len(self.participants),
            "outliers": len(self.outliers),
            "thresholds_evaluated": len(self.sweep),
        }


def _evaluate(
    participants: List[Participant],
    threshold: int,
    max_gap: int
) -> Tuple[List[Participant], float, int]:
    groups = group_participants(participants, threshold, max_gap)
    rounded = round_groups(groups)
    accuracy = calculate_accuracy(sort_by_balance(participants), rounded)
    return rounded, accuracy, len(groups)


def group_and_round(
    participants: List[Participant],
    min_group_size: int,
    max_gap: int
) -> Tuple[List[Participant], float]:
    """
    Single grouping/rounding/evaluation pass.

    Args:
        participants: Census to round (not modified)
        min_group_size: Privacy threshold
        max_gap: Balance gap tolerance

    Returns:
        (rounded census in ascending balance order, accuracy percent)
    """
    rounded, accuracy, _ = _evaluate(participants, min_group_size, max_gap)
    return rounded, accuracy


# Worker-side census for process pool evaluation
_worker_participants: List[Participant] = []


def _init_worker(participants: List[Participant]) -> None:
    global _worker_participants
    _worker_participants = participants


def _evaluate_in_worker(args: Tuple[int, int]) -> ThresholdEvaluation:
    threshold, max_gap = args
    _, accuracy, groups = _evaluate(_worker_participants, threshold, max_gap)
    return ThresholdEvaluation(threshold=threshold, accuracy=accuracy, groups=groups)


class ThresholdSearch:
    """
    Privacy threshold search controller.

    Scans thresholds from ``min_privacy_threshold`` up to
    ``population_size // min_privacy_threshold`` with a geometrically
    growing step and keeps the one with the highest accuracy.
    """

    def __init__(
        self,
        min_privacy_threshold: int,
        group_balance_diff: int,
        population_size: int,
        step_divisor: int = DEFAULT_STEP_DIVISOR,
        max_workers: int = 1
    ):
        """
        Initialize the search.

        Args:
            min_privacy_threshold: Lowest acceptable group size, >= 1
            group_balance_diff: Balance gap tolerance passed to the grouper
            population_size: Size of the full census (outliers included),
                             bounds the scanned range
            step_divisor: Step is max(1, threshold // step_divisor)
            max_workers: > 1 evaluates candidates in a process pool
        """
        if min_privacy_threshold < 1:
            raise ValueError(f"min_privacy_threshold must be >= 1, got {min_privacy_threshold}")
        if step_divisor < 1:
            raise ValueError(f"step_divisor must be >= 1, got {step_divisor}")
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.min_privacy_threshold = min_privacy_threshold
        self.group_balance_diff = group_balance_diff
        self.population_size = population_size
        self.step_divisor = step_divisor
        self.max_workers = max_workers

    @property
    def max_privacy_threshold(self) -> int:
        return self.population_size // self.min_privacy_threshold

    def schedule(self) -> List[int]:
        """Candidate thresholds in scan order."""
        thresholds = []
        current = self.min_privacy_threshold
        while current <= self.max_privacy_threshold:
            thresholds.append(current)
            current += max(1, current // self.step_divisor)
        return thresholds

    def evaluate(self, participants: List[Participant], threshold: int) -> ThresholdEvaluation:
        """Group, round and score ``participants`` at one threshold."""
        _, accuracy, groups = _evaluate(participants, threshold, self.group_balance_diff)
        return ThresholdEvaluation(threshold=threshold, accuracy=accuracy, groups=groups)

    def _evaluate_all(
        self,
        participants: List[Participant],
        thresholds: List[int]
    ) -> List[ThresholdEvaluation]:
        if self.max_workers == 1 or len(thresholds) < 2:
            return [self.evaluate(participants, t) for t in thresholds]

        logger.info(f"Evaluating {len(thresholds)} thresholds with {self.max_workers} workers")
        with ProcessPoolExecutor(
            max_workers=self.max_workers,
            initializer=_init_worker,
            initargs=(participants,)
        ) as executor:
            # map() yields in submission order
            return list(executor.map(
                _evaluate_in_worker,
                [(t, self.group_balance_diff) for t in thresholds]
            ))

    def run(self, participants: List[Participant]) -> SearchResult:
        """
        Scan the threshold range.

        Args:
            participants: Outlier-free census

        Returns:
            SearchResult with the best threshold and the full sweep. An empty
            range selects ``min_privacy_threshold`` with accuracy 0.
        """
        thresholds = self.schedule()
        logger.info(
            f"Threshold search: range [{self.min_privacy_threshold}, {self.max_privacy_threshold}], "
            f"{len(thresholds)} candidates"
        )

        sweep = self._evaluate_all(participants, thresholds)
        for evaluation in sweep:
            logger.debug(
                f"  k={evaluation.threshold}: accuracy={evaluation.accuracy:.4f}%, "
                f"groups={evaluation.groups}"
            )

        best_threshold = self.min_privacy_threshold
        best_accuracy = 0.0
        if sweep:
            accuracies = np.array([e.accuracy for e in sweep])
            # argmax returns the first maximum: ties keep the lower threshold
            best = int(np.argmax(accuracies))
            if accuracies[best] > 0.0:
                best_threshold = sweep[best].threshold
                best_accuracy = float(accuracies[best])

        logger.info(f"Best threshold: {best_threshold} (accuracy {best_accuracy:.4f}%)")
        return SearchResult(best_threshold=best_threshold, best_accuracy=best_accuracy, sweep=sweep)


def _check_census(participants: List[Participant]) -> None:
    if not participants:
        raise DegenerateCensusError("cannot round an empty census")
    if total_balance(participants) == 0:
        raise DegenerateCensusError("cannot round a census whose balances are all zero")


def _finish(
    split: OutlierResult,
    rounded: List[Participant],
    accuracy: float,
    threshold: int,
    min_accuracy: float,
    sweep: Optional[List[ThresholdEvaluation]] = None
) -> CensusRoundingResult:
    final = rounded + split.outliers
    overall = calculate_accuracy(sort_by_balance(split.retained) + split.outliers, final)

    status = RoundingStatus.OK
    if accuracy < min_accuracy:
        status = RoundingStatus.ACCURACY_FLOOR_UNMET
        logger.warning(
            f"Could not find a privacy threshold that satisfies the minimum accuracy: "
            f"best {accuracy:.4f}% < {min_accuracy}%"
        )

    logger.info(
        f"Rounded {len(final):,} holders (k={threshold}, accuracy={accuracy:.4f}%, "
        f"overall={overall:.4f}%, outliers={len(split.outliers):,})"
    )
    return CensusRoundingResult(
        participants=final,
        accuracy=accuracy,
        privacy_threshold=threshold,
        status=status,
        outliers=split.outliers,
        overall_accuracy=overall,
        sweep=sweep or [],
    )


def _nothing_to_round(split: OutlierResult) -> bool:
    if total_balance(split.retained) > 0:
        return False
    logger.warning(
        f"No balance left to group after outlier detection "
        f"({len(split.retained)} holders retained), census returned unrounded"
    )
    return True


def adaptive_group_and_round(
    participants: List[Participant],
    min_privacy_threshold: int,
    max_gap: int,
    min_accuracy: float,
    outliers_threshold: float = 2.0,
    detector: Optional[OutlierDetector] = None,
    step_divisor: int = DEFAULT_STEP_DIVISOR,
    max_workers: int = 1
) -> CensusRoundingResult:
    """
    Round a census at the most accurate privacy threshold.

    Args:
        participants: Full census (not modified)
        min_privacy_threshold: Smallest acceptable group size
        max_gap: Balance gap tolerance
        min_accuracy: Accuracy floor in percent
        outliers_threshold: z-score cut-off of the default detector
        detector: Custom outlier detector (overrides ``outliers_threshold``)
        step_divisor: Search step divisor
        max_workers: Process pool size for the search

    Returns:
        CensusRoundingResult; ``status`` reports whether the floor was met

    Raises:
        DegenerateCensusError: Empty census or all balances zero
    """
    _check_census(participants)
    search = ThresholdSearch(
        min_privacy_threshold,
        max_gap,
        population_size=len(participants),
        step_divisor=step_divisor,
        max_workers=max_workers,
    )
    detector = detector or OutlierDetector('zscore', threshold=outliers_threshold)
    split = detector.detect(participants)

    if _nothing_to_round(split):
        return _finish(split, sort_by_balance(split.retained), 100.0,
                       min_privacy_threshold, min_accuracy)

    result = search.run(split.retained)
    rounded, accuracy = group_and_round(split.retained, result.best_threshold, max_gap)
    return _finish(split, rounded, accuracy, result.best_threshold,
                   min_accuracy, result.sweep)


def fixed_group_and_round(
    participants: List[Participant],
    privacy_threshold: int,
    max_gap: int,
    min_accuracy: float = 0.0,
    detector: Optional[OutlierDetector] = None
) -> CensusRoundingResult:
    """
    Round a census at a given privacy threshold, without searching.

    Outlier detection still applies when a detector is given.
    """
    _check_census(participants)
    if privacy_threshold < 1:
        raise ValueError(f"privacy_threshold must be >= 1, got {privacy_threshold}")
    detector = detector or OutlierDetector('none')
    split = detector.detect(participants)

    if _nothing_to_round(split):
        return _finish(split, sort_by_balance(split.retained), 100.0,
                       privacy_threshold, min_accuracy)

    rounded, accuracy, groups = _evaluate(split.retained, privacy_threshold, max_gap)
    evaluation = ThresholdEvaluation(threshold=privacy_threshold, accuracy=accuracy, groups=groups)
    return _finish(split, rounded, accuracy, privacy_threshold, min_accuracy, [evaluation])


def round_census(participants: List[Participant], config: RoundingConfig) -> CensusRoundingResult:
    """
    Round a census as described by a RoundingConfig.

    A configured ``privacy_threshold`` runs a single fixed pass; otherwise
    the adaptive search is used.
    """
    detector = OutlierDetector(
        method=config.outlier_method,
        threshold=config.outliers_threshold,
        lower_percentile=config.lower_outlier_percentile,
    )
    if config.privacy_threshold is not None:
        logger.info(f"Fixed privacy threshold: {config.privacy_threshold}")
        return fixed_group_and_round(
            participants,
            config.privacy_threshold,
            config.group_balance_diff,
            config.min_accuracy,
            detector=detector,
        )

    return adaptive_group_and_round(
        participants,
        config.min_privacy_threshold,
        config.group_balance_diff,
        config.min_accuracy,
        detector=detector,
        step_divisor=config.search_step_divisor,
        max_workers=config.max_workers,
    )
