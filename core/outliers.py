"""
Outlier detection for census balances.

Holders whose balance lies statistically far from the population are kept
out of the grouping step: a single whale would otherwise drag a whole group
down to a shared prefix and wreck accuracy. Outliers are returned untouched
and re-appended to the rounded census by the caller.

Methods:
- zscore (default): |balance - mean| / std > threshold, population std.
- lower_percentile: everything strictly below the p-th percentile balance.
- none: no detection, every holder is grouped.

All statistics are computed exactly over the integer balances, so
18-decimal token amounts do not lose precision in float arithmetic.
"""

import logging
import math
from dataclasses import dataclass, field
from fractions import Fraction
from typing import List, Optional

from core.config import OUTLIER_METHODS
from schema.census import Participant


logger = logging.getLogger(__name__)


@dataclass
class OutlierResult:
    """Split of a census into grouped holders and outliers."""
    retained: List[Participant]
    outliers: List[Participant]
    method: str = 'zscore'
    mean: Optional[float] = None
    std: Optional[float] = None
    cutoff: Optional[int] = None
    stats: dict = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.retained) + len(self.outliers)


def z_score_outliers(
    participants: List[Participant],
    threshold: float = 2.0
) -> OutlierResult:
    """
    Split participants by z-score.

    The z-score of a balance is its distance to the mean in population
    standard deviations. A holder is an outlier when the absolute z-score
    is strictly greater than ``threshold``.

    The test is evaluated in integers as
    ``(n*b - S)^2 > threshold^2 * (n*Q - S^2)`` where S is the sum and Q the
    sum of squares, which is the squared z-score inequality scaled by n^2.

    Args:
        participants: Census to inspect (not modified)
        threshold: Number of standard deviations

    Returns:
        OutlierResult with input order preserved in both lists
    """
    if threshold < 0:
        raise ValueError(f"outliers threshold must be >= 0, got {threshold}")

    n = len(participants)
    if n == 0:
        return OutlierResult(retained=[], outliers=[], method='zscore')

    total = 0
    total_sq = 0
    for p in participants:
        total += p.balance
        total_sq += p.balance * p.balance

    # n^2 * population variance
    scaled_variance = n * total_sq - total * total
    mean = float(Fraction(total, n))
    std = float(Fraction(math.isqrt(scaled_variance), n))

    if scaled_variance == 0:
        # All balances equal: nobody deviates
        logger.debug("Zero standard deviation, no outliers")
        return OutlierResult(
            retained=list(participants), outliers=[], method='zscore', mean=mean, std=0.0
        )

    limit = Fraction(threshold) ** 2 * scaled_variance
    retained: List[Participant] = []
    outliers: List[Participant] = []
    for p in participants:
        deviation = n * p.balance - total
        if deviation * deviation > limit:
            outliers.append(p)
        else:
            retained.append(p)

    return OutlierResult(
        retained=retained,
        outliers=outliers,
        method='zscore',
        mean=mean,
        std=std,
        stats={'threshold': threshold},
    )


def lower_percentile_outliers(
    participants: List[Participant],
    lower_percentile: float = 5.0
) -> OutlierResult:
    """
    Flag the low tail of the census.

    The cut-off is the balance found at index ``int(p/100 * n)`` of the
    ascending-sorted census; holders strictly below it are outliers.
    """
    if not 0 <= lower_percentile <= 100:
        raise ValueError(f"lower_percentile must be in [0, 100], got {lower_percentile}")

    n = len(participants)
    if n == 0:
        return OutlierResult(retained=[], outliers=[], method='lower_percentile')

    balances = sorted(p.balance for p in participants)
    index = min(int(lower_percentile / 100 * n), n - 1)
    cutoff = balances[index]

    retained = [p for p in participants if p.balance >= cutoff]
    outliers = [p for p in participants if p.balance < cutoff]
    return OutlierResult(
        retained=retained,
        outliers=outliers,
        method='lower_percentile',
        cutoff=cutoff,
        stats={'lower_percentile': lower_percentile},
    )


class OutlierDetector:
    """
    Configurable outlier detection front-end.

    Wraps the detection functions so the pipeline can pick a method from
    configuration and get consistent logging.
    """

    def __init__(
        self,
        method: str = 'zscore',
        threshold: float = 2.0,
        lower_percentile: float = 5.0
    ):
        if method not in OUTLIER_METHODS:
            raise ValueError(f"outlier method must be one of {OUTLIER_METHODS}, got {method}")
        self.method = method
        self.threshold = threshold
        self.lower_percentile = lower_percentile

    def detect(self, participants: List[Participant]) -> OutlierResult:
        """Split ``participants`` into (retained, outliers)."""
        if self.method == 'zscore':
            result = z_score_outliers(participants, self.threshold)
        elif self.method == 'lower_percentile':
            result = lower_percentile_outliers(participants, self.lower_percentile)
        else:
            result = OutlierResult(retained=list(participants), outliers=[], method='none')

        logger.info(
            f"Outlier detection ({self.method}): {len(result.outliers):,} outliers, "
            f"{len(result.retained):,} holders retained for grouping"
        )
        if result.mean is not None:
            logger.debug(f"  mean={result.mean:.4g}, std={result.std:.4g}")
        return result
