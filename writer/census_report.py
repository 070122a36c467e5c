"""
Census rounding report.

Describes a rounded census by its headline figures
(accuracy, number of distinct rounded balances, holders) plus the group
size distribution, which is what the privacy threshold actually protects.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from schema.census import Participant, total_balance


logger = logging.getLogger(__name__)


@dataclass
class CensusSummary:
    """Report figures for one rounded census."""
    holders: int
    groups: int                 # Distinct rounded balances
    smallest_group: int
    median_group: float
    largest_group: int
    holders_in_small_groups: int  # Holders sharing their balance with fewer than k-1 others
    original_total: int
    rounded_total: int
    accuracy: Optional[float] = None
    privacy_threshold: Optional[int] = None

    @property
    def lost_balance(self) -> int:
        return self.original_total - self.rounded_total

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        # Totals can exceed JSON-safe integer range for most consumers
        d['original_total'] = str(self.original_total)
        d['rounded_total'] = str(self.rounded_total)
        d['lost_balance'] = str(self.lost_balance)
        return d

    def summary(self) -> str:
        """Generate summary string."""
        lines = [
            "=" * 60,
            "Rounded Census Summary",
            "=" * 60,
            f"Holders:                  {self.holders:,}",
            f"Groups (distinct values): {self.groups:,}",
            f"Group size min/med/max:   {self.smallest_group} / {self.median_group:g} / {self.largest_group}",
        ]
        if self.privacy_threshold is not None:
            lines.append(f"Privacy threshold:        {self.privacy_threshold}")
            lines.append(f"Holders below threshold:  {self.holders_in_small_groups:,}")
        if self.accuracy is not None:
            lines.append(f"Accuracy:                 {self.accuracy:.4f}%")
        lines.extend([
            f"Original total:           {self.original_total}",
            f"Rounded total:            {self.rounded_total}",
            f"Lost balance:             {self.lost_balance}",
            "=" * 60,
        ])
        return "\n".join(lines)


def group_sizes(rounded: List[Participant]) -> pd.Series:
    """Holder count per rounded balance, largest group first."""
    # Strings keep arbitrary-precision balances exact
    balances = pd.Series([str(p.balance) for p in rounded], dtype=object)
    return balances.value_counts()


def summarize_census(
    original: List[Participant],
    rounded: List[Participant],
    accuracy: Optional[float] = None,
    privacy_threshold: Optional[int] = None
) -> CensusSummary:
    """
    Build the report for a rounded census.

    Args:
        original: Census before rounding
        rounded: Rounded census (outliers included)
        accuracy: Accuracy reported by the rounding engine
        privacy_threshold: Threshold used, to count under-protected holders

    Returns:
        CensusSummary
    """
    sizes = group_sizes(rounded).to_numpy(dtype=np.int64)
    if sizes.size == 0:
        sizes = np.zeros(1, dtype=np.int64)

    small = 0
    if privacy_threshold is not None:
        small = int(sizes[sizes < privacy_threshold].sum())

    return CensusSummary(
        holders=len(rounded),
        groups=int(np.count_nonzero(sizes)),
        smallest_group=int(sizes.min()),
        median_group=float(np.median(sizes)),
        largest_group=int(sizes.max()),
        holders_in_small_groups=small,
        original_total=total_balance(original),
        rounded_total=total_balance(rounded),
        accuracy=accuracy,
        privacy_threshold=privacy_threshold,
    )


def sweep_table(sweep_records: List[Dict[str, Any]]) -> pd.DataFrame:
    """Threshold sweep as a DataFrame, best accuracy flagged."""
    df = pd.DataFrame(sweep_records, columns=["threshold", "accuracy", "groups"])
    df["best"] = False
    if not df.empty:
        df.loc[df["accuracy"].idxmax(), "best"] = True
    return df
