"""
Accuracy evaluation.

Accuracy is the share of the total census balance that survives rounding:

    accuracy = 100 * (1 - (original_sum - rounded_sum) / original_sum)

Sums are exact integers and the ratio is an exact Fraction; only the final
percentage is converted to float.
"""

import logging
from fractions import Fraction
from typing import List

from schema.census import Participant, total_balance


logger = logging.getLogger(__name__)


class DegenerateCensusError(ValueError):
    """Raised when accuracy is undefined (empty census or zero total balance)."""


def lost_balance(original: List[Participant], rounded: List[Participant]) -> int:
    """Balance removed by rounding (never negative for non-inflating rounding)."""
    return total_balance(original) - total_balance(rounded)


def calculate_accuracy(original: List[Participant], rounded: List[Participant]) -> float:
    """
    Compute the balance preservation percentage.

    Args:
        original: Census before rounding
        rounded: Rounded census, one holder per original holder

    Returns:
        Accuracy in percent, 100.0 meaning no balance lost

    Raises:
        ValueError: If the two lists differ in length
        DegenerateCensusError: If the census is empty or its total balance is 0
    """
    if len(original) != len(rounded):
        raise ValueError(
            f"rounded census has {len(rounded)} holders, original has {len(original)}"
        )
    if not original:
        raise DegenerateCensusError("accuracy is undefined for an empty census")

    total_original = total_balance(original)
    if total_original == 0:
        raise DegenerateCensusError("accuracy is undefined when every balance is zero")

    lost = Fraction(total_original - total_balance(rounded), total_original)
    return float(100 - lost * 100)
