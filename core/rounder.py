"""
Common-Prefix Group Rounder.

Collapses every holder of a group to one representative balance:

    representative = longest shared leading-digit prefix of the group,
                     zero-padded to the digit length of the shortest member

Examples:
    [1234, 1239]        -> 1230   (prefix "123")
    [950, 960, 970]     -> 900    (prefix "9")
    [1200, 12345]       -> 1200   (prefix "12", padded to 4 digits)
    [100, 101, 200]     -> 100    (no shared prefix: smallest balance)

Properties:
- Non-inflating: representative <= every member balance
- Idempotent: a single-valued group keeps its value
- Identity-preserving: one output holder per input holder
"""

import logging
from typing import List

from schema.census import Group, Participant


logger = logging.getLogger(__name__)


def digit_count(value: int) -> int:
    """Number of decimal digits of a non-negative integer (0 has one digit)."""
    if value < 10:
        return 1
    # log10(2) ~= 1233 / 4096, then correct the estimate
    digits = (value.bit_length() * 1233) >> 12
    while 10 ** digits <= value:
        digits += 1
    while digits > 1 and 10 ** (digits - 1) > value:
        digits -= 1
    return digits


def leading_digits(value: int, length: int, k: int) -> int:
    """First ``k`` digits of ``value``, which has ``length`` digits."""
    return value // 10 ** (length - k)


def round_to_common_prefix(balances: List[int]) -> int:
    """
    Compute the representative balance of a group.

    Args:
        balances: Non-empty list of member balances

    Returns:
        Shared prefix padded with zeros to the shortest member's length, or
        the smallest balance when the leading digits already differ.
    """
    if not balances:
        raise ValueError("cannot round an empty group")
    if len(balances) == 1:
        return balances[0]

    lengths = [digit_count(b) for b in balances]
    shortest = min(lengths)

    # A shared prefix of length k implies one of length k - 1
    common = 0
    prefix = 0
    for k in range(1, shortest + 1):
        first = leading_digits(balances[0], lengths[0], k)
        if any(leading_digits(b, n, k) != first for b, n in zip(balances[1:], lengths[1:])):
            break
        common = k
        prefix = first

    if common == 0:
        return min(balances)
    return prefix * 10 ** (shortest - common)


class CommonPrefixRounder:
    """
    Rounds grouped holders to their group's representative balance.

    Stateless; kept as a class so alternative rounding policies can be
    swapped in by the search engine.
    """

    def round_group(self, group: Group) -> List[Participant]:
        """Return new holders sharing the group's representative balance."""
        representative = round_to_common_prefix([p.balance for p in group])
        return [p.with_balance(representative) for p in group]

    def round(self, groups: List[Group]) -> List[Participant]:
        """
        Round every group and flatten the result.

        Args:
            groups: Output of the balance grouper

        Returns:
            Rounded holders, in group order
        """
        rounded: List[Participant] = []
        for group in groups:
            if not group:
                continue
            rounded.extend(self.round_group(group))
        return rounded


def round_groups(groups: List[Group]) -> List[Participant]:
    """Round groups with the common-prefix policy."""
    return CommonPrefixRounder().round(groups)
