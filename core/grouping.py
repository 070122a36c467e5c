"""
Balance grouping.

Participants are sorted by balance and cut into contiguous groups in a
single left-to-right pass. A group keeps absorbing the next holder while

    (a) it is still smaller than the privacy threshold, or
    (b) the next balance is within ``max_gap`` of the group's last balance.

Rule (a) is the privacy floor: every group but possibly the last holds at
least ``min_group_size`` holders. Rule (b) lets near-identical balances
share a group beyond the floor, which bounds the rounding error.
"""

import logging
from typing import List

from schema.census import Group, Participant


logger = logging.getLogger(__name__)


def sort_by_balance(participants: List[Participant]) -> List[Participant]:
    """Stable ascending sort; equal balances keep their input order."""
    return sorted(participants, key=lambda p: p.balance)


def group_participants(
    participants: List[Participant],
    min_group_size: int,
    max_gap: int
) -> List[Group]:
    """
    Partition participants into contiguous balance groups.

    Args:
        participants: Census to group (not modified)
        min_group_size: Privacy threshold, >= 1
        max_gap: Largest balance difference between adjacent holders that
                 still extends a group once the threshold is met, >= 0

    Returns:
        Groups in ascending balance order. Their concatenation is the sorted
        census; the last group may be smaller than ``min_group_size``.
    """
    if min_group_size < 1:
        raise ValueError(f"min_group_size must be >= 1, got {min_group_size}")
    if max_gap < 0:
        raise ValueError(f"max_gap must be >= 0, got {max_gap}")

    groups: List[Group] = []
    current: Group = []
    for participant in sort_by_balance(participants):
        if not current:
            current.append(participant)
            continue

        gap = participant.balance - current[-1].balance
        if len(current) < min_group_size or gap <= max_gap:
            current.append(participant)
        else:
            groups.append(current)
            current = [participant]

    if current:
        groups.append(current)
    return groups


def validate_groups(groups: List[Group], min_group_size: int, max_gap: int) -> List[int]:
    """
    Return indices of groups breaking the grouping invariant.

    Every group except the last must either reach ``min_group_size`` or have
    all adjacent balances within ``max_gap``.
    """
    invalid = []
    for i, group in enumerate(groups[:-1]):
        if len(group) >= min_group_size:
            continue
        if all(b.balance - a.balance <= max_gap for a, b in zip(group, group[1:])):
            continue
        invalid.append(i)
    if invalid:
        logger.debug(f"{len(invalid)} groups violate the grouping invariant: {invalid[:10]}")
    return invalid
