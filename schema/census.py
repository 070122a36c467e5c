"""
Census record types.

A census is an ordered list of participants, each an (address, balance)
pair. Balances are arbitrary-precision non-negative integers (token
amounts in their smallest unit, e.g. wei), so they are kept as Python
``int`` end to end and never pass through floats.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List


@dataclass(frozen=True)
class Participant:
    """A census holder: opaque address plus integer balance."""
    address: str
    balance: int

    def __post_init__(self):
        if not isinstance(self.balance, int) or isinstance(self.balance, bool):
            raise ValueError(
                f"balance for {self.address!r} must be an int, got {type(self.balance).__name__}"
            )
        if self.balance < 0:
            raise ValueError(f"balance for {self.address!r} must be >= 0, got {self.balance}")

    def with_balance(self, balance: int) -> "Participant":
        """Return a copy carrying a new (rounded) balance."""
        return replace(self, balance=balance)


# A group is a contiguous run of participants sorted by balance.
Group = List[Participant]


def total_balance(participants: Iterable[Participant]) -> int:
    """Exact sum of balances."""
    return sum(p.balance for p in participants)


def census_from_mapping(data: Dict[str, int]) -> List[Participant]:
    """Build participants from an ``{address: balance}`` mapping (insertion order)."""
    return [Participant(address=address, balance=balance) for address, balance in data.items()]


def census_to_mapping(participants: Iterable[Participant]) -> Dict[str, str]:
    """Interchange form: ``{address: decimal balance string}``."""
    return {p.address: str(p.balance) for p in participants}
