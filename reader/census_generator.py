"""
Random census generation for tests and dry runs.

Addresses are random 20-byte hex strings (Ethereum-style, no 0x prefix)
and balances are uniform in [0, max_balance).
"""

import logging
from typing import List, Optional

import numpy as np

from core.config import MAX_RANDOM_BALANCE
from schema.census import Participant


logger = logging.getLogger(__name__)


def generate_random_census(
    size: int,
    max_balance: int = 10_000_000,
    seed: Optional[int] = None
) -> List[Participant]:
    """
    Generate a random census.

    Args:
        size: Number of holders
        max_balance: Exclusive upper bound for balances (fits in int64)
        seed: Random seed for reproducibility (None = fresh entropy)

    Returns:
        List of participants with unique addresses
    """
    if size < 0:
        raise ValueError(f"size must be >= 0, got {size}")
    if not 1 <= max_balance <= MAX_RANDOM_BALANCE:
        raise ValueError(f"max_balance must be in [1, {MAX_RANDOM_BALANCE}], got {max_balance}")

    rng = np.random.default_rng(seed)
    balances = rng.integers(0, max_balance, size=size, dtype=np.int64)

    participants = []
    seen = set()
    for balance in balances:
        address = rng.bytes(20).hex()
        while address in seen:
            address = rng.bytes(20).hex()
        seen.add(address)
        participants.append(Participant(address=address, balance=int(balance)))

    logger.info(f"Generated random census: {size:,} holders, max balance {max_balance:,}")
    return participants
