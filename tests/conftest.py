"""Shared test fixtures."""

import logging
import os
import sys
from pathlib import Path
from typing import List

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from reader.census_generator import generate_random_census
from schema.census import Participant


def make_census(balances: List[int], prefix: str = "holder") -> List[Participant]:
    """Participants named holder0, holder1, ... with the given balances."""
    return [Participant(address=f"{prefix}{i}", balance=b) for i, b in enumerate(balances)]


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def worked_census() -> List[Participant]:
    """Six holders forming two groups at threshold 3 with gap 10."""
    return make_census([100, 101, 200, 950, 960, 970])


@pytest.fixture
def random_census() -> List[Participant]:
    """500 holders with balances below 10,000,000 (fixed seed)."""
    return generate_random_census(500, 10_000_000, seed=7)


@pytest.fixture
def restore_logging():
    """Undo handlers and level changes made by main.setup_logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
