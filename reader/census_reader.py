"""
Census Reader.

Loads a census from disk into Participant records.

Supported formats:
- json: object mapping address -> decimal balance string
        {"0xabc...": "1500000000000000000", ...}
- csv:  two columns (address, balance by default), read as strings

Balances are parsed strictly: only canonical ASCII digit strings are accepted.
Leading zeros, signs, whitespace, exponents, decimal points and JSON numbers
are rejected, so every balance is written back exactly as it was read.
"""

import json
import logging
import os
import re
from typing import Any, List, Optional, Tuple

import pandas as pd

from core.config import Config, DataConfig
from schema.census import Participant


logger = logging.getLogger(__name__)


# Canonical decimal form only, so str(int(value)) == value
_BALANCE_RE = re.compile(r"0|[1-9][0-9]*")


class CensusFormatError(ValueError):
    """Raised when a census file or balance string is malformed."""


def parse_balance(value: Any, address: str = "") -> int:
    """
    Parse a decimal balance string into an int.

    Args:
        value: Raw balance, a str of ASCII digits without leading zeros
        address: Holder address, for error messages

    Returns:
        The balance as an arbitrary-precision int

    Raises:
        CensusFormatError: If the value is not a canonical digit string
    """
    if not isinstance(value, str):
        raise CensusFormatError(
            f"balance for {address!r} must be a decimal string, got {type(value).__name__}"
        )
    if not _BALANCE_RE.fullmatch(value):
        raise CensusFormatError(f"invalid balance for {address!r}: {value!r}")
    return int(value)


def _reject_duplicates(pairs: List[Tuple[str, Any]]) -> dict:
    result = {}
    for key, value in pairs:
        if key in result:
            raise CensusFormatError(f"duplicate address in census: {key!r}")
        result[key] = value
    return result


class CensusReader:
    """
    Reads census files in JSON or CSV format.
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize reader.

        Args:
            config: Configuration object (format and CSV columns)
        """
        self.config = config or Config()

    @property
    def data_config(self) -> DataConfig:
        return self.config.data

    def read(self, path: Optional[str] = None, input_format: Optional[str] = None) -> List[Participant]:
        """
        Read a census.

        Args:
            path: File to read (default: config.data.input_path)
            input_format: 'json' or 'csv' (default: config, or the file extension)

        Returns:
            Participants in file order
        """
        path = path or self.data_config.input_path
        if not path:
            raise ValueError("no census path given")
        if not os.path.exists(path):
            raise FileNotFoundError(f"Census file not found: {path}")

        input_format = input_format or self._detect_format(path)
        logger.info(f"Reading census from {path} (format={input_format})")

        if input_format == 'json':
            participants = self.read_json(path)
        elif input_format == 'csv':
            participants = self.read_csv(path)
        else:
            raise ValueError(f"Unsupported census format: {input_format}")

        logger.info(f"Loaded {len(participants):,} holders")
        return participants

    def _detect_format(self, path: str) -> str:
        ext = os.path.splitext(path)[1].lower().lstrip('.')
        if ext in ('json', 'csv'):
            return ext
        return self.data_config.input_format

    def read_json(self, path: str) -> List[Participant]:
        """Read an ``{address: balance}`` JSON object."""
        with open(path, 'r', encoding='utf-8') as f:
            try:
                data = json.load(f, object_pairs_hook=_reject_duplicates)
            except json.JSONDecodeError as e:
                raise CensusFormatError(f"invalid census JSON in {path}: {e}") from e

        if not isinstance(data, dict):
            raise CensusFormatError(
                f"census JSON must be an object of address -> balance, got {type(data).__name__}"
            )
        return [
            Participant(address=address, balance=parse_balance(value, address))
            for address, value in data.items()
        ]

    def read_csv(self, path: str) -> List[Participant]:
        """Read a two-column CSV census, keeping every cell as a string."""
        address_col = self.data_config.address_column
        balance_col = self.data_config.balance_column

        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        missing = [c for c in (address_col, balance_col) if c not in df.columns]
        if missing:
            raise CensusFormatError(f"census CSV {path} is missing columns: {missing}")

        duplicated = df[address_col][df[address_col].duplicated()]
        if not duplicated.empty:
            raise CensusFormatError(f"duplicate address in census: {duplicated.iloc[0]!r}")

        return [
            Participant(address=address, balance=parse_balance(value, address))
            for address, value in zip(df[address_col], df[balance_col])
        ]
