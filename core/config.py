"""
Configuration management for the census rounding system.
Handles loading, validation, and access to configuration parameters.

Sources, lowest to highest precedence:
1. Dataclass defaults
2. INI file (Config.from_ini)
3. Environment variables (Config.apply_env_overrides)
4. Command-line flags (main.apply_overrides)
"""

import configparser
import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional


logger = logging.getLogger(__name__)


OUTLIER_METHODS = ('zscore', 'lower_percentile', 'none')
INPUT_FORMATS = ('json', 'csv')

# Largest random_max_balance: balances are drawn as numpy int64
MAX_RANDOM_BALANCE = 2**63 - 1


@dataclass
class RoundingConfig:
    """Grouping, rounding and threshold search settings."""

    # Smallest number of holders that must share a rounded balance
    min_privacy_threshold: int = 3

    # Adjacent balances within this difference may share a group past the threshold
    group_balance_diff: int = 1

    # Accuracy floor (percent of total balance preserved)
    min_accuracy: float = 95.0

    # Outlier detection
    outlier_method: str = "zscore"  # 'zscore', 'lower_percentile', or 'none'
    outliers_threshold: float = 2.0  # z-score cut-off in standard deviations
    lower_outlier_percentile: float = 5.0  # used by 'lower_percentile'

    # Fixed threshold: single grouping pass, no search
    privacy_threshold: Optional[int] = None

    # Search schedule: step = max(1, threshold // search_step_divisor)
    search_step_divisor: int = 33

    # Processes used to evaluate candidate thresholds (1 = sequential)
    max_workers: int = 1

    def validate(self) -> None:
        """Validate rounding configuration."""
        if self.min_privacy_threshold < 1:
            raise ValueError(f"min_privacy_threshold must be >= 1, got {self.min_privacy_threshold}")

        if self.group_balance_diff < 0:
            raise ValueError(f"group_balance_diff must be >= 0, got {self.group_balance_diff}")

        if not 0 <= self.min_accuracy <= 100:
            raise ValueError(f"min_accuracy must be in [0, 100], got {self.min_accuracy}")

        if self.outlier_method not in OUTLIER_METHODS:
            raise ValueError(f"outlier_method must be one of {OUTLIER_METHODS}, got {self.outlier_method}")

        if self.outliers_threshold <= 0:
            raise ValueError(f"outliers_threshold must be > 0, got {self.outliers_threshold}")

        if not 0 <= self.lower_outlier_percentile <= 100:
            raise ValueError(
                f"lower_outlier_percentile must be in [0, 100], got {self.lower_outlier_percentile}"
            )

        if self.privacy_threshold is not None and self.privacy_threshold < 1:
            raise ValueError(f"privacy_threshold must be >= 1, got {self.privacy_threshold}")

        if self.search_step_divisor < 1:
            raise ValueError(f"search_step_divisor must be >= 1, got {self.search_step_divisor}")

        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")


@dataclass
class DataConfig:
    """Input/output configuration."""
    input_path: str = ""  # Empty: generate a random census
    output_path: str = ""  # Empty: <input base>_rounded.json next to the input
    input_format: str = "json"  # json or csv

    # CSV column names
    address_column: str = "address"
    balance_column: str = "balance"

    # Random census (used when no input_path is set)
    random_census_size: int = 10000
    random_max_balance: int = 10000000
    random_seed: Optional[int] = None

    # Also write the threshold sweep as CSV
    write_sweep: bool = True

    def validate(self) -> None:
        """Validate data configuration."""
        if self.input_format not in INPUT_FORMATS:
            raise ValueError(f"input_format must be one of {INPUT_FORMATS}, got {self.input_format}")
        if not self.address_column or not self.balance_column:
            raise ValueError("address_column and balance_column must be set")
        if not self.input_path:
            if self.random_census_size < 1:
                raise ValueError(f"random_census_size must be >= 1, got {self.random_census_size}")
            if not 1 <= self.random_max_balance <= MAX_RANDOM_BALANCE:
                raise ValueError(
                    f"random_max_balance must be in [1, {MAX_RANDOM_BALANCE}], got {self.random_max_balance}"
                )


@dataclass
class Config:
    """Main configuration container."""
    rounding: RoundingConfig = field(default_factory=RoundingConfig)
    data: DataConfig = field(default_factory=DataConfig)

    # Environment variable -> (section, attribute, parser)
    ENV_OVERRIDES = {
        "CENSUS_PATH": ("data", "input_path", str),
        "PRIVACY_THRESHOLD": ("rounding", "privacy_threshold", int),
        "MIN_PRIVACY_THRESHOLD": ("rounding", "min_privacy_threshold", int),
        "GROUP_BALANCE_DIFF": ("rounding", "group_balance_diff", int),
        "MIN_ACCURACY": ("rounding", "min_accuracy", float),
        "OUTLIERS_THRESHOLD": ("rounding", "outliers_threshold", float),
    }

    def validate(self) -> None:
        """Validate entire configuration."""
        self.rounding.validate()
        self.data.validate()
        logger.info("Configuration validated successfully")

    def apply_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """
        Override settings from environment variables.

        Values that do not parse are logged and ignored.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            The variables that were applied
        """
        environ = os.environ if environ is None else environ
        applied = {}
        for name, (section, attr, parse) in self.ENV_OVERRIDES.items():
            raw = environ.get(name)
            if raw is None or raw.strip() == "":
                continue
            try:
                value = parse(raw.strip())
            except ValueError:
                logger.warning(f"Ignoring {name}={raw!r}: not a valid {parse.__name__}")
                continue
            setattr(getattr(self, section), attr, value)
            applied[name] = raw
        if applied:
            logger.info(f"Environment overrides applied: {', '.join(sorted(applied))}")
        return applied

    @classmethod
    def from_ini(cls, config_path: str) -> "Config":
        """Load configuration from INI file."""
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Config file not found: {config_path}")

        parser = configparser.ConfigParser()
        parser.read(config_path, encoding='utf-8')

        config = cls()

        # Load rounding section
        if 'rounding' in parser:
            sec = parser['rounding']

            if 'min_privacy_threshold' in sec:
                config.rounding.min_privacy_threshold = int(sec['min_privacy_threshold'])
            if 'group_balance_diff' in sec:
                config.rounding.group_balance_diff = int(sec['group_balance_diff'])
            if 'min_accuracy' in sec:
                config.rounding.min_accuracy = float(sec['min_accuracy'])

            # Parse outlier settings
            if 'outlier_method' in sec:
                config.rounding.outlier_method = sec['outlier_method'].strip()
            if 'outliers_threshold' in sec:
                config.rounding.outliers_threshold = float(sec['outliers_threshold'])
            if 'lower_outlier_percentile' in sec:
                config.rounding.lower_outlier_percentile = float(sec['lower_outlier_percentile'])

            # Empty value means "search"
            if sec.get('privacy_threshold', '').strip():
                config.rounding.privacy_threshold = int(sec['privacy_threshold'])

            if 'search_step_divisor' in sec:
                config.rounding.search_step_divisor = int(sec['search_step_divisor'])
            if 'max_workers' in sec:
                config.rounding.max_workers = int(sec['max_workers'])

        # Load data section
        if 'data' in parser:
            sec = parser['data']
            config.data.input_path = sec.get('input_path', '')
            config.data.output_path = sec.get('output_path', '')
            config.data.input_format = sec.get('input_format', 'json')
            config.data.address_column = sec.get('address_column', 'address')
            config.data.balance_column = sec.get('balance_column', 'balance')
            config.data.random_census_size = int(sec.get('random_census_size', '10000'))
            config.data.random_max_balance = int(sec.get('random_max_balance', '10000000'))
            if sec.get('random_seed', '').strip():
                config.data.random_seed = int(sec['random_seed'])
            if 'write_sweep' in sec:
                config.data.write_sweep = sec.getboolean('write_sweep')

        logger.info(f"Configuration loaded from {config_path}")
        return config

    def to_ini(self, config_path: str) -> None:
        """Save configuration to INI file."""
        parser = configparser.ConfigParser()

        parser['rounding'] = {
            'min_privacy_threshold': str(self.rounding.min_privacy_threshold),
            'group_balance_diff': str(self.rounding.group_balance_diff),
            'min_accuracy': str(self.rounding.min_accuracy),
            'outlier_method': self.rounding.outlier_method,
            'outliers_threshold': str(self.rounding.outliers_threshold),
            'lower_outlier_percentile': str(self.rounding.lower_outlier_percentile),
            'privacy_threshold': (
                str(self.rounding.privacy_threshold)
                if self.rounding.privacy_threshold is not None else ''
            ),
            'search_step_divisor': str(self.rounding.search_step_divisor),
            'max_workers': str(self.rounding.max_workers),
        }

        parser['data'] = {
            'input_path': self.data.input_path,
            'output_path': self.data.output_path,
            'input_format': self.data.input_format,
            'address_column': self.data.address_column,
            'balance_column': self.data.balance_column,
            'random_census_size': str(self.data.random_census_size),
            'random_max_balance': str(self.data.random_max_balance),
            'write_sweep': str(self.data.write_sweep).lower(),
        }
        if self.data.random_seed is not None:
            parser['data']['random_seed'] = str(self.data.random_seed)

        with open(config_path, 'w', encoding='utf-8') as f:
            parser.write(f)

        logger.info(f"Configuration saved to {config_path}")
