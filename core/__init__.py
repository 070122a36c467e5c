"""
Rounded Census
==============
Balance anonymization for token-holder censuses.

Replaces each holder's balance by a value shared with similar holders:
- Statistical outliers are set aside and kept exact
- Holders are grouped by balance with a minimum group size (privacy threshold)
- Each group is rounded to the longest leading-digit prefix its members share
- The threshold is searched to preserve as much of the total balance as possible
"""

__version__ = "1.0.0"
__author__ = "Rounded Census Team"

from .config import Config, RoundingConfig, DataConfig

__all__ = [
    # Config
    "Config", "RoundingConfig", "DataConfig",
    # Pipeline
    "CensusPipeline", "PipelineResult",
]


def __getattr__(name):
    if name in ("CensusPipeline", "PipelineResult"):
        from . import pipeline
        return getattr(pipeline, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
