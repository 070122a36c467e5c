"""Census rounding engine."""
__all__ = [
    'group_and_round',
    'adaptive_group_and_round',
    'fixed_group_and_round',
    'round_census',
    'ThresholdSearch',
    'RoundingStatus',
    'CensusRoundingResult'
]

def __getattr__(name):
    if name in __all__:
        from . import census_rounding
        return getattr(census_rounding, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
