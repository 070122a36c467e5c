"""Census record definitions."""
__all__ = ['Participant', 'Group', 'total_balance', 'census_from_mapping', 'census_to_mapping']

def __getattr__(name):
    if name in __all__:
        from . import census
        return getattr(census, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
