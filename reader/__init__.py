"""Census readers and generators."""
__all__ = [
    'CensusReader',
    'CensusFormatError',
    'parse_balance',
    'generate_random_census'
]

def __getattr__(name):
    if name in ('CensusReader', 'CensusFormatError', 'parse_balance'):
        from . import census_reader
        return getattr(census_reader, name)
    elif name == 'generate_random_census':
        from .census_generator import generate_random_census
        return generate_random_census
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
