"""Output writers and reports."""
__all__ = ['CensusWriter', 'rounded_output_path', 'CensusSummary', 'summarize_census']

def __getattr__(name):
    if name in ('CensusWriter', 'rounded_output_path'):
        from . import census_writer
        return getattr(census_writer, name)
    elif name in ('CensusSummary', 'summarize_census'):
        from . import census_report
        return getattr(census_report, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
