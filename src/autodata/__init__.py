"""autodata: UK vehicle data aggregation and caching engine."""

__version__ = "0.1.0"
