"""Historical candle acquisition, caching and aggregation for the kwant dashboard."""

__version__ = "0.1.0"
