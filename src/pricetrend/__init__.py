"""Hourly asset price series: bulk import, live polling and bounded range queries."""

__version__ = "0.1.0"
