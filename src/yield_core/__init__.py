"""Yield snapshot crawler and query core."""

__version__ = "0.1.0"
