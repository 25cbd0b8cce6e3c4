"""Pizza 42 orders API."""

__version__ = "0.1.0"
