"""Plowline analytics event viewer."""

__version__ = "0.1.0"
