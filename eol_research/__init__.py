"""Lifecycle milestone research and extraction engine."""

__version__ = "1.0.0"
