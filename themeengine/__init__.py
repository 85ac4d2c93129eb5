"""Versioned theme configuration engine."""

__version__ = "0.1.0"
