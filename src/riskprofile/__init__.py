"""Versioned risk-profiling framework engine."""

__version__ = "1.0.0"
