"""Signage content scheduler."""

__version__ = "1.0.0"
