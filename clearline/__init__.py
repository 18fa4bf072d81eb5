"""Clearline: boundary violation and RSD trigger detection for messaging."""

__version__ = "0.1.0"
