"""Poly Screener: cached spot prices and clock-aligned window tracking."""

__version__ = "1.0.0"
