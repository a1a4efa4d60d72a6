"""Data adapters."""

from .csv_loader import CandleCSVLoader, parse_timestamps

__all__ = ["CandleCSVLoader", "parse_timestamps"]
