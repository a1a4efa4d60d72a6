"""Calendar helpers for time-based filtering."""

from .session_window import SessionWindow

__all__ = ['SessionWindow']
