"""Session lifecycle entry points."""
from __future__ import annotations

from .session import Session, SessionState, SessionStats

__all__ = ["Session", "SessionState", "SessionStats"]
