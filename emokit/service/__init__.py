"""Service helpers that run alongside a session."""
from __future__ import annotations

from .watchdog import CaptureWatchdog, WatchdogEvent

__all__ = ["CaptureWatchdog", "WatchdogEvent"]
