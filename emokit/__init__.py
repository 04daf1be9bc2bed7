"""Top-level package for the emokit headset decode and dispatch engine."""
from __future__ import annotations

from .acquisition import Session, SessionState, SessionStats
from .config import AppConfig, DeviceConfig, DispatchConfig, load_config
from .dispatch import Dispatcher, Listener, OverloadPolicy
from .ingestion import Sample

__all__ = [
    "AppConfig",
    "DeviceConfig",
    "DispatchConfig",
    "Dispatcher",
    "Listener",
    "OverloadPolicy",
    "Sample",
    "Session",
    "SessionState",
    "SessionStats",
    "load_config",
]
