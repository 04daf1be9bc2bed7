"""Listener registration and concurrent sample fan-out."""
from __future__ import annotations

from ..config import OverloadPolicy
from .listeners import Dispatcher, Listener, ListenerRegistry
from .pool import PoolStats, WorkerPool

__all__ = [
    "Dispatcher",
    "Listener",
    "ListenerRegistry",
    "OverloadPolicy",
    "PoolStats",
    "WorkerPool",
]
