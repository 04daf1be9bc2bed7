"""Sample records and logging listeners for downstream consumers."""
from __future__ import annotations

from .records import LoggingListener, SessionInfo, sample_record

__all__ = ["LoggingListener", "SessionInfo", "sample_record"]
