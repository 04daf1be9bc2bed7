"""Immutable sample snapshots handed to listeners."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True, slots=True)
class Sample:
    """One decoded frame as seen by every listener.

    ``channels`` always holds all 14 channels. ``quality`` only holds the
    channels whose contact quality has been multiplexed in so far. Both are
    read-only views over private copies, so a sample never changes after
    construction.
    """

    timestamp: datetime
    battery: int
    channels: Mapping[str, int]
    quality: Mapping[str, int] = field(default_factory=dict)
    counter: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "channels", MappingProxyType(dict(self.channels)))
        object.__setattr__(self, "quality", MappingProxyType(dict(self.quality)))

    @property
    def is_battery_frame(self) -> bool:
        return self.counter is not None and self.counter < 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(timespec="milliseconds"),
            "battery": self.battery,
            "counter": self.counter,
            "channels": dict(self.channels),
            "quality": dict(self.quality),
        }
