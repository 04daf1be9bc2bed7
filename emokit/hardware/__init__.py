"""Hardware abstraction helpers."""
from __future__ import annotations

from .transport import (
    DeviceTransport,
    HidTransport,
    ListedDevice,
    SimulatedTransport,
    create_transport,
    derive_key,
    list_devices,
)

__all__ = [
    "DeviceTransport",
    "HidTransport",
    "ListedDevice",
    "SimulatedTransport",
    "create_transport",
    "derive_key",
    "list_devices",
]
