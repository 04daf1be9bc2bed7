"""HID adapter implementation backed by optional hidapi support."""
from __future__ import annotations

from typing import Any, Callable, Optional

try:
    import hid  # type: ignore
except ImportError:  # pragma: no cover - optional dependency
    hid = None


class HidapiAdapter:
    """Thin wrapper around a ``hid.device`` handle."""

    def __init__(self, device_factory: Optional[Callable[[], Any]] = None) -> None:
        if device_factory is None:
            if hid is None:
                raise RuntimeError(
                    "HID support requires the 'hidapi' package. Install it or supply a custom adapter factory."
                )
            device_factory = hid.device
        self._device_factory = device_factory
        self._handle: Any = None

    def enumerate(self) -> list[dict[str, Any]]:
        if hid is None:
            return []
        return list(hid.enumerate())

    def connect(self, path: bytes) -> None:
        if self._handle is not None:
            return
        handle = self._device_factory()
        try:
            handle.open_path(path)
        except (IOError, OSError) as exc:
            raise OSError(f"Failed to open HID device {path!r}: {exc}") from exc
        self._handle = handle

    def disconnect(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        handle.close()

    def read(self, size: int, timeout_ms: int) -> bytes:
        if self._handle is None:
            raise OSError("HID device is not connected")
        data = self._handle.read(size, timeout_ms)
        return bytes(data or b"")


def create_hid_adapter() -> HidapiAdapter:
    """Create a hidapi-backed adapter."""

    return HidapiAdapter()


__all__ = ["HidapiAdapter", "create_hid_adapter"]
