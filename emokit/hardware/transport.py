"""Transport layer delivering raw encrypted frames from the headset."""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Protocol

from ..config import DeviceConfig
from ..constants import CHANNELS, EMOTIV_VENDOR_IDS, FRAME_SIZE, KEY_SIZE
from ..ingestion.cipher import FrameCipher
from ..ingestion.decoder import encode_frame


class DeviceTransport(Protocol):
    """Common interface for frame sources."""

    @property
    def key(self) -> bytes:  # pragma: no cover - protocol signature
        ...

    @property
    def closed(self) -> bool:  # pragma: no cover - protocol signature
        ...

    def open(self) -> "ListedDevice":  # pragma: no cover - protocol signature
        ...

    def read_frame(self) -> bytes:  # pragma: no cover - protocol signature
        ...

    def close(self) -> None:  # pragma: no cover - protocol signature
        ...


@dataclass(slots=True)
class ListedDevice:
    """Metadata describing a connected headset."""

    index: int
    serial: Optional[str]
    description: Optional[str]
    path: Optional[str] = None
    vendor_id: int = 0
    product_id: int = 0
    interface: int = -1
    transport: str = "hid"


def derive_key(serial: str, research: bool = False) -> bytes:
    """Build the 128-bit AES key the headset derives from its serial number."""

    if not serial or len(serial) < 4:
        raise ValueError("serial must have at least 4 characters to derive a key")
    sn = serial.encode("ascii")
    s1, s2, s3, s4 = sn[-1:], sn[-2:-1], sn[-3:-2], sn[-4:-3]
    if research:
        middle = b"H" + s1 + b"\x00" + s2 + b"T" + s3 + b"\x10" + s4 + b"B"
    else:
        middle = b"T" + s3 + b"\x10" + s4 + b"B" + s1 + b"\x00" + s2 + b"H"
    key = s1 + b"\x00" + s2 + middle + s3 + b"\x00" + s4 + b"P"
    assert len(key) == KEY_SIZE
    return key


class HidAdapter(Protocol):
    """Minimal protocol for HID backends."""

    def enumerate(self) -> list[dict[str, Any]]:  # pragma: no cover - protocol signature
        ...

    def connect(self, path: bytes) -> None:  # pragma: no cover - protocol signature
        ...

    def disconnect(self) -> None:  # pragma: no cover - protocol signature
        ...

    def read(self, size: int, timeout_ms: int) -> bytes:  # pragma: no cover - protocol signature
        ...


def list_devices(
    transport: str = "hid",
    *,
    vendor_ids: Iterable[int] = EMOTIV_VENDOR_IDS,
    adapter: Optional[HidAdapter] = None,
) -> list[ListedDevice]:
    """Enumerate visible headsets for *transport*.

    Interfaces numbered 1 are listed first, since that is where the headset
    streams its encrypted reports.
    """

    transport = transport.lower()
    if transport == "sim":
        return [
            ListedDevice(
                index=0,
                serial=SimulatedTransport.DEFAULT_SERIAL,
                description="Simulated headset",
                transport="sim",
            )
        ]
    if transport != "hid":
        raise ValueError(f"Device enumeration is not implemented for transport '{transport}'")
    adapter = adapter or _default_hid_adapter_factory()
    wanted = set(vendor_ids)
    entries = [info for info in adapter.enumerate() if info.get("vendor_id") in wanted]
    entries.sort(key=lambda info: 0 if info.get("interface_number") == 1 else 1)
    devices: list[ListedDevice] = []
    for index, info in enumerate(entries):
        path = info.get("path")
        if isinstance(path, bytes):
            path = path.decode("utf-8", errors="replace")
        devices.append(
            ListedDevice(
                index=index,
                serial=info.get("serial_number") or None,
                description=info.get("product_string") or info.get("manufacturer_string"),
                path=path,
                vendor_id=info.get("vendor_id", 0),
                product_id=info.get("product_id", 0),
                interface=info.get("interface_number", -1),
                transport="hid",
            )
        )
    return devices


class HidTransport(DeviceTransport):
    """Read encrypted reports from a USB headset through a HID backend."""

    def __init__(
        self,
        config: DeviceConfig,
        adapter_factory: Optional[Callable[[DeviceConfig], HidAdapter]] = None,
        frame_size: int = FRAME_SIZE,
    ) -> None:
        self._config = config
        self._adapter_factory = adapter_factory or (lambda _config: _default_hid_adapter_factory())
        self._adapter: Optional[HidAdapter] = None
        self._device: Optional[ListedDevice] = None
        self._key: Optional[bytes] = None
        self._connected = False
        self._frame_size = frame_size

    @property
    def device(self) -> Optional[ListedDevice]:
        return self._device

    @property
    def key(self) -> bytes:
        if self._key is None:
            raise OSError("transport is not open")
        return self._key

    @property
    def closed(self) -> bool:
        return not self._connected

    def open(self) -> ListedDevice:
        if self._connected:
            assert self._device is not None
            return self._device
        adapter = self._ensure_adapter()
        devices = list_devices("hid", vendor_ids=self._config.vendor_ids, adapter=adapter)
        if not devices:
            raise OSError("No headset detected")
        target = self._select(devices)
        serial = self._config.serial or target.serial
        if not serial:
            raise OSError(f"Headset at {target.path} does not report a serial number")
        key = derive_key(serial, research=self._config.research)
        adapter.connect((target.path or "").encode("utf-8"))
        self._connected = True
        self._key = key
        target.serial = serial
        self._device = target
        return target

    def read_frame(self) -> bytes:
        if not self._connected or self._adapter is None:
            raise OSError("transport is closed")
        data = self._adapter.read(self._frame_size + 1, self._config.read_timeout_ms)
        if not data:
            raise TimeoutError(f"no report within {self._config.read_timeout_ms} ms")
        frame = bytes(data)
        if len(frame) == self._frame_size + 1:
            frame = frame[1:]
        return frame

    def close(self) -> None:
        if self._adapter and self._connected:
            try:
                self._adapter.disconnect()
            finally:
                self._connected = False

    def __enter__(self) -> "HidTransport":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def _ensure_adapter(self) -> HidAdapter:
        if self._adapter is None:
            self._adapter = self._adapter_factory(self._config)
        return self._adapter

    def _select(self, devices: list[ListedDevice]) -> ListedDevice:
        if self._config.path:
            for entry in devices:
                if entry.path == self._config.path:
                    return entry
            raise OSError(f"Path '{self._config.path}' not found among connected headsets")
        if self._config.serial:
            for entry in devices:
                if entry.serial and entry.serial.strip() == self._config.serial:
                    return entry
            raise OSError(f"Serial '{self._config.serial}' not found among connected headsets")
        return devices[0]


def create_transport(
    config: DeviceConfig,
    *,
    adapter_factory: Optional[Callable[[DeviceConfig], HidAdapter]] = None,
) -> DeviceTransport:
    """Create a transport instance based on *config.transport*."""

    transport = (config.transport or "hid").lower()
    if transport == "hid":
        return HidTransport(config, adapter_factory=adapter_factory)
    if transport == "sim":
        return SimulatedTransport(config)
    raise ValueError(f"Unsupported transport '{config.transport}'")


def _default_hid_adapter_factory() -> HidAdapter:
    from .usb import create_hid_adapter

    return create_hid_adapter()


class SimulatedTransport(DeviceTransport):
    """Produce encrypted synthetic frames for bench runs and tests."""

    DEFAULT_SERIAL = "SN20120229000SIM"

    def __init__(self, config: DeviceConfig, battery: int = 100) -> None:
        self._config = config
        serial = config.serial or self.DEFAULT_SERIAL
        self._key = derive_key(serial, research=config.research)
        self._cipher = FrameCipher(self._key)
        self._device = ListedDevice(
            index=0,
            serial=serial,
            description="Simulated headset",
            transport="sim",
        )
        self._battery = battery & 0x7F
        self._opened = False
        self._frames = 0
        self._counter = 0

    @property
    def key(self) -> bytes:
        return self._key

    @property
    def closed(self) -> bool:
        return not self._opened

    @property
    def frames_sent(self) -> int:
        return self._frames

    def open(self) -> ListedDevice:
        self._opened = True
        return self._device

    def close(self) -> None:
        self._opened = False

    def read_frame(self) -> bytes:
        if not self._opened:
            raise OSError("transport is closed")
        limit = self._config.sim_max_frames
        if self._config.sim_rate_hz > 0:
            time.sleep(1.0 / self._config.sim_rate_hz)
        self._frames += 1
        if limit is not None and self._frames >= limit:
            self._opened = False
        return self._cipher.encrypt(self._generate_plaintext())

    def __enter__(self) -> "SimulatedTransport":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def _generate_plaintext(self) -> bytes:
        if self._counter > 127:
            self._counter = 0
            return encode_frame(0x80 | self._battery, {})
        phase = self._frames / 16.0
        channels = {
            name: 8192 + int(400 * math.sin(phase + index))
            for index, name in enumerate(CHANNELS)
        }
        plaintext = encode_frame(self._counter, channels, quality=self._counter * 64)
        self._counter += 1
        return plaintext
