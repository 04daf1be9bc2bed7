from __future__ import annotations

import types
from collections import deque
from typing import Any, Deque, List, Optional

import pytest

import emokit.hardware.usb as usb_module
from emokit.config import DeviceConfig
from emokit.hardware import HidTransport, SimulatedTransport, create_transport, derive_key, list_devices
from emokit.ingestion import FrameCipher, decode_frame


def _info(path: bytes, serial: str, interface: int, vendor_id: int = 0x1234) -> dict[str, Any]:
    return {
        "path": path,
        "serial_number": serial,
        "product_string": "Brain Waves",
        "manufacturer_string": "Emotiv Systems Pty Ltd",
        "vendor_id": vendor_id,
        "product_id": 0xED02,
        "interface_number": interface,
    }


class FakeHidAdapter:
    """In-memory HID adapter used for unit tests."""

    def __init__(self, devices: List[dict[str, Any]], reports: Optional[List[bytes]] = None) -> None:
        self.devices = devices
        self.reports: Deque[bytes] = deque(reports or [])
        self.connected_path: Optional[bytes] = None
        self.disconnects = 0
        self.read_sizes: List[int] = []

    def enumerate(self) -> list[dict[str, Any]]:
        return list(self.devices)

    def connect(self, path: bytes) -> None:
        self.connected_path = path

    def disconnect(self) -> None:
        self.disconnects += 1
        self.connected_path = None

    def read(self, size: int, timeout_ms: int) -> bytes:
        self.read_sizes.append(size)
        if self.reports:
            return self.reports.popleft()
        return b""


def test_create_transport_selects_backend() -> None:
    assert isinstance(create_transport(DeviceConfig()), HidTransport)
    assert isinstance(create_transport(DeviceConfig(transport="sim")), SimulatedTransport)


def test_unknown_transport_is_rejected() -> None:
    with pytest.raises(ValueError):
        DeviceConfig(transport="ble")


def test_list_devices_prefers_interface_one_and_filters_vendor() -> None:
    adapter = FakeHidAdapter(
        [
            _info(b"/dev/hidraw0", "SN0001", 0),
            _info(b"/dev/hidraw9", "OTHER", 1, vendor_id=0x0001),
            _info(b"/dev/hidraw1", "SN0001", 1),
        ]
    )

    devices = list_devices(adapter=adapter)

    assert [device.path for device in devices] == ["/dev/hidraw1", "/dev/hidraw0"]
    assert [device.index for device in devices] == [0, 1]
    assert devices[0].interface == 1
    assert devices[0].description == "Brain Waves"


def test_list_devices_sim_reports_single_headset() -> None:
    devices = list_devices("sim")
    assert len(devices) == 1
    assert devices[0].serial == SimulatedTransport.DEFAULT_SERIAL
    assert devices[0].transport == "sim"


def test_hid_transport_opens_interface_one_and_derives_key() -> None:
    adapter = FakeHidAdapter([_info(b"/dev/hidraw0", "SN12345678", 0), _info(b"/dev/hidraw1", "SN12345678", 1)])
    transport = HidTransport(DeviceConfig(), adapter_factory=lambda _config: adapter)

    device = transport.open()

    assert device.path == "/dev/hidraw1"
    assert adapter.connected_path == b"/dev/hidraw1"
    assert transport.key == derive_key("SN12345678")
    assert not transport.closed


def test_hid_transport_research_key_and_serial_override() -> None:
    adapter = FakeHidAdapter([_info(b"/dev/hidraw1", "", 1)])
    config = DeviceConfig(serial="SN87654321", research=True)
    transport = HidTransport(config, adapter_factory=lambda _config: adapter)

    with pytest.raises(OSError):
        transport.open()

    config = DeviceConfig(path="/dev/hidraw1", serial="SN87654321", research=True)
    transport = HidTransport(config, adapter_factory=lambda _config: adapter)
    device = transport.open()
    assert device.serial == "SN87654321"
    assert transport.key == derive_key("SN87654321", research=True)


def test_hid_transport_strips_report_id_and_times_out() -> None:
    key = derive_key("SN12345678")
    cipher = FrameCipher(key)
    frame = cipher.encrypt(bytes([5]) + bytes(31))
    adapter = FakeHidAdapter([_info(b"/dev/hidraw1", "SN12345678", 1)], reports=[b"\x00" + frame, frame])
    transport = HidTransport(DeviceConfig(read_timeout_ms=10), adapter_factory=lambda _config: adapter)
    transport.open()

    assert transport.read_frame() == frame
    assert transport.read_frame() == frame
    assert adapter.read_sizes == [33, 33]
    assert decode_frame(cipher.decrypt(frame)).counter == 5

    with pytest.raises(TimeoutError):
        transport.read_frame()


def test_hid_transport_without_devices_raises() -> None:
    transport = HidTransport(DeviceConfig(), adapter_factory=lambda _config: FakeHidAdapter([]))
    with pytest.raises(OSError):
        transport.open()


def test_hid_transport_unknown_serial_raises() -> None:
    adapter = FakeHidAdapter([_info(b"/dev/hidraw1", "SN12345678", 1)])
    transport = HidTransport(DeviceConfig(serial="SN00000000"), adapter_factory=lambda _config: adapter)
    with pytest.raises(OSError):
        transport.open()


def test_hid_transport_close_is_idempotent() -> None:
    adapter = FakeHidAdapter([_info(b"/dev/hidraw1", "SN12345678", 1)])
    transport = HidTransport(DeviceConfig(), adapter_factory=lambda _config: adapter)
    with transport:
        assert not transport.closed
    transport.close()

    assert transport.closed
    assert adapter.disconnects == 1
    with pytest.raises(OSError):
        transport.read_frame()


def test_default_hid_adapter_requires_hidapi(monkeypatch) -> None:
    monkeypatch.setattr(usb_module, "hid", None)
    transport = create_transport(DeviceConfig())
    with pytest.raises(RuntimeError):
        transport.open()


def test_default_hid_adapter_uses_hidapi_when_available(monkeypatch) -> None:
    class DummyDevice:
        def __init__(self) -> None:
            self.opened: Optional[bytes] = None
            self.closed = False

        def open_path(self, path: bytes) -> None:
            self.opened = path

        def read(self, size: int, timeout_ms: int) -> list[int]:
            return [0] + list(range(32))

        def close(self) -> None:
            self.closed = True

    handles: List[DummyDevice] = []

    def device_factory() -> DummyDevice:
        handle = DummyDevice()
        handles.append(handle)
        return handle

    fake_hid = types.SimpleNamespace(
        enumerate=lambda: [_info(b"/dev/hidraw3", "SN12345678", 1)],
        device=device_factory,
    )
    monkeypatch.setattr(usb_module, "hid", fake_hid)

    transport = create_transport(DeviceConfig())
    device = transport.open()

    assert device.path == "/dev/hidraw3"
    assert handles[0].opened == b"/dev/hidraw3"
    assert transport.read_frame() == bytes(range(32))
    transport.close()
    assert handles[0].closed


def test_simulated_transport_emits_battery_frame_after_counter_wrap() -> None:
    config = DeviceConfig(transport="sim", sim_rate_hz=0, sim_max_frames=130)
    transport = SimulatedTransport(config, battery=42)
    transport.open()
    cipher = FrameCipher(transport.key)

    counters = []
    while not transport.closed:
        counters.append(decode_frame(cipher.decrypt(transport.read_frame())).counter)

    assert counters[:128] == list(range(128))
    assert counters[128] == -128 | 42
    assert counters[129] == 0
    assert transport.frames_sent == 130
