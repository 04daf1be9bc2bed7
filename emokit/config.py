"""Configuration management for the emokit decode and dispatch engine."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .constants import EMOTIV_VENDOR_IDS

SUPPORTED_TRANSPORTS = {"hid", "sim"}


class OverloadPolicy(str, enum.Enum):
    """Behaviour of the worker pool when a lane queue is saturated."""

    ABORT = "abort"
    CALLER_RUNS = "caller-runs"
    DISCARD_OLDEST = "discard-oldest"
    DISCARD = "discard"

    @classmethod
    def parse(cls, value: Any) -> "OverloadPolicy":
        if isinstance(value, cls):
            return value
        candidate = str(value or "").strip().lower().replace("_", "-")
        for policy in cls:
            if policy.value == candidate:
                return policy
        allowed = ", ".join(policy.value for policy in cls)
        raise ValueError(f"overload_policy must be one of {allowed}")


def _coerce_ids(value: Any) -> Tuple[int, ...]:
    """Return *value* as a tuple of integer USB ids, accepting hex strings."""

    if value is None:
        return ()
    if isinstance(value, (int, str)):
        value = (value,)
    ids: list[int] = []
    for entry in value:
        if isinstance(entry, str):
            entry = int(entry, 0)
        ids.append(int(entry))
    return tuple(ids)


@dataclass(slots=True)
class DeviceConfig:
    """Transport parameters for the headset."""

    transport: str = "hid"
    serial: Optional[str] = None
    path: Optional[str] = None
    vendor_ids: Tuple[int, ...] = EMOTIV_VENDOR_IDS
    research: bool = False
    read_timeout_ms: int = 1000
    sim_max_frames: Optional[int] = None
    sim_rate_hz: float = 128.0

    def __post_init__(self) -> None:
        self.transport = (self.transport or "hid").strip().lower()
        if self.transport not in SUPPORTED_TRANSPORTS:
            allowed = ", ".join(sorted(SUPPORTED_TRANSPORTS))
            raise ValueError(f"transport must be one of {allowed}")
        self.vendor_ids = _coerce_ids(self.vendor_ids) or EMOTIV_VENDOR_IDS
        try:
            timeout = int(self.read_timeout_ms)
        except (TypeError, ValueError):
            timeout = 1000
        self.read_timeout_ms = max(timeout, 1)
        if self.sim_max_frames is not None and self.sim_max_frames <= 0:
            self.sim_max_frames = None
        try:
            rate = float(self.sim_rate_hz)
        except (TypeError, ValueError):
            rate = 128.0
        self.sim_rate_hz = max(rate, 0.0)


@dataclass(slots=True)
class DispatchConfig:
    """Worker pool sizing and overload behaviour, fixed for a session."""

    threads: int = 4
    queue_size: int = 256
    overload_policy: OverloadPolicy = OverloadPolicy.DISCARD

    def __post_init__(self) -> None:
        try:
            threads = int(self.threads)
        except (TypeError, ValueError):
            threads = 1
        self.threads = max(threads, 1)
        try:
            queue_size = int(self.queue_size)
        except (TypeError, ValueError):
            queue_size = 256
        self.queue_size = max(queue_size, 1)
        self.overload_policy = OverloadPolicy.parse(self.overload_policy)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'threads': self.threads,
            'queue_size': self.queue_size,
            'overload_policy': self.overload_policy.value,
        }


@dataclass(slots=True)
class SessionConfig:
    """Free-text session metadata and sample logging cadence."""

    name: Optional[str] = None
    notes: Optional[str] = None
    log_samples_every: int = 128

    def __post_init__(self) -> None:
        if self.log_samples_every < 1:
            self.log_samples_every = 1


@dataclass(slots=True)
class AppConfig:
    """Top-level application configuration bundle."""

    device: DeviceConfig = field(default_factory=DeviceConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    session: SessionConfig = field(default_factory=SessionConfig)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        """Create a configuration instance from a nested dictionary."""

        def _section(name: str, factory: Any) -> Any:
            data = payload.get(name, {}) if payload else {}
            if isinstance(data, dict):
                return factory(**data)
            raise TypeError(f"Expected mapping for section '{name}', got {type(data).__name__}")

        return cls(
            device=_section("device", DeviceConfig),
            dispatch=_section("dispatch", DispatchConfig),
            session=_section("session", SessionConfig),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return a serialisable representation of the configuration."""

        def _asdict(obj: Any) -> Dict[str, Any]:
            return {field: getattr(obj, field) for field in obj.__dataclass_fields__}  # type: ignore[attr-defined]

        device_payload = _asdict(self.device)
        device_payload['vendor_ids'] = list(self.device.vendor_ids)
        return {
            'device': device_payload,
            'dispatch': self.dispatch.to_dict(),
            'session': _asdict(self.session),
        }


def load_config(path: Optional[Path]) -> AppConfig:
    """Load configuration from *path* if provided, otherwise return defaults."""

    if path is None:
        return AppConfig()
    resolved = path.expanduser()
    if not resolved.exists():
        return AppConfig()
    payload: Dict[str, Any]
    suffix = resolved.suffix.lower()
    if suffix in {".json", ".jsn"}:
        payload = _load_json(resolved)
    elif suffix in {".toml", ".tml"}:
        payload = _load_toml(resolved)
    elif suffix in {".yaml", ".yml"}:
        payload = _load_yaml(resolved)
    else:
        raise ValueError(f"Unsupported configuration format: {resolved.suffix}")
    return AppConfig.from_dict(payload)


def _load_json(path: Path) -> Dict[str, Any]:
    import json

    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _load_toml(path: Path) -> Dict[str, Any]:
    try:
        import tomllib  # Python >= 3.11
    except ModuleNotFoundError as exc:  # pragma: no cover - runtime guard
        raise RuntimeError("tomllib is required to parse TOML configuration files") from exc
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        import yaml  # type: ignore
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError("PyYAML is required to parse YAML configuration files") from exc
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}
