"""Bit-level decoding of plaintext frames into channel values."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence

from ..constants import CHANNELS, FRAME_SIZE, QUALITY_BITS, SENSOR_BITS
from ..errors import DecodeError


@dataclass(frozen=True, slots=True)
class DecodedFrame:
    """Counter byte (signed) and the 14 raw channel readings of one frame."""

    counter: int
    channels: Dict[str, int]


def _signed_byte(value: int) -> int:
    return value - 256 if value > 127 else value


def read_bits(plaintext: bytes, bits: Sequence[int]) -> int:
    """Assemble a value from *bits*, least significant entry first."""

    level = 0
    for bit in reversed(bits):
        level = (level << 1) | ((plaintext[bit // 8 + 1] >> (bit % 8)) & 1)
    return level


def _check_length(plaintext: bytes) -> None:
    if len(plaintext) != FRAME_SIZE:
        raise DecodeError(f"plaintext must be {FRAME_SIZE} bytes, got {len(plaintext)}")


def decode_frame(plaintext: bytes) -> DecodedFrame:
    _check_length(plaintext)
    channels = {name: read_bits(plaintext, SENSOR_BITS[name]) for name in CHANNELS}
    return DecodedFrame(counter=_signed_byte(plaintext[0]), channels=channels)


def read_quality(plaintext: bytes) -> int:
    _check_length(plaintext)
    return read_bits(plaintext, QUALITY_BITS)


def encode_frame(counter: int, channels: Dict[str, int], quality: int = 0) -> bytes:
    """Build a plaintext frame, the inverse of :func:`decode_frame`.

    Used by the simulated transport; unknown channels default to zero. The
    quality field shares two bits with O1, where the channel value wins.
    """

    buffer = bytearray(FRAME_SIZE)
    buffer[0] = counter & 0xFF

    def _write(bits: Sequence[int], value: int) -> None:
        for position, bit in enumerate(bits):
            index = bit // 8 + 1
            if (value >> position) & 1:
                buffer[index] |= 1 << (bit % 8)
            else:
                buffer[index] &= ~(1 << (bit % 8)) & 0xFF

    _write(QUALITY_BITS, quality & 0x3FFF)
    for name in CHANNELS:
        _write(SENSOR_BITS[name], channels.get(name, 0) & 0x3FFF)
    return bytes(buffer)
