"""Frame decryption, decoding and sequence tracking."""
from __future__ import annotations

from .cipher import FrameCipher
from .decoder import DecodedFrame, decode_frame, encode_frame, read_quality
from .sample import Sample
from .tracker import SequenceTracker, TrackerState, TrackerStep, quality_channel

__all__ = [
    "DecodedFrame",
    "FrameCipher",
    "Sample",
    "SequenceTracker",
    "TrackerState",
    "TrackerStep",
    "decode_frame",
    "encode_frame",
    "quality_channel",
    "read_quality",
]
