"""Sequence counter, battery and contact-quality tracking across frames."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from ..constants import (
    BATTERY_MASK,
    COUNTER_MODULUS,
    QUALITY_FIRST_PASS,
    QUALITY_SECOND_PASS_END,
    QUALITY_SECOND_PASS_START,
)
from ..errors import SequenceAnomaly
from .decoder import DecodedFrame, read_quality
from .sample import Sample

logger = logging.getLogger(__name__)


def quality_channel(counter: int) -> Optional[str]:
    """Return the channel whose quality frame *counter* carries, if any.

    Counters 76 and above are left unmapped; the device's third multiplex
    pass has not been decoded.
    """

    if QUALITY_SECOND_PASS_START <= counter <= QUALITY_SECOND_PASS_END:
        counter -= QUALITY_SECOND_PASS_START
    if 0 <= counter < len(QUALITY_FIRST_PASS):
        return QUALITY_FIRST_PASS[counter]
    return None


@dataclass(slots=True)
class TrackerState:
    """Mutable decoder state, owned by the polling thread."""

    last_counter: Optional[int] = None
    battery: int = 0
    quality: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TrackerStep:
    sample: Sample
    anomaly: Optional[SequenceAnomaly] = None


class SequenceTracker:
    """Apply one frame to :class:`TrackerState` and emit a :class:`Sample`."""

    def __init__(self, state: Optional[TrackerState] = None) -> None:
        self._state = state or TrackerState()

    @property
    def state(self) -> TrackerState:
        return self._state

    def step(self, decoded: DecodedFrame, plaintext: bytes, timestamp: datetime) -> TrackerStep:
        state = self._state
        counter = decoded.counter
        anomaly: Optional[SequenceAnomaly] = None
        if counter < 0:
            state.battery = counter & BATTERY_MASK
            # the battery frame occupies the slot after 127
            state.last_counter = COUNTER_MODULUS - 1
        else:
            if state.last_counter is not None:
                expected = (state.last_counter + 1) % COUNTER_MODULUS
                if counter != expected:
                    anomaly = SequenceAnomaly(expected, counter)
                    logger.debug("Missed frames: %s", anomaly)
            state.last_counter = counter
            channel = quality_channel(counter)
            if channel is not None:
                state.quality[channel] = read_quality(plaintext)
        sample = Sample(
            timestamp=timestamp,
            battery=state.battery,
            channels=decoded.channels,
            quality=state.quality,
            counter=counter,
        )
        return TrackerStep(sample=sample, anomaly=anomaly)
