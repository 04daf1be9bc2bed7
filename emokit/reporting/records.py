"""Flattened sample records for downstream storage and display."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..ingestion.sample import Sample

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionInfo:
    """Free-text metadata attached to every record of a session."""

    name: Optional[str] = None
    notes: Optional[str] = None
    serial: Optional[str] = None


def sample_record(sample: Sample, info: Optional[SessionInfo] = None) -> Dict[str, Any]:
    """Return *sample* as a flat dictionary, prefixed channel and quality keys."""

    record: Dict[str, Any] = {
        'timestamp': sample.timestamp.isoformat(timespec='milliseconds'),
        'battery': sample.battery,
        'counter': sample.counter,
    }
    if info is not None:
        record['session_name'] = info.name
        record['session_notes'] = info.notes
        record['serial'] = info.serial
    for channel, value in sample.channels.items():
        record[f'channel_{channel}'] = value
    for channel, value in sample.quality.items():
        record[f'quality_{channel}'] = value
    return record


class LoggingListener:
    """Log every *every*-th sample and signal when the connection breaks."""

    def __init__(self, info: Optional[SessionInfo] = None, every: int = 128) -> None:
        self._info = info
        self._every = max(every, 1)
        self._count = 0
        self.disconnected = threading.Event()

    @property
    def count(self) -> int:
        return self._count

    def receive_packet(self, sample: Sample) -> None:
        self._count += 1
        if self._count % self._every == 0:
            logger.info('%s', sample_record(sample, self._info))

    def connection_broken(self) -> None:
        logger.info('Connection broken after %d samples', self._count)
        self.disconnected.set()
