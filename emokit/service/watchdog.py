"""Watchdog reporting when a running session stops producing frames."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional

from ..acquisition.session import SessionState

if TYPE_CHECKING:
    from ..acquisition.session import Session, SessionStats

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WatchdogEvent:
    """Represents a lifecycle event emitted by a watchdog."""

    kind: str
    message: str
    occurred_at: datetime
    payload: Optional[dict[str, Any]] = None


class CaptureWatchdog:
    """Warn when no frames arrive within *timeout_s* and report when the session closes.

    The watchdog only observes; it never reconnects or restarts a session.
    """

    def __init__(
        self,
        session: 'Session',
        timeout_s: float = 5.0,
        poll_interval_s: float = 1.0,
        on_event: Optional[Callable[[WatchdogEvent], None]] = None,
    ) -> None:
        if timeout_s <= 0:
            raise ValueError('timeout_s must be positive')
        if poll_interval_s <= 0:
            raise ValueError('poll_interval_s must be positive')
        self._session = session
        self._timeout_s = timeout_s
        self._poll_interval_s = poll_interval_s
        self._on_event = on_event
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._alert_active = False
        self._last_frame_count = 0
        self._started_at: Optional[datetime] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._started_at = datetime.now(timezone.utc)
        self._thread = threading.Thread(target=self._run, name='capture-watchdog', daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)

    def _emit(self, kind: str, message: str, payload: Optional[dict[str, Any]] = None) -> None:
        event = WatchdogEvent(kind=kind, message=message, occurred_at=datetime.now(timezone.utc), payload=payload)
        level = logging.WARNING if kind == 'timeout' else logging.INFO
        logger.log(level, '%s: %s %s', kind, message, payload or '')
        if not self._on_event:
            return
        try:
            self._on_event(event)
        except Exception:  # pylint: disable=broad-except
            logger.exception('Watchdog event handler failed')

    def _run(self) -> None:
        while not self._stop.wait(self._poll_interval_s):
            stats = self._session.stats
            if self._session.state is SessionState.CLOSED:
                self._emit('closed', 'Session closed', _summary(stats))
                return

            frames = stats.frames
            if frames > self._last_frame_count:
                self._last_frame_count = frames
                if self._alert_active:
                    self._alert_active = False
                    self._emit('recovery', 'Frames received after watchdog timeout', _summary(stats))
                continue

            reference = stats.last_frame_at or self._started_at
            if reference is None or self._alert_active:
                continue
            elapsed = (datetime.now(timezone.utc) - reference).total_seconds()
            if elapsed >= self._timeout_s:
                self._alert_active = True
                self._emit(
                    'timeout',
                    'No frames observed within watchdog timeout',
                    {'elapsed_s': elapsed, 'state': self._session.state.value, **_summary(stats)},
                )


def _summary(stats: 'SessionStats') -> dict[str, Any]:
    return {
        'frames': stats.frames,
        'battery_frames': stats.battery_frames,
        'sequence_anomalies': stats.sequence_anomalies,
        'last_error': stats.last_error,
    }
