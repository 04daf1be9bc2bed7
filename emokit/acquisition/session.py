"""Session binding one headset transport to the decode and dispatch pipeline."""
from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from ..config import DispatchConfig
from ..dispatch import Dispatcher, Listener
from ..errors import FATAL_ERRORS, DispatchRejected, UsageError
from ..hardware import DeviceTransport, ListedDevice
from ..ingestion import FrameCipher, SequenceTracker, decode_frame

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    CREATED = "created"
    RUNNING = "running"
    CLOSED = "closed"


@dataclass(slots=True)
class SessionStats:
    frames: int = 0
    battery_frames: int = 0
    sequence_anomalies: int = 0
    rejected_emits: int = 0
    last_frame_at: Optional[datetime] = None
    last_error: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session:
    """Poll the headset on a background thread and fan samples out to listeners.

    The transport is opened on construction so that the serial and key are
    available straight away. :meth:`start` may be called once; a closed
    session cannot be restarted, a new one must be built instead.
    """

    def __init__(
        self,
        transport: DeviceTransport,
        config: Optional[DispatchConfig] = None,
        *,
        dispatcher: Optional[Dispatcher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._transport = transport
        self._device = transport.open()
        try:
            self._cipher = FrameCipher(transport.key)
        except Exception:
            transport.close()
            raise
        self._dispatcher = dispatcher or Dispatcher(config or DispatchConfig())
        self._tracker = SequenceTracker()
        self._clock = clock or _utcnow
        self._stats = SessionStats()
        self._state = SessionState.CREATED
        self._lock = threading.Lock()
        self._started = False
        self._transport_closed = False
        self._disconnected = False
        self._closing = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def device(self) -> ListedDevice:
        return self._device

    @property
    def serial(self) -> Optional[str]:
        return self._device.serial

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def stats(self) -> SessionStats:
        return self._stats

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def tracker(self) -> SequenceTracker:
        return self._tracker

    def add_listener(self, listener: Listener) -> None:
        self._dispatcher.register(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._dispatcher.unregister(listener)

    def start(self) -> None:
        """Spawn the polling thread. Raises :class:`UsageError` on a second call."""

        with self._lock:
            if self._state is SessionState.CLOSED:
                raise UsageError("Session is closed; create a new session")
            if self._started:
                raise UsageError("Session.start() cannot be called more than once")
            self._started = True
            self._state = SessionState.RUNNING
            self._thread = threading.Thread(
                target=self._run,
                name="emokit-poller",
                daemon=True,
            )
        logger.info("Session started for headset %s", self.serial)
        self._thread.start()

    def close(self) -> None:
        """Stop emitting and close the transport. Safe to call repeatedly from any thread."""

        self._closing.set()
        self._close_transport()
        with self._lock:
            never_started = not self._started
            if never_started:
                self._started = True
                self._state = SessionState.CLOSED
        if never_started:
            self._dispatcher.shutdown(wait=False)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the polling thread; returns ``True`` once it has finished."""

        thread = self._thread
        if thread is None:
            return True
        if thread is not threading.current_thread():
            thread.join(timeout)
        return not thread.is_alive()

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _run(self) -> None:
        try:
            self._poll()
        except Exception as exc:  # pylint: disable=broad-except
            if self._closing.is_set():
                logger.debug("Polling stopped after close: %r", exc)
                return
            self._stats.last_error = repr(exc)
            if isinstance(exc, FATAL_ERRORS):
                logger.error("Problem when polling: %s", exc, exc_info=exc)
            else:
                logger.exception("Unexpected failure when polling")
        finally:
            self._terminate()

    def _poll(self) -> None:
        transport = self._transport
        stats = self._stats
        while not self._closing.is_set() and not transport.closed:
            frame = transport.read_frame()
            timestamp = self._clock()
            plaintext = self._cipher.decrypt(frame)
            decoded = decode_frame(plaintext)
            step = self._tracker.step(decoded, plaintext, timestamp)
            stats.frames += 1
            stats.last_frame_at = timestamp
            if decoded.counter < 0:
                stats.battery_frames += 1
            if step.anomaly is not None:
                stats.sequence_anomalies += 1
            if self._closing.is_set():
                break
            try:
                self._dispatcher.emit(step.sample)
            except DispatchRejected as exc:
                stats.rejected_emits += exc.rejected
                logger.warning("Sample at counter %s not delivered: %s", decoded.counter, exc)

    def _terminate(self) -> None:
        self._close_transport()
        with self._lock:
            notify = not self._disconnected
            self._disconnected = True
        if notify:
            self._dispatcher.emit_disconnected()
        self._dispatcher.shutdown(wait=False)
        self._state = SessionState.CLOSED
        logger.info("Session for headset %s closed after %d frames", self.serial, self._stats.frames)

    def _close_transport(self) -> None:
        with self._lock:
            if self._transport_closed:
                return
            self._transport_closed = True
        try:
            self._transport.close()
        except OSError as exc:
            logger.warning("Failed to close transport cleanly: %s", exc)
