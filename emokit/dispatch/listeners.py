"""Listener registry and fan-out of samples to registered listeners."""
from __future__ import annotations

import itertools
import logging
import threading
from typing import Optional, Protocol, Tuple

from ..config import DispatchConfig
from ..errors import DispatchRejected, ListenerFailure
from ..ingestion.sample import Sample
from .pool import PoolStats, WorkerPool

logger = logging.getLogger(__name__)


class Listener(Protocol):
    """Consumer of decoded samples."""

    def receive_packet(self, sample: Sample) -> None:  # pragma: no cover - protocol signature
        ...

    def connection_broken(self) -> None:  # pragma: no cover - protocol signature
        ...


class ListenerRegistry:
    """Ordered, identity-deduplicated listener collection.

    Mutations swap in a new tuple under a lock; readers iterate the tuple
    they were handed, so registration from other threads never disturbs an
    in-flight iteration.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Tuple[Tuple[Listener, int], ...] = ()
        self._ordinals = itertools.count()

    def add(self, listener: Listener) -> bool:
        with self._lock:
            if any(entry is listener for entry, _ in self._entries):
                return False
            self._entries = self._entries + ((listener, next(self._ordinals)),)
            return True

    def remove(self, listener: Listener) -> bool:
        with self._lock:
            remaining = tuple(item for item in self._entries if item[0] is not listener)
            removed = len(remaining) != len(self._entries)
            self._entries = remaining
            return removed

    def snapshot(self) -> Tuple[Tuple[Listener, int], ...]:
        return self._entries

    def listeners(self) -> Tuple[Listener, ...]:
        return tuple(listener for listener, _ in self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, listener: object) -> bool:
        return any(entry is listener for entry, _ in self._entries)


def _deliver(listener: Listener, callback: str, *args: object) -> None:
    try:
        getattr(listener, callback)(*args)
    except Exception as exc:  # pylint: disable=broad-except
        raise ListenerFailure(listener, callback, exc) from exc


class Dispatcher:
    """Fan samples out to listeners on a bounded :class:`WorkerPool`.

    Each listener gets a fixed ordering key at registration, so its
    callbacks run in frame order on one pool lane while other listeners
    proceed in parallel.
    """

    def __init__(
        self,
        config: Optional[DispatchConfig] = None,
        *,
        pool: Optional[WorkerPool] = None,
    ) -> None:
        self._config = config or DispatchConfig()
        self._pool = pool or WorkerPool(
            self._config.threads,
            self._config.queue_size,
            self._config.overload_policy,
        )
        self._registry = ListenerRegistry()

    @property
    def pool(self) -> WorkerPool:
        return self._pool

    @property
    def stats(self) -> PoolStats:
        return self._pool.stats

    @property
    def listeners(self) -> Tuple[Listener, ...]:
        return self._registry.listeners()

    def register(self, listener: Listener) -> None:
        if self._registry.add(listener):
            logger.debug("Registered listener %r", listener)

    def unregister(self, listener: Listener) -> None:
        if self._registry.remove(listener):
            logger.debug("Unregistered listener %r", listener)

    def emit(self, sample: Sample) -> None:
        """Submit one ``receive_packet`` task per registered listener.

        Under the abort policy every listener is still offered the sample;
        the rejections are then raised together as :class:`DispatchRejected`.
        """

        rejected = 0
        for listener, ordinal in self._registry.snapshot():
            try:
                self._pool.submit(ordinal, lambda target=listener: _deliver(target, "receive_packet", sample))
            except DispatchRejected:
                rejected += 1
        if rejected:
            raise DispatchRejected(f"{rejected} listener task(s) rejected", rejected=rejected)

    def emit_disconnected(self) -> None:
        """Queue ``connection_broken`` for every listener behind its pending samples.

        Never blocks and is never discarded, even when a lane is saturated.
        """

        for listener, ordinal in self._registry.snapshot():
            self._pool.submit(ordinal, lambda target=listener: _deliver(target, "connection_broken"), guaranteed=True)

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        self._pool.shutdown(wait=wait, timeout=timeout)
