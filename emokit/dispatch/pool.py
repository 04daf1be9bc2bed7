"""Bounded, lane-striped worker pool with a configurable overload policy."""
from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from queue import Empty, Full, Queue
from typing import Callable, Deque, List, Optional

from ..config import OverloadPolicy
from ..errors import DispatchRejected, UsageError

logger = logging.getLogger(__name__)

Task = Callable[[], None]


@dataclass(slots=True)
class PoolStats:
    submitted: int = 0
    completed: int = 0
    failed: int = 0
    discarded: int = 0
    caller_runs: int = 0
    rejected: int = 0


class _Lane:
    """One worker thread draining one bounded FIFO queue.

    Guaranteed tasks that find the queue full wait in ``overflow`` and run
    once everything queued ahead of them has run.
    """

    def __init__(self, pool: "WorkerPool", index: int, queue_size: int) -> None:
        self.queue: Queue[Task] = Queue(maxsize=queue_size)
        self.overflow: Deque[Task] = deque()
        self.lock = threading.Lock()
        self.thread = threading.Thread(
            target=pool._worker_loop,  # pylint: disable=protected-access
            args=(self,),
            name=f"{pool.name}-{index}",
            daemon=True,
        )

    def put_guaranteed(self, task: Task) -> None:
        with self.lock:
            if not self.overflow:
                try:
                    self.queue.put_nowait(task)
                    return
                except Full:
                    pass
            self.overflow.append(task)

    def pop_overflow(self) -> Optional[Task]:
        with self.lock:
            return self.overflow.popleft() if self.overflow else None


class WorkerPool:
    """Run tasks on a fixed set of lanes, one thread per lane.

    Tasks submitted with the same ordering key always land on the same lane
    and therefore run in submission order; different keys may run
    concurrently. When a lane queue is full the configured
    :class:`OverloadPolicy` decides what happens to the new task.

    Under ``caller-runs`` an overflowing task runs at once on the submitting
    thread, so it can overtake tasks already queued for the same key.
    """

    def __init__(
        self,
        threads: int = 4,
        queue_size: int = 256,
        policy: OverloadPolicy = OverloadPolicy.DISCARD,
        *,
        name: str = "emokit-dispatch",
        poll_interval_s: float = 0.1,
    ) -> None:
        if threads < 1:
            raise ValueError("threads must be at least 1")
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self.name = name
        self._policy = OverloadPolicy.parse(policy)
        self._poll_interval_s = max(poll_interval_s, 0.01)
        self._stats = PoolStats()
        self._stats_lock = threading.Lock()
        self._shutdown = threading.Event()
        self._lanes: List[_Lane] = [_Lane(self, index, queue_size) for index in range(threads)]
        for lane in self._lanes:
            lane.thread.start()

    @property
    def policy(self) -> OverloadPolicy:
        return self._policy

    @property
    def threads(self) -> int:
        return len(self._lanes)

    @property
    def stats(self) -> PoolStats:
        with self._stats_lock:
            return PoolStats(
                submitted=self._stats.submitted,
                completed=self._stats.completed,
                failed=self._stats.failed,
                discarded=self._stats.discarded,
                caller_runs=self._stats.caller_runs,
                rejected=self._stats.rejected,
            )

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown.is_set()

    def pending(self) -> int:
        return sum(lane.queue.qsize() + len(lane.overflow) for lane in self._lanes)

    def submit(self, key: int, task: Task, *, guaranteed: bool = False) -> bool:
        """Queue *task* on the lane owning *key*.

        Returns ``True`` when the task was queued or run, ``False`` when a
        discard policy dropped it. The abort policy raises
        :class:`DispatchRejected`. ``guaranteed=True`` never blocks and
        never applies the policy: a full lane keeps the task beyond its
        bound and runs it after the tasks queued ahead of it. While such a
        task is pending, ordinary submits to that lane count as overflow.
        """

        if self._shutdown.is_set():
            raise UsageError(f"worker pool {self.name} is shut down")
        lane = self._lanes[key % len(self._lanes)]
        self._count("submitted")
        if guaranteed:
            lane.put_guaranteed(task)
            return True
        if lane.overflow:
            return self._reject(lane, key, task, evict=False)
        try:
            lane.queue.put_nowait(task)
            return True
        except Full:
            return self._reject(lane, key, task)

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop accepting tasks; lanes exit once their queues are drained."""

        self._shutdown.set()
        if not wait:
            return
        current = threading.current_thread()
        for lane in self._lanes:
            if lane.thread is not current:
                lane.thread.join(timeout)

    def _reject(self, lane: _Lane, key: int, task: Task, evict: bool = True) -> bool:
        policy = self._policy
        if policy is OverloadPolicy.CALLER_RUNS:
            self._count("caller_runs")
            self._run(task)
            return True
        if policy is OverloadPolicy.DISCARD_OLDEST and evict:
            while True:
                try:
                    lane.queue.get_nowait()
                    self._count("discarded")
                except Empty:
                    pass
                try:
                    lane.queue.put_nowait(task)
                    return True
                except Full:
                    continue
        if policy is OverloadPolicy.ABORT:
            self._count("rejected")
            logger.warning("Lane for key %s saturated; task rejected", key)
            raise DispatchRejected(f"worker lane for key {key} is saturated", key=key)
        self._count("discarded")
        logger.debug("Lane for key %s saturated; task discarded", key)
        return False

    def _worker_loop(self, lane: _Lane) -> None:
        while True:
            task = lane.pop_overflow() if lane.queue.empty() else None
            if task is None:
                try:
                    task = lane.queue.get(timeout=self._poll_interval_s)
                except Empty:
                    if self._shutdown.is_set() and not lane.overflow:
                        return
                    continue
            self._run(task)

    def _run(self, task: Task) -> None:
        try:
            task()
        except Exception:  # pylint: disable=broad-except
            self._count("failed")
            logger.exception("Dispatch task failed")
            return
        self._count("completed")

    def _count(self, name: str) -> None:
        with self._stats_lock:
            setattr(self._stats, name, getattr(self._stats, name) + 1)
