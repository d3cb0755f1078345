from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, List, Optional

from .encoder import SnapshotEncodeError, SnapshotEncoder, frame_events, snapshot_name
from .hub import SubscriberHub
from .registry import BreakerRegistry, MonitoredReference

logger = logging.getLogger("hystrix_monitor.scheduler")

DEFAULT_SNAPSHOT_DELAY_MS = 1200
MIN_SNAPSHOT_DELAY_MS = 10


class SchedulerState(str, Enum):
    IDLE = "IDLE"
    SCHEDULED = "SCHEDULED"
    CANCELLED = "CANCELLED"


class SnapshotScheduler:
    """Fixed-delay repeating emission task on a dedicated worker thread.

    The next wait only begins once the previous cycle has returned, so cycles
    never overlap. ``stop`` is terminal: a cancelled scheduler cannot be
    started again and a fresh instance is needed instead.
    """

    def __init__(
        self,
        *,
        registry: BreakerRegistry,
        hub: SubscriberHub,
        encoder: Optional[SnapshotEncoder] = None,
        snapshot_delay_ms: int = DEFAULT_SNAPSHOT_DELAY_MS,
        thread_name: str = "hystrix-snapshots",
    ) -> None:
        self._registry = registry
        self._hub = hub
        self._encoder = encoder or SnapshotEncoder()
        self._thread_name = thread_name
        self._snapshot_delay_ms = clamp_delay_ms(snapshot_delay_ms)
        self._state = SchedulerState.IDLE
        self._state_lock = threading.Lock()
        self._cancelled = threading.Event()
        self._worker: Optional[threading.Thread] = None
        self._cycle_count = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def snapshot_delay_ms(self) -> int:
        return self._snapshot_delay_ms

    @snapshot_delay_ms.setter
    def snapshot_delay_ms(self, value: int) -> None:
        self._snapshot_delay_ms = clamp_delay_ms(value)

    def start(self) -> None:
        with self._state_lock:
            if self._state is SchedulerState.CANCELLED:
                raise RuntimeError("snapshot scheduler was stopped; create a new instance to restart")
            if self._state is SchedulerState.SCHEDULED:
                return
            self._state = SchedulerState.SCHEDULED
            self._worker = threading.Thread(target=self._run, name=self._thread_name, daemon=True)
            self._worker.start()
        logger.info("SNAPSHOTS_STARTED delay_ms=%s", self._snapshot_delay_ms)

    def stop(self) -> None:
        with self._state_lock:
            if self._state is SchedulerState.CANCELLED:
                return
            self._state = SchedulerState.CANCELLED
            self._cancelled.set()
        logger.info("SNAPSHOTS_STOPPED cycles=%s", self._cycle_count)

    def join(self, timeout: Optional[float] = None) -> bool:
        worker = self._worker
        if worker is None or worker is threading.current_thread():
            return True
        worker.join(timeout)
        return not worker.is_alive()

    def run_cycle(self) -> int:
        """Sample, encode and broadcast once; returns the snapshots sent."""
        snapshots = self._registry.sample_and_prune(on_error=self._on_sample_error)
        documents = self._encode_all(snapshots)
        self._cycle_count += 1
        if not documents:
            return 0
        delivered = self._hub.broadcast(frame_events(documents))
        logger.debug(
            "CYCLE_EMITTED snapshots=%s subscribers=%s registry=%s",
            len(documents),
            delivered,
            len(self._registry),
        )
        return len(documents)

    def _run(self) -> None:
        while not self._cancelled.wait(self._snapshot_delay_ms / 1000.0):
            try:
                self.run_cycle()
            except Exception:
                logger.exception("CYCLE_FAILED")

    def _encode_all(self, snapshots: List[Any]) -> List[bytes]:
        documents: List[bytes] = []
        for snapshot in snapshots:
            try:
                documents.append(self._encoder.encode(snapshot))
            except SnapshotEncodeError as exc:
                logger.error("SNAPSHOT_ENCODE_FAILED name=%s error=%s", snapshot_name(snapshot), exc)
        return documents

    @staticmethod
    def _on_sample_error(reference: MonitoredReference, exc: Exception) -> None:
        logger.error("SNAPSHOT_READ_FAILED label=%s error=%r", reference.label, exc)


def clamp_delay_ms(value: Any) -> int:
    return max(MIN_SNAPSHOT_DELAY_MS, int(value))
