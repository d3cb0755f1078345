from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from .encoder import SnapshotEncoder
from .hub import Subscriber, SubscriberHub
from .registry import BreakerRegistry, HystrixProvider, MonitoredReference
from .scheduler import DEFAULT_SNAPSHOT_DELAY_MS, SchedulerState, SnapshotScheduler, clamp_delay_ms

logger = logging.getLogger("hystrix_monitor.monitor")


class HystrixMonitor:
    """Registration, lifecycle and transport boundary for the snapshot stream.

    Breakers are held weakly. The monitor never opens sockets; a transport
    adapter reports connections through ``on_connect``/``on_disconnect``.
    """

    def __init__(
        self,
        *,
        snapshot_delay_ms: int = DEFAULT_SNAPSHOT_DELAY_MS,
        registry: Optional[BreakerRegistry] = None,
        hub: Optional[SubscriberHub] = None,
        encoder: Optional[SnapshotEncoder] = None,
    ) -> None:
        self.registry = registry if registry is not None else BreakerRegistry()
        self.hub = hub if hub is not None else SubscriberHub()
        self._encoder = encoder or SnapshotEncoder()
        self._snapshot_delay_ms = clamp_delay_ms(snapshot_delay_ms)
        self._lifecycle_lock = threading.Lock()
        self._scheduler = self._new_scheduler()

    @property
    def snapshot_delay_ms(self) -> int:
        return self._snapshot_delay_ms

    @snapshot_delay_ms.setter
    def snapshot_delay_ms(self, value: int) -> None:
        self._snapshot_delay_ms = clamp_delay_ms(value)
        self._scheduler.snapshot_delay_ms = self._snapshot_delay_ms

    @property
    def scheduler(self) -> SnapshotScheduler:
        return self._scheduler

    @property
    def running(self) -> bool:
        return self._scheduler.state is SchedulerState.SCHEDULED

    def register(self, breaker: HystrixProvider) -> MonitoredReference:
        return self.registry.register(breaker)

    def start_snapshots(self) -> None:
        with self._lifecycle_lock:
            if self._scheduler.state is SchedulerState.CANCELLED:
                logger.info("SCHEDULER_RENEWED previous_cycles=%s", self._scheduler.cycle_count)
                self._scheduler = self._new_scheduler()
            self._scheduler.start()

    def stop_snapshots(self, *, wait: bool = False, timeout: Optional[float] = None) -> None:
        with self._lifecycle_lock:
            scheduler = self._scheduler
            scheduler.stop()
        if wait:
            scheduler.join(timeout)

    def on_connect(self, connection_id: str, subscriber: Subscriber) -> None:
        self.hub.on_connect(connection_id, subscriber)

    def on_disconnect(self, connection_id: str, reason: Optional[Any] = None) -> None:
        self.hub.on_disconnect(connection_id, reason)

    def on_message(self, connection_id: str, message: Any) -> None:
        self.hub.on_message(connection_id, message)

    def status(self) -> dict:
        return {
            "scheduler_state": self._scheduler.state.value,
            "snapshot_delay_ms": self._snapshot_delay_ms,
            "monitored_breakers": len(self.registry),
            "subscribers": len(self.hub),
            "cycles": self._scheduler.cycle_count,
        }

    def _new_scheduler(self) -> SnapshotScheduler:
        return SnapshotScheduler(
            registry=self.registry,
            hub=self.hub,
            encoder=self._encoder,
            snapshot_delay_ms=self._snapshot_delay_ms,
        )
