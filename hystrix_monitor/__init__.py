"""Live Hystrix-format snapshot stream for weakly-monitored circuit breakers."""

from .encoder import SnapshotEncodeError, SnapshotEncoder, decode_event_frames
from .hub import Subscriber, SubscriberHub
from .models import BreakerState, HystrixSnapshot, LatencyPercentiles
from .monitor import HystrixMonitor
from .registry import BreakerRegistry, HystrixProvider, MonitoredReference
from .scheduler import SchedulerState, SnapshotScheduler

__all__ = [
    "BreakerRegistry",
    "BreakerState",
    "HystrixMonitor",
    "HystrixProvider",
    "HystrixSnapshot",
    "LatencyPercentiles",
    "MonitoredReference",
    "SchedulerState",
    "SnapshotEncodeError",
    "SnapshotEncoder",
    "SnapshotScheduler",
    "Subscriber",
    "SubscriberHub",
    "decode_event_frames",
]
