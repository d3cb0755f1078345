from __future__ import annotations

import logging
import threading
import weakref
from typing import Any, Callable, List, Optional, Protocol, runtime_checkable

logger = logging.getLogger("hystrix_monitor.registry")

SampleErrorHandler = Callable[["MonitoredReference", Exception], None]


@runtime_checkable
class HystrixProvider(Protocol):
    """Anything that can report its own health snapshot on demand."""

    def snapshot(self) -> Any: ...


class MonitoredReference:
    """Non-owning handle to a breaker with an explicit liveness check."""

    __slots__ = ("_ref", "identity", "label")

    def __init__(self, target: HystrixProvider) -> None:
        if not callable(getattr(target, "snapshot", None)):
            raise TypeError(f"{type(target).__name__} does not expose a callable snapshot()")
        self._ref = weakref.ref(target)
        self.identity = id(target)
        self.label = str(getattr(target, "name", type(target).__name__))

    def resolve(self) -> Optional[HystrixProvider]:
        return self._ref()

    def is_alive(self) -> bool:
        return self._ref() is not None

    def snapshot(self) -> Any:
        target = self._ref()
        if target is None:
            raise ReferenceError(f"monitored breaker {self.label!r} no longer exists")
        return target.snapshot()

    def __repr__(self) -> str:
        state = "alive" if self.is_alive() else "absent"
        return f"MonitoredReference(label={self.label!r}, identity={self.identity:#x}, {state})"


class BreakerRegistry:
    """Ordered list of weakly-held breakers, pruned as they disappear.

    The same breaker may be registered more than once; each registration is
    an independent entry and is sampled on every pass.
    """

    def __init__(self) -> None:
        self._entries: List[MonitoredReference] = []
        self._lock = threading.Lock()

    def register(self, breaker: HystrixProvider) -> MonitoredReference:
        reference = MonitoredReference(breaker)
        with self._lock:
            self._entries.append(reference)
        logger.debug("BREAKER_REGISTERED label=%s identity=%#x", reference.label, reference.identity)
        return reference

    def entries(self) -> List[MonitoredReference]:
        with self._lock:
            return list(self._entries)

    def sample_and_prune(self, on_error: Optional[SampleErrorHandler] = None) -> List[Any]:
        """Collect snapshots from live entries and drop the dead ones.

        A snapshot read that raises leaves its entry in place; the failure is
        handed to ``on_error`` (or logged) and the pass moves on.
        """
        snapshots: List[Any] = []
        dead: List[MonitoredReference] = []

        for reference in self.entries():
            target = reference.resolve()
            if target is None:
                dead.append(reference)
                continue
            try:
                snapshots.append(target.snapshot())
            except Exception as exc:
                self._report_sample_error(reference, exc, on_error)

        if dead:
            dead_ids = {id(reference) for reference in dead}
            with self._lock:
                self._entries = [entry for entry in self._entries if id(entry) not in dead_ids]
            for reference in dead:
                logger.debug("BREAKER_PRUNED label=%s identity=%#x", reference.label, reference.identity)

        return snapshots

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def _report_sample_error(
        reference: MonitoredReference,
        exc: Exception,
        on_error: Optional[SampleErrorHandler],
    ) -> None:
        if on_error is None:
            logger.error("SNAPSHOT_READ_FAILED label=%s error=%r", reference.label, exc)
            return
        try:
            on_error(reference, exc)
        except Exception:
            logger.exception("SNAPSHOT_ERROR_HANDLER_FAILED label=%s", reference.label)
