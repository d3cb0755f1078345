from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

logger = logging.getLogger("hystrix_monitor.hub")


@runtime_checkable
class Subscriber(Protocol):
    """Send capability for one live stream connection."""

    def send(self, payload: bytes) -> None: ...


class SubscriberHub:
    """Connected stream subscribers keyed by connection id.

    Transport code reports connection lifecycle through ``on_connect`` and
    ``on_disconnect``; the scheduler calls ``broadcast`` from its own thread.
    The lock guards the map only, so a slow send never stalls the transport.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, Subscriber] = {}
        self._lock = threading.Lock()

    def on_connect(self, connection_id: str, subscriber: Subscriber) -> None:
        key = str(connection_id)
        with self._lock:
            replaced = key in self._subscribers
            self._subscribers[key] = subscriber
            total = len(self._subscribers)
        logger.info("SUBSCRIBER_CONNECTED id=%s replaced=%s total=%s", key, replaced, total)

    def on_disconnect(self, connection_id: str, reason: Optional[Any] = None) -> None:
        key = str(connection_id)
        with self._lock:
            removed = self._subscribers.pop(key, None)
            total = len(self._subscribers)
        if removed is not None:
            logger.info("SUBSCRIBER_DISCONNECTED id=%s reason=%s total=%s", key, reason, total)

    def on_message(self, connection_id: str, message: Any) -> None:
        size = len(message) if isinstance(message, (bytes, str)) else 0
        logger.debug("SUBSCRIBER_MESSAGE_IGNORED id=%s size=%s", connection_id, size)

    def broadcast(self, payload: bytes) -> int:
        targets = self._snapshot()
        if not targets:
            return 0

        delivered = 0
        failed: List[Tuple[str, Subscriber]] = []
        for connection_id, subscriber in targets:
            try:
                subscriber.send(payload)
                delivered += 1
            except Exception as exc:
                logger.warning("SUBSCRIBER_SEND_FAILED id=%s error=%r", connection_id, exc)
                failed.append((connection_id, subscriber))

        for connection_id, subscriber in failed:
            self._drop_if_current(connection_id, subscriber)
        return delivered

    def connection_ids(self) -> List[str]:
        with self._lock:
            return list(self._subscribers.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def _snapshot(self) -> List[Tuple[str, Subscriber]]:
        with self._lock:
            return list(self._subscribers.items())

    def _drop_if_current(self, connection_id: str, subscriber: Subscriber) -> None:
        with self._lock:
            # A reconnect under the same id may have replaced the failing entry.
            if self._subscribers.get(connection_id) is not subscriber:
                return
            del self._subscribers[connection_id]
            total = len(self._subscribers)
        logger.info("SUBSCRIBER_DROPPED id=%s total=%s", connection_id, total)
