from __future__ import annotations

import threading
from typing import Any, Dict, List


class FakeBreaker:
    def __init__(self, name: str, **fields: Any) -> None:
        self.name = name
        self.fields: Dict[str, Any] = dict(fields)
        self.calls = 0

    def snapshot(self) -> Dict[str, Any]:
        self.calls += 1
        return {"name": self.name, **self.fields}


class ExplodingBreaker:
    name = "exploding"

    def snapshot(self) -> Dict[str, Any]:
        raise RuntimeError("statistics unavailable")


class RecordingSubscriber:
    def __init__(self) -> None:
        self.payloads: List[bytes] = []
        self._condition = threading.Condition()

    def send(self, payload: bytes) -> None:
        with self._condition:
            self.payloads.append(payload)
            self._condition.notify_all()

    def wait_for(self, count: int, timeout: float = 2.0) -> bool:
        with self._condition:
            return self._condition.wait_for(lambda: len(self.payloads) >= count, timeout)


class FailingSubscriber:
    def __init__(self) -> None:
        self.attempts = 0

    def send(self, payload: bytes) -> None:
        self.attempts += 1
        raise ConnectionResetError("peer went away")
