from __future__ import annotations

import threading
import unittest

from hystrix_monitor.hub import SubscriberHub
from tests.support import FailingSubscriber, RecordingSubscriber


class TestSubscriberHub(unittest.TestCase):
    def test_broadcast_without_subscribers_is_a_no_op(self) -> None:
        hub = SubscriberHub()
        self.assertEqual(hub.broadcast(b"data: {}\n\n"), 0)
        self.assertEqual(len(hub), 0)

    def test_broadcast_reaches_every_subscriber(self) -> None:
        hub = SubscriberHub()
        first = RecordingSubscriber()
        second = RecordingSubscriber()
        hub.on_connect("a", first)
        hub.on_connect("b", second)

        self.assertEqual(hub.broadcast(b"payload"), 2)
        self.assertEqual(first.payloads, [b"payload"])
        self.assertEqual(second.payloads, [b"payload"])

    def test_failing_subscriber_is_dropped_without_blocking_others(self) -> None:
        hub = SubscriberHub()
        before = RecordingSubscriber()
        broken = FailingSubscriber()
        after = RecordingSubscriber()
        hub.on_connect("before", before)
        hub.on_connect("broken", broken)
        hub.on_connect("after", after)

        with self.assertLogs("hystrix_monitor.hub", level="WARNING"):
            delivered = hub.broadcast(b"tick")

        self.assertEqual(delivered, 2)
        self.assertEqual(before.payloads, [b"tick"])
        self.assertEqual(after.payloads, [b"tick"])
        self.assertEqual(sorted(hub.connection_ids()), ["after", "before"])

        hub.broadcast(b"tock")
        self.assertEqual(broken.attempts, 1)

    def test_reconnect_with_same_id_overwrites(self) -> None:
        hub = SubscriberHub()
        stale = RecordingSubscriber()
        fresh = RecordingSubscriber()
        hub.on_connect("conn-1", stale)
        hub.on_connect("conn-1", fresh)

        hub.broadcast(b"x")
        self.assertEqual(len(hub), 1)
        self.assertEqual(stale.payloads, [])
        self.assertEqual(fresh.payloads, [b"x"])

    def test_disconnect_unknown_id_is_a_no_op(self) -> None:
        hub = SubscriberHub()
        hub.on_connect("conn-1", RecordingSubscriber())
        hub.on_disconnect("missing", reason=1000)
        hub.on_disconnect("conn-1", reason=1000)
        hub.on_disconnect("conn-1", reason=1000)
        self.assertEqual(len(hub), 0)

    def test_replacement_during_send_failure_is_kept(self) -> None:
        hub = SubscriberHub()
        replacement = RecordingSubscriber()

        class _ReconnectingSubscriber:
            def send(self, payload: bytes) -> None:
                hub.on_connect("conn-1", replacement)
                raise BrokenPipeError("old socket")

        hub.on_connect("conn-1", _ReconnectingSubscriber())
        hub.broadcast(b"first")

        self.assertEqual(hub.connection_ids(), ["conn-1"])
        hub.broadcast(b"second")
        self.assertEqual(replacement.payloads, [b"second"])

    def test_inbound_messages_are_ignored(self) -> None:
        hub = SubscriberHub()
        recorder = RecordingSubscriber()
        hub.on_connect("conn-1", recorder)
        hub.on_message("conn-1", "ping")
        hub.on_message("conn-1", b"\x00\x01")
        self.assertEqual(recorder.payloads, [])
        self.assertEqual(len(hub), 1)

    def test_connect_and_disconnect_race_with_broadcast(self) -> None:
        hub = SubscriberHub()
        stop = threading.Event()
        errors: list[BaseException] = []

        def _churn() -> None:
            index = 0
            try:
                while not stop.is_set():
                    connection_id = f"conn-{index % 20}"
                    hub.on_connect(connection_id, RecordingSubscriber())
                    hub.on_disconnect(f"conn-{(index + 7) % 20}")
                    index += 1
            except BaseException as exc:
                errors.append(exc)

        workers = [threading.Thread(target=_churn, daemon=True) for _ in range(3)]
        for worker in workers:
            worker.start()
        try:
            for _ in range(500):
                hub.broadcast(b"tick")
        finally:
            stop.set()
            for worker in workers:
                worker.join(timeout=2.0)

        self.assertEqual(errors, [])
        self.assertLessEqual(len(hub), 20)


if __name__ == "__main__":
    unittest.main()
