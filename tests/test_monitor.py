from __future__ import annotations

import time
import unittest

from hystrix_monitor.encoder import decode_event_frames
from hystrix_monitor.monitor import HystrixMonitor
from hystrix_monitor.scheduler import SchedulerState
from tests.support import FakeBreaker, RecordingSubscriber


def _sleep_until(deadline: float) -> None:
    remaining = deadline - time.monotonic()
    if remaining > 0:
        time.sleep(remaining)


class TestHystrixMonitor(unittest.TestCase):
    def test_dropped_breaker_disappears_from_next_broadcast(self) -> None:
        delay = 0.06
        monitor = HystrixMonitor(snapshot_delay_ms=int(delay * 1000))
        breaker_a = FakeBreaker("A", requestCount=1)
        breaker_b = FakeBreaker("B", requestCount=2)
        breaker_c = FakeBreaker("C", requestCount=3)
        for breaker in (breaker_a, breaker_b, breaker_c):
            monitor.register(breaker)
        del breaker
        recorder = RecordingSubscriber()
        monitor.on_connect("dashboard", recorder)

        started = time.monotonic()
        monitor.start_snapshots()
        try:
            # Cycles fire at delay and 2 * delay; each check sits halfway between.
            _sleep_until(started + delay / 2)
            self.assertEqual(len(recorder.payloads), 0)

            _sleep_until(started + delay * 1.5)
            self.assertEqual(len(recorder.payloads), 1)
            first = decode_event_frames(recorder.payloads[0])
            self.assertEqual([doc["name"] for doc in first], ["A", "B", "C"])
            self.assertEqual([doc["requestCount"] for doc in first], [1, 2, 3])

            del breaker_b
            _sleep_until(started + delay * 2.5)
            self.assertEqual(len(recorder.payloads), 2)
            second = decode_event_frames(recorder.payloads[1])
            self.assertEqual([doc["name"] for doc in second], ["A", "C"])
            self.assertEqual(len(monitor.registry), 2)
        finally:
            monitor.stop_snapshots(wait=True, timeout=2.0)

    def test_start_after_stop_uses_fresh_scheduler(self) -> None:
        monitor = HystrixMonitor(snapshot_delay_ms=20)
        breaker = FakeBreaker("orders")
        monitor.register(breaker)
        recorder = RecordingSubscriber()
        monitor.on_connect("dashboard", recorder)

        monitor.start_snapshots()
        first_scheduler = monitor.scheduler
        self.assertTrue(monitor.running)
        self.assertTrue(recorder.wait_for(1))
        monitor.stop_snapshots(wait=True, timeout=2.0)
        self.assertIs(first_scheduler.state, SchedulerState.CANCELLED)
        self.assertFalse(monitor.running)

        emitted = len(recorder.payloads)
        monitor.start_snapshots()
        try:
            self.assertIsNot(monitor.scheduler, first_scheduler)
            self.assertTrue(recorder.wait_for(emitted + 1))
        finally:
            monitor.stop_snapshots(wait=True, timeout=2.0)

    def test_delay_can_be_set_before_start(self) -> None:
        monitor = HystrixMonitor()
        self.assertEqual(monitor.snapshot_delay_ms, 1200)
        monitor.snapshot_delay_ms = 300
        self.assertEqual(monitor.scheduler.snapshot_delay_ms, 300)

    def test_transport_boundary_and_status(self) -> None:
        monitor = HystrixMonitor(snapshot_delay_ms=100)
        breaker = FakeBreaker("orders")
        monitor.register(breaker)
        monitor.register(breaker)
        monitor.on_connect("conn-1", RecordingSubscriber())
        monitor.on_message("conn-1", "hello")

        status = monitor.status()
        self.assertEqual(status["scheduler_state"], "IDLE")
        self.assertEqual(status["snapshot_delay_ms"], 100)
        self.assertEqual(status["monitored_breakers"], 2)
        self.assertEqual(status["subscribers"], 1)
        self.assertEqual(status["cycles"], 0)

        monitor.on_disconnect("conn-1", reason=1001)
        self.assertEqual(monitor.status()["subscribers"], 0)


if __name__ == "__main__":
    unittest.main()
