from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import Optional

from uvicorn.config import LOG_LEVELS

from .scheduler import DEFAULT_SNAPSHOT_DELAY_MS, clamp_delay_ms

DEFAULT_PORT = 8081
DEFAULT_STREAM_PATH = "/hystrix.stream"


@dataclass(slots=True)
class MonitorConfig:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    stream_path: str = DEFAULT_STREAM_PATH
    snapshot_delay_ms: int = DEFAULT_SNAPSHOT_DELAY_MS
    subscriber_queue_size: int = 256
    log_level: str = "info"
    log_path: Optional[str] = None

    def __post_init__(self) -> None:
        self.host = str(self.host).strip() or "127.0.0.1"
        self.port = int(self.port)
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port must be within 0-65535, got {self.port}")
        path = str(self.stream_path).strip().strip("/") or DEFAULT_STREAM_PATH.strip("/")
        self.stream_path = f"/{path}"
        self.snapshot_delay_ms = clamp_delay_ms(self.snapshot_delay_ms)
        self.subscriber_queue_size = max(8, int(self.subscriber_queue_size))
        self.log_level = str(self.log_level).strip().lower() or "info"
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(LOG_LEVELS)}, got {self.log_level!r}")
        self.log_path = str(self.log_path) if self.log_path else None

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "MonitorConfig":
        return cls(
            host=args.host,
            port=args.port,
            stream_path=args.stream_path,
            snapshot_delay_ms=args.snapshot_delay_ms,
            subscriber_queue_size=args.subscriber_queue_size,
            log_level=args.log_level,
            log_path=args.log_path,
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stream circuit breaker snapshots to Hystrix dashboards.")
    parser.add_argument("--host", type=str, default="127.0.0.1")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--stream-path", type=str, default=DEFAULT_STREAM_PATH)
    parser.add_argument("--snapshot-delay-ms", type=int, default=DEFAULT_SNAPSHOT_DELAY_MS)
    parser.add_argument("--subscriber-queue-size", type=int, default=256)
    parser.add_argument("--log-level", type=str.lower, choices=sorted(LOG_LEVELS), default="info")
    parser.add_argument("--log-path", type=str, default=None)
    return parser
