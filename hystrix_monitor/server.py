from __future__ import annotations

import asyncio
import logging
import sys
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, WebSocket
from fastapi.responses import StreamingResponse

from .config import MonitorConfig, build_parser
from .encoder import split_event_frames
from .logging_setup import configure_logging
from .models import HealthResponse
from .monitor import HystrixMonitor

logger = logging.getLogger("hystrix_monitor.server")

_SHUTDOWN_JOIN_TIMEOUT = 5.0


class QueueSubscriber:
    """Bounded mailbox bridging the scheduler thread to one async connection.

    ``send`` never blocks: payloads are handed to the owning event loop and,
    when the mailbox is full, the oldest pending payload is discarded.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, *, maxsize: int = 256) -> None:
        self._loop = loop
        self.queue: "asyncio.Queue[bytes]" = asyncio.Queue(maxsize=max(1, int(maxsize)))
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, payload: bytes) -> None:
        if self._closed or self._loop.is_closed():
            raise ConnectionError("stream subscriber is closed")
        self._loop.call_soon_threadsafe(self._enqueue, payload)

    def close(self) -> None:
        self._closed = True

    def _enqueue(self, payload: bytes) -> None:
        if self.queue.full():
            try:
                self.queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
        try:
            self.queue.put_nowait(payload)
        except asyncio.QueueFull:
            pass


def create_app(
    monitor: Optional[HystrixMonitor] = None,
    config: Optional[MonitorConfig] = None,
    *,
    manage_snapshots: bool = True,
) -> FastAPI:
    resolved_config = config or MonitorConfig()
    resolved_monitor = monitor or HystrixMonitor(snapshot_delay_ms=resolved_config.snapshot_delay_ms)
    stream_path = resolved_config.stream_path
    queue_size = resolved_config.subscriber_queue_size

    @asynccontextmanager
    async def _lifespan(_: FastAPI):
        if manage_snapshots:
            resolved_monitor.start_snapshots()
        try:
            yield
        finally:
            if manage_snapshots:
                await asyncio.to_thread(
                    resolved_monitor.stop_snapshots,
                    wait=True,
                    timeout=_SHUTDOWN_JOIN_TIMEOUT,
                )

    app = FastAPI(
        title="Hystrix Monitor",
        description="Streams circuit breaker snapshots in the Hystrix dashboard format.",
        version="1.0.0",
        lifespan=_lifespan,
    )
    app.state.monitor = resolved_monitor
    app.state.config = resolved_config

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(**resolved_monitor.status())

    @app.get(stream_path)
    async def hystrix_event_stream() -> StreamingResponse:
        connection_id = uuid.uuid4().hex
        subscriber = QueueSubscriber(asyncio.get_running_loop(), maxsize=queue_size)
        resolved_monitor.on_connect(connection_id, subscriber)
        return StreamingResponse(
            _drain(resolved_monitor, connection_id, subscriber),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.websocket(stream_path)
    async def hystrix_websocket(websocket: WebSocket) -> None:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        subscriber = QueueSubscriber(asyncio.get_running_loop(), maxsize=queue_size)
        resolved_monitor.on_connect(connection_id, subscriber)
        pump = asyncio.create_task(_pump(websocket, subscriber), name=f"hystrix-ws-{connection_id[:8]}")
        reason: object = None
        try:
            while True:
                message = await websocket.receive()
                if message.get("type") == "websocket.disconnect":
                    reason = message.get("code")
                    break
                inbound = message.get("text")
                if inbound is None:
                    inbound = message.get("bytes")
                resolved_monitor.on_message(connection_id, inbound)
        finally:
            subscriber.close()
            pump.cancel()
            await asyncio.gather(pump, return_exceptions=True)
            resolved_monitor.on_disconnect(connection_id, reason)

    return app


async def _drain(
    monitor: HystrixMonitor,
    connection_id: str,
    subscriber: QueueSubscriber,
) -> AsyncIterator[bytes]:
    try:
        while True:
            yield await subscriber.queue.get()
    finally:
        subscriber.close()
        monitor.on_disconnect(connection_id, "stream_closed")


async def _pump(websocket: WebSocket, subscriber: QueueSubscriber) -> None:
    while not subscriber.closed:
        payload = await subscriber.queue.get()
        # One pretty-printed document per WebSocket message.
        for document in split_event_frames(payload):
            await websocket.send_text(document)


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = MonitorConfig.from_args(args)
    configure_logging(config.log_level, config.log_path)
    app = create_app(config=config)
    logger.info(
        "SERVER_START host=%s port=%s path=%s delay_ms=%s",
        config.host,
        config.port,
        config.stream_path,
        config.snapshot_delay_ms,
    )
    import uvicorn

    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
