"""
Event broadcaster - fans out command outcomes to server-sent-event clients.

Each subscriber owns a writable stream and a heartbeat task. A failing
subscriber is dropped on its own; delivery to the others carries on and
nothing is raised to the publisher.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Protocol
from uuid import uuid4

from bgh_bridge.utils.logging import get_logger

logger = get_logger(__name__)

HEARTBEAT_INTERVAL_SECONDS = 25.0
CONNECTED_FRAME = ": connected\n\n"
HEARTBEAT_FRAME = ": heartbeat\n\n"
STREAM_BUFFER_SIZE = 100


def format_event(event: str, data: str) -> str:
    """Build one SSE frame from an event name and serialised payload."""
    return f"event: {event}\ndata: {data}\n\n"


class EventStream(Protocol):
    """Anything frames can be written to."""

    def write(self, data: str) -> None:
        ...

    def close(self) -> None:
        ...


class StreamClosedError(RuntimeError):
    """Write attempted on a closed stream."""


_CLOSE = object()


class QueueStream:
    """
    In-memory stream between the broadcaster and a streaming HTTP response.

    Writes never block: a full buffer raises asyncio.QueueFull, which the
    broadcaster treats as a failed subscriber.
    """

    def __init__(self, max_buffer: int = STREAM_BUFFER_SIZE):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_buffer)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: str) -> None:
        if self._closed:
            raise StreamClosedError("stream is closed")
        self._queue.put_nowait(data)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # The reader also stops on an empty closed buffer, so a full queue is fine
        if not self._queue.full():
            self._queue.put_nowait(_CLOSE)

    async def frames(self) -> AsyncIterator[str]:
        """Yield written frames until the stream is closed."""
        while True:
            if self._closed and self._queue.empty():
                return
            frame = await self._queue.get()
            if frame is _CLOSE:
                return
            yield frame


@dataclass
class Subscriber:
    """One connected SSE client."""
    id: str
    stream: EventStream
    heartbeat: Optional[asyncio.Task] = None


class EventBroadcaster:
    """
    Registry of SSE subscribers.

    Handles:
    - Connection acknowledgement and periodic heartbeats per subscriber
    - Serialising each published payload once for all subscribers
    - Dropping subscribers whose stream fails, without affecting others
    """

    def __init__(self, heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS):
        """
        Initialize broadcaster.

        Args:
            heartbeat_interval: Seconds between heartbeat frames
        """
        self.heartbeat_interval = heartbeat_interval
        self._subscribers: Dict[str, Subscriber] = {}

    def count(self) -> int:
        """Number of connected subscribers."""
        return len(self._subscribers)

    def subscribe(self, stream: EventStream) -> str:
        """
        Register a stream, acknowledge it and start its heartbeat.

        Must be called from a running event loop.

        Returns:
            Subscriber id (pass to unsubscribe)
        """
        subscriber = Subscriber(id=str(uuid4()), stream=stream)
        self._subscribers[subscriber.id] = subscriber

        if not self._send(subscriber, CONNECTED_FRAME):
            return subscriber.id

        subscriber.heartbeat = asyncio.get_running_loop().create_task(
            self._heartbeat(subscriber)
        )
        logger.info(
            "sse_client_connected",
            subscriber_id=subscriber.id,
            connected_clients=self.count()
        )
        return subscriber.id

    def unsubscribe(self, subscriber_id: str) -> bool:
        """
        Remove a subscriber. Unknown or already removed ids are a no-op.

        Returns:
            True if a subscriber was removed
        """
        subscriber = self._subscribers.pop(subscriber_id, None)
        if subscriber is None:
            return False

        heartbeat = subscriber.heartbeat
        if heartbeat is not None and heartbeat is not asyncio.current_task():
            heartbeat.cancel()

        try:
            subscriber.stream.close()
        except Exception as e:
            # Close failures are ignored
            logger.debug("sse_close_failed", subscriber_id=subscriber_id, error=str(e))

        logger.info(
            "sse_client_disconnected",
            subscriber_id=subscriber_id,
            connected_clients=self.count()
        )
        return True

    def publish(self, event: str, payload: Any) -> int:
        """
        Send an event to every subscriber.

        Args:
            event: SSE event name (e.g. "device-update")
            payload: JSON-serialisable payload

        Returns:
            Number of subscribers the event was delivered to
        """
        try:
            data = json.dumps(payload)
        except (TypeError, ValueError) as e:
            logger.error("sse_payload_not_serialisable", sse_event=event, error=str(e))
            return 0

        frame = format_event(event, data)
        delivered = 0
        for subscriber in list(self._subscribers.values()):
            if self._send(subscriber, frame, event=event):
                delivered += 1

        logger.debug("sse_event_published", sse_event=event, delivered=delivered)
        return delivered

    def _send(self, subscriber: Subscriber, frame: str, event: Optional[str] = None) -> bool:
        try:
            subscriber.stream.write(frame)
            return True
        except Exception as e:
            logger.warning(
                "sse_write_failed",
                subscriber_id=subscriber.id,
                sse_event=event,
                error=repr(e)
            )
            self.unsubscribe(subscriber.id)
            return False

    async def _heartbeat(self, subscriber: Subscriber) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            if subscriber.id not in self._subscribers:
                return
            if not self._send(subscriber, HEARTBEAT_FRAME):
                return

    def close(self) -> None:
        """Disconnect every subscriber (process shutdown)."""
        for subscriber_id in list(self._subscribers):
            self.unsubscribe(subscriber_id)
