"""Fan-out of change notifications to connected listeners."""

from __future__ import annotations

import logging
import secrets
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from .models import format_timestamp, utcnow

logger = logging.getLogger("orderhub.notifications")

EVENT_CONNECTED = "CONNECTED"
EVENT_USER_CREATED = "USER_CREATED"
EVENT_ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"

DEFAULT_BUFFER_SIZE = 256


def build_envelope(
    event: str,
    data: Dict[str, object],
    *,
    timestamp: Optional[datetime] = None,
) -> Dict[str, object]:
    """Wrap ``data`` in the standard ``{event, data, timestamp}`` envelope."""

    return {
        "event": event,
        "data": data,
        "timestamp": format_timestamp(timestamp or utcnow()),
    }


class Listener:
    """A subscriber's bounded inbox of envelopes."""

    def __init__(self, *, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        self.id = secrets.token_hex(8)
        send, receive = anyio.create_memory_object_stream(max_buffer_size=buffer_size)
        self._send: MemoryObjectSendStream = send
        self._receive: MemoryObjectReceiveStream = receive
        self._closed = False
        self._overflowed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def overflowed(self) -> bool:
        """``True`` when the listener was dropped for falling too far behind."""

        return self._overflowed

    def offer(self, envelope: Dict[str, object]) -> None:
        """Queue ``envelope`` without waiting.

        Raises ``anyio.WouldBlock`` when the inbox is full and
        ``anyio.ClosedResourceError``/``anyio.BrokenResourceError`` when either
        end has been closed.
        """

        self._send.send_nowait(envelope)

    def receive_nowait(self) -> Dict[str, object]:
        return self._receive.receive_nowait()

    async def receive(self) -> Dict[str, object]:
        return await self._receive.receive()

    def __aiter__(self):
        return self._receive

    def close(self, *, overflowed: bool = False) -> None:
        if overflowed:
            self._overflowed = True
        if self._closed:
            return
        self._closed = True
        self._send.close()

    def discard(self) -> None:
        """Close both ends, dropping anything still queued."""

        self.close()
        self._receive.close()


class NotificationBus:
    """Registers listeners and delivers every published envelope to each of them.

    ``publish`` never waits on a listener: each one owns a bounded buffer and a
    listener whose buffer is full is closed and dropped rather than allowed to
    miss events silently. Publishing is serialised, so every listener observes
    envelopes in publish order.
    """

    def __init__(
        self,
        *,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._buffer_size = buffer_size
        self._clock = clock or utcnow
        self._listeners: Dict[str, Listener] = {}
        self._lock = threading.Lock()
        self._publish_lock = threading.Lock()

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def subscribe(self) -> Listener:
        listener = Listener(buffer_size=self._buffer_size)
        with self._lock:
            self._listeners[listener.id] = listener
        logger.debug("Listener %s subscribed", listener.id)
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            removed = self._listeners.pop(listener.id, None)
        listener.close()
        if removed is not None:
            logger.debug("Listener %s unsubscribed", listener.id)

    def publish(self, event: str, data: Dict[str, object]) -> int:
        """Deliver ``event`` to every open listener and return how many accepted it."""

        envelope = build_envelope(event, data, timestamp=self._clock())
        delivered = 0
        with self._publish_lock:
            with self._lock:
                listeners: List[Listener] = list(self._listeners.values())

            for listener in listeners:
                if listener.closed:
                    self._forget(listener)
                    continue
                try:
                    listener.offer(envelope)
                except anyio.WouldBlock:
                    logger.warning(
                        "Listener %s fell behind by %s events; disconnecting it",
                        listener.id,
                        self._buffer_size,
                    )
                    listener.close(overflowed=True)
                    self._forget(listener)
                except (anyio.ClosedResourceError, anyio.BrokenResourceError):
                    logger.debug("Skipping closed listener %s", listener.id)
                    self._forget(listener)
                else:
                    delivered += 1

        logger.debug("Published %s to %s listener(s)", event, delivered)
        return delivered

    def _forget(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.pop(listener.id, None)


__all__ = [
    "DEFAULT_BUFFER_SIZE",
    "EVENT_CONNECTED",
    "EVENT_ORDER_STATUS_CHANGED",
    "EVENT_USER_CREATED",
    "Listener",
    "NotificationBus",
    "build_envelope",
]
