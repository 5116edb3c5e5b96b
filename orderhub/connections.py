"""Lifecycle handling for long-lived notification sockets."""

from __future__ import annotations

import logging
import secrets
import threading
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

import anyio
from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

from .models import utcnow
from .notifications import EVENT_CONNECTED, Listener, NotificationBus, build_envelope

logger = logging.getLogger("orderhub.connections")

DEFAULT_HANDSHAKE_MESSAGE = "WebSocket connected"

# Sent when a listener is dropped for not keeping up with the event stream.
CLOSE_CODE_TRY_AGAIN_LATER = 1013


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class Connection:
    id: str
    state: ConnectionState
    opened_at: datetime


async def send_websocket_json(websocket: WebSocket, payload: Dict[str, Any]) -> bool:
    """Send ``payload`` unless the socket is already gone; report whether it went out."""

    if websocket.client_state == WebSocketState.DISCONNECTED:
        return False
    if websocket.application_state == WebSocketState.DISCONNECTED:
        return False
    try:
        await websocket.send_json(payload)
    except Exception:
        return False
    return True


class ConnectionManager:
    """Accepts notification sockets and ties each one to a bus listener."""

    def __init__(
        self,
        bus: NotificationBus,
        *,
        handshake_message: str = DEFAULT_HANDSHAKE_MESSAGE,
    ) -> None:
        self._bus = bus
        self._handshake_message = handshake_message
        self._connections: Dict[str, Connection] = {}
        self._lock = threading.Lock()

    @property
    def active_count(self) -> int:
        with self._lock:
            return sum(1 for conn in self._connections.values() if conn.state == ConnectionState.OPEN)

    def snapshot(self) -> List[Connection]:
        with self._lock:
            return [
                Connection(id=conn.id, state=conn.state, opened_at=conn.opened_at)
                for conn in self._connections.values()
            ]

    def _set_state(self, connection: Connection, state: ConnectionState) -> None:
        with self._lock:
            connection.state = state
            if state == ConnectionState.CLOSED:
                self._connections.pop(connection.id, None)

    async def handle(self, websocket: WebSocket) -> None:
        """Serve one socket from accept until it disconnects."""

        connection = Connection(
            id=secrets.token_hex(8),
            state=ConnectionState.CONNECTING,
            opened_at=utcnow(),
        )
        with self._lock:
            self._connections[connection.id] = connection

        try:
            await websocket.accept()
        except Exception:
            self._set_state(connection, ConnectionState.CLOSED)
            raise

        # Subscribe before the handshake so nothing published after the client
        # sees CONNECTED can be missed.
        listener = self._bus.subscribe()
        self._set_state(connection, ConnectionState.OPEN)
        logger.info("Notification socket %s opened", connection.id)

        try:
            await send_websocket_json(
                websocket,
                build_envelope(EVENT_CONNECTED, {"message": self._handshake_message}),
            )
            await self._pump(websocket, listener)
        finally:
            self._bus.unsubscribe(listener)
            listener.discard()
            self._set_state(connection, ConnectionState.CLOSED)
            logger.info("Notification socket %s closed", connection.id)
            close_code = CLOSE_CODE_TRY_AGAIN_LATER if listener.overflowed else 1000
            if (
                websocket.client_state != WebSocketState.DISCONNECTED
                and websocket.application_state != WebSocketState.DISCONNECTED
            ):
                with suppress(Exception):
                    await websocket.close(code=close_code)

    async def _pump(self, websocket: WebSocket, listener: Listener) -> None:
        cancel_exc = anyio.get_cancelled_exc_class()

        async def pump_events_to_websocket(task_group) -> None:
            try:
                async for envelope in listener:
                    if not await send_websocket_json(websocket, envelope):
                        break
            except cancel_exc:
                raise
            except Exception:
                logger.exception("Failed to forward events to socket")
            finally:
                task_group.cancel_scope.cancel()

        async def watch_websocket(task_group) -> None:
            try:
                while True:
                    message = await websocket.receive()
                    if message["type"] == "websocket.disconnect":
                        break
            except (WebSocketDisconnect, cancel_exc):
                pass
            except Exception:
                logger.debug("Notification socket read failed", exc_info=True)
            finally:
                task_group.cancel_scope.cancel()

        async with anyio.create_task_group() as task_group:
            task_group.start_soon(pump_events_to_websocket, task_group)
            task_group.start_soon(watch_websocket, task_group)


__all__ = [
    "CLOSE_CODE_TRY_AGAIN_LATER",
    "Connection",
    "ConnectionManager",
    "ConnectionState",
    "DEFAULT_HANDSHAKE_MESSAGE",
    "send_websocket_json",
]
