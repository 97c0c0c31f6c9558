"""Broadcast sinks that push manager events to connected clients."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional, Protocol, Set

from aiohttp import web

logger = logging.getLogger(__name__)

Payload = Dict[str, Any]


class BroadcastSink(Protocol):
    def emit(self, event: str, payload: Payload) -> None: ...


class NullSink:
    """Sink that drops every event."""

    def emit(self, event: str, payload: Payload) -> None:
        return None


class CallbackSink:
    """Adapts a plain ``callback(event, payload)`` function to the sink protocol."""

    def __init__(self, callback: Callable[[str, Payload], None]) -> None:
        self._callback = callback

    def emit(self, event: str, payload: Payload) -> None:
        self._callback(event, payload)


class SinkRelay:
    """Forwards events to a replaceable target so the sink can be wired after construction."""

    def __init__(self, target: Optional[BroadcastSink] = None) -> None:
        self._target: BroadcastSink = target or NullSink()

    @property
    def target(self) -> BroadcastSink:
        return self._target

    def set_target(self, target: Optional[BroadcastSink]) -> None:
        self._target = target or NullSink()

    def emit(self, event: str, payload: Payload) -> None:
        self._target.emit(event, payload)


class ConnectionHub:
    """Fans events out as JSON text frames to every registered WebSocket."""

    def __init__(self) -> None:
        self._sockets: Set[web.WebSocketResponse] = set()
        self._pending: Set[asyncio.Task] = set()

    @property
    def connection_count(self) -> int:
        return len(self._sockets)

    def register(self, socket: web.WebSocketResponse) -> None:
        self._sockets.add(socket)

    def unregister(self, socket: web.WebSocketResponse) -> None:
        self._sockets.discard(socket)

    def emit(self, event: str, payload: Payload) -> None:
        if not self._sockets:
            return
        message = json.dumps({"type": "event", "event": event, "payload": payload})
        for socket in list(self._sockets):
            if socket.closed:
                self._sockets.discard(socket)
                continue
            task = asyncio.get_running_loop().create_task(self._send(socket, message))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _send(self, socket: web.WebSocketResponse, message: str) -> None:
        try:
            await socket.send_str(message)
        except (ConnectionError, RuntimeError) as exc:
            logger.debug("Dropping websocket after send failure: %s", exc)
            self._sockets.discard(socket)

    async def close_all(self) -> None:
        for socket in list(self._sockets):
            await socket.close()
        self._sockets.clear()


__all__ = ["BroadcastSink", "CallbackSink", "ConnectionHub", "NullSink", "Payload", "SinkRelay"]
