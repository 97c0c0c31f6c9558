"""Small aiohttp.web surface: a health check and the command WebSocket.

Clients authenticate with the owner bearer token (``Authorization: Bearer``
header or ``?token=`` query parameter). Each text frame carries
``{"id", "action", "payload"}`` and is answered with an ``ack`` frame; manager
events are pushed to every socket through the ``ConnectionHub``.
"""

from __future__ import annotations

import asyncio
import hmac
import json
import logging
from typing import Any, Dict, Optional, Set
from uuid import uuid4

from aiohttp import WSMsgType, web

from .broadcast import ConnectionHub
from .dispatch import OWNER_ROLE, CommandDispatcher, Identity
from .manager import HytaleManager

logger = logging.getLogger(__name__)

MANAGER_KEY = web.AppKey("manager", HytaleManager)
DISPATCHER_KEY = web.AppKey("dispatcher", CommandDispatcher)
HUB_KEY = web.AppKey("hub", ConnectionHub)
OWNER_TOKEN_KEY = web.AppKey("owner_token", str)

OWNER_USER_ID = "owner"


def _bearer_token(request: web.Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.query.get("token") or None


def resolve_identity(request: web.Request) -> Optional[Identity]:
    """Return the owner identity when the request carries the configured token."""
    expected = request.app[OWNER_TOKEN_KEY]
    presented = _bearer_token(request)
    if not expected or presented is None:
        return None
    if not hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        return None
    return Identity(user_id=OWNER_USER_ID, role=OWNER_ROLE)


async def handle_health(request: web.Request) -> web.Response:
    manager = request.app[MANAGER_KEY]
    return web.json_response({"ok": True, "status": manager.status.value})


async def _bootstrap_payload(manager: HytaleManager, identity: Identity) -> Dict[str, Any]:
    server_state, mods, backups, logs = await asyncio.gather(
        manager.snapshot(), manager.list_mods(), manager.list_backups(), manager.list_log_files()
    )
    return {
        "user": {"id": identity.user_id, "role": identity.role},
        "serverState": server_state,
        "mods": [mod.to_dict() for mod in mods],
        "backups": [entry.to_dict() for entry in backups],
        "logs": [entry.to_dict() for entry in logs],
    }


async def _send_ack(socket: web.WebSocketResponse, ack: Dict[str, Any]) -> None:
    if socket.closed:
        logger.debug("Dropping ack %s for a closed socket", ack.get("id"))
        return
    try:
        await socket.send_json(ack)
    except ConnectionResetError:
        logger.debug("Socket reset before ack %s could be sent", ack.get("id"))


async def _handle_frame(socket: web.WebSocketResponse, dispatcher: CommandDispatcher, identity: Identity, data: str) -> None:
    try:
        message = json.loads(data)
    except ValueError:
        await _send_ack(socket, {"type": "ack", "id": str(uuid4()), "ok": False, "status": 400, "error": "Invalid JSON message."})
        return
    if not isinstance(message, dict):
        await _send_ack(socket, {"type": "ack", "id": str(uuid4()), "ok": False, "status": 400, "error": "Invalid command message."})
        return

    request_id = message.get("id") or str(uuid4())
    payload = message.get("payload")
    # Shielded: a closing socket drops the ack, not the operation it asked for.
    result = await asyncio.shield(dispatcher.dispatch(identity, message.get("action"), payload if isinstance(payload, dict) else {}))
    await _send_ack(socket, {"type": "ack", "id": request_id, **result})


async def handle_websocket(request: web.Request) -> web.StreamResponse:
    identity = resolve_identity(request)
    if identity is None:
        raise web.HTTPUnauthorized(text=json.dumps({"ok": False, "error": "Authentication required."}), content_type="application/json")

    manager = request.app[MANAGER_KEY]
    dispatcher = request.app[DISPATCHER_KEY]
    hub = request.app[HUB_KEY]

    socket = web.WebSocketResponse(heartbeat=30)
    await socket.prepare(request)
    hub.register(socket)
    logger.info("WebSocket client connected (%d open)", hub.connection_count)

    # Frames run as independent tasks so a long install never blocks a snapshot or stop.
    in_flight: Set[asyncio.Task] = set()
    try:
        await socket.send_json({"type": "event", "event": "bootstrap", "payload": await _bootstrap_payload(manager, identity)})
        async for msg in socket:
            if msg.type == WSMsgType.TEXT:
                task = asyncio.ensure_future(_handle_frame(socket, dispatcher, identity, msg.data))
                in_flight.add(task)
                task.add_done_callback(in_flight.discard)
            elif msg.type == WSMsgType.ERROR:
                logger.warning("WebSocket closed with exception %s", socket.exception())
    finally:
        hub.unregister(socket)
        pending = list(in_flight)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("WebSocket client disconnected (%d open)", hub.connection_count)
    return socket


async def _on_cleanup(app: web.Application) -> None:
    await app[HUB_KEY].close_all()
    await app[MANAGER_KEY].close()


def create_app(manager: HytaleManager, *, owner_token: Optional[str], hub: Optional[ConnectionHub] = None) -> web.Application:
    """Build the application and route manager events to connected sockets."""
    hub = hub or ConnectionHub()
    manager.set_sink(hub)

    app = web.Application()
    app[MANAGER_KEY] = manager
    app[DISPATCHER_KEY] = CommandDispatcher(manager)
    app[HUB_KEY] = hub
    app[OWNER_TOKEN_KEY] = owner_token or ""
    app.router.add_get("/api/health", handle_health)
    app.router.add_get("/ws", handle_websocket)
    app.on_cleanup.append(_on_cleanup)
    return app


async def serve(app: web.Application, host: str, port: int, stop_event: asyncio.Event) -> None:
    """Serve ``app`` until ``stop_event`` is set, then run the cleanup hooks."""
    runner = web.AppRunner(app)
    await runner.setup()
    try:
        site = web.TCPSite(runner, host, port)
        await site.start()
        logger.info("Hytale manager listening on http://%s:%d", host, port)
        await stop_event.wait()
    finally:
        await runner.cleanup()


__all__ = ["create_app", "handle_health", "handle_websocket", "resolve_identity", "serve"]
