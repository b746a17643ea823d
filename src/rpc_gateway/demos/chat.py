"""
WebSocket chat demo. Not an RPC gateway: clients connect to
`/ws?username=<name>` and every message is broadcast to everyone.

Run with: rpc-gateway chat
"""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from http import HTTPStatus
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit

from websockets.asyncio.server import Server, ServerConnection, broadcast, serve
from websockets.http11 import Request, Response

from rpc_gateway.config import GatewayConfig

logger = logging.getLogger("rpc_gateway.demos.chat")

STATIC_DIR = Path(__file__).resolve().parent / "static"

CONFIG = GatewayConfig(
    port=3013,
    static_file=str(STATIC_DIR / "chat.html"),
)

WS_PATH = "/ws"
ANONYMOUS = "Anonymous"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def username_from_path(path: str) -> str:
    query = parse_qs(urlsplit(path).query)
    names = query.get("username") or [""]
    return names[0].strip() or ANONYMOUS


class ChatRoom:
    """Connected clients and the broadcast of join/message/leave events."""

    def __init__(self):
        self.clients: Dict[ServerConnection, str] = {}

    def users(self) -> List[str]:
        return list(self.clients.values())

    def broadcast(self, message: Dict[str, Any]) -> None:
        broadcast(list(self.clients), json.dumps(message))

    def broadcast_user_list(self) -> None:
        self.broadcast({"type": "userlist", "users": self.users()})

    async def handler(self, connection: ServerConnection) -> None:
        username = username_from_path(connection.request.path)
        self.clients[connection] = username
        logger.info("%s joined (%d users online)", username, len(self.clients))
        self.broadcast({"type": "join", "username": username, "text": f"{username} joined the chat", "timestamp": _now()})
        self.broadcast_user_list()

        try:
            async for message in connection:
                text = message if isinstance(message, str) else message.decode("utf-8", errors="replace")
                logger.info("%s: %s", username, text)
                self.broadcast({"type": "message", "username": username, "text": text, "timestamp": _now()})
        finally:
            self.clients.pop(connection, None)
            logger.info("%s left (%d users online)", username, len(self.clients))
            self.broadcast({"type": "leave", "username": username, "text": f"{username} left the chat", "timestamp": _now()})
            self.broadcast_user_list()


def make_process_request(static_file: Optional[str]):
    """
    HTTP side of the server: the chat page at `/`, the WebSocket handshake at
    WS_PATH, 404 for everything else.
    """
    static_path = Path(static_file) if static_file else None

    def process_request(connection: ServerConnection, request: Request) -> Optional[Response]:
        path = urlsplit(request.path).path
        if path == WS_PATH:
            return None
        if path == "/" and static_path is not None and static_path.is_file():
            response = connection.respond(HTTPStatus.OK, static_path.read_text(encoding="utf-8"))
            del response.headers["Content-Type"]
            response.headers["Content-Type"] = "text/html; charset=utf-8"
            return response
        return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")

    return process_request


async def start_chat_server(config: GatewayConfig, room: Optional[ChatRoom] = None) -> Server:
    room = room or ChatRoom()
    server = await serve(
        room.handler,
        config.host,
        config.port,
        process_request=make_process_request(config.static_file),
    )
    logger.info("WebSocket chat running at http://%s:%s", config.host, config.port)
    return server


async def serve_forever(config: GatewayConfig) -> None:
    server = await start_chat_server(config)
    async with server:
        await server.serve_forever()


def run(config: Optional[GatewayConfig] = None) -> None:
    try:
        asyncio.run(serve_forever(config or GatewayConfig.from_env(CONFIG)))
    except KeyboardInterrupt:
        logger.info("Chat server stopped")
