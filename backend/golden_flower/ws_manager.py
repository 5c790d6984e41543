"""WebSocket connection manager pushing table snapshots to viewers."""

from __future__ import annotations

import json
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from fastapi import WebSocket

if TYPE_CHECKING:
    from golden_flower.table import Table

logger = logging.getLogger(__name__)


class ClientRole(str, Enum):
    PLAYER = "player"
    OBSERVER = "observer"


class ClientConnection:
    """Wraps a single WebSocket connection with metadata."""

    __slots__ = ("ws", "viewer_id", "role", "connected_at", "last_seen")

    def __init__(self, ws: WebSocket, viewer_id: str, role: ClientRole) -> None:
        self.ws = ws
        self.viewer_id = viewer_id
        self.role = role
        self.connected_at = time.time()
        self.last_seen = time.time()

    async def send(self, text: str) -> bool:
        """Send text, returning False on failure."""
        try:
            await self.ws.send_text(text)
            return True
        except Exception:
            return False


class ConnectionManager:
    """Manages WebSocket connections per table with heartbeat support."""

    # Seconds a client may stay silent before it is dropped; clients ping to stay alive
    HEARTBEAT_TIMEOUT = 30

    def __init__(self) -> None:
        # table_id -> [ClientConnection]
        self._connections: dict[str, list[ClientConnection]] = {}

    async def connect(
        self, table_id: str, viewer_id: str, ws: WebSocket, role: ClientRole
    ) -> ClientConnection:
        await ws.accept()
        conn = ClientConnection(ws, viewer_id, role)
        self._connections.setdefault(table_id, []).append(conn)
        logger.info("WS connect: table=%s viewer=%s role=%s", table_id, viewer_id, role.value)
        return conn

    def disconnect(self, table_id: str, conn: ClientConnection) -> None:
        conns = self._connections.get(table_id)
        if not conns:
            return
        try:
            conns.remove(conn)
        except ValueError:
            pass
        if not conns:
            del self._connections[table_id]
        logger.info("WS disconnect: table=%s viewer=%s", table_id, conn.viewer_id)

    def record_heartbeat(self, conn: ClientConnection) -> None:
        conn.last_seen = time.time()

    def is_stale(self, conn: ClientConnection) -> bool:
        return (time.time() - conn.last_seen) > self.HEARTBEAT_TIMEOUT

    def viewer_count(self, table_id: str) -> int:
        return len(self._connections.get(table_id, []))

    async def send_snapshot(self, table: Table, conn: ClientConnection) -> bool:
        if conn.role == ClientRole.PLAYER:
            view = table.snapshot(conn.viewer_id)
        else:
            view = table.observer_snapshot()
        return await conn.send(json.dumps({"type": "snapshot", "data": view}))

    async def on_table_event(
        self, table: Table, kind: str, data: Optional[dict[str, Any]]
    ) -> None:
        """Table listener: push a fresh view (or the event payload) to every viewer."""
        dead: list[ClientConnection] = []
        for conn in list(self._connections.get(table.table_id, [])):
            if self.is_stale(conn):
                logger.info("Dropping silent viewer %s on %s", conn.viewer_id, table.table_id)
                try:
                    await conn.ws.close(code=4008)
                except Exception:
                    logger.debug("Error closing stale socket", exc_info=True)
                dead.append(conn)
                continue
            if kind == "snapshot":
                ok = await self.send_snapshot(table, conn)
            else:
                ok = await conn.send(json.dumps({"type": kind, "data": data}))
            if not ok:
                dead.append(conn)
        for conn in dead:
            self.disconnect(table.table_id, conn)


manager = ConnectionManager()
