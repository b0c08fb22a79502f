from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


def _is_ready(ws: WebSocket) -> bool:
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


@dataclass
class ConnectionRegistry:
    """Open relay connections keyed by a server-assigned id."""

    clients: dict[str, WebSocket] = field(default_factory=dict)

    def add(self, ws: WebSocket) -> str:
        conn_id = uuid.uuid4().hex[:8]
        self.clients[conn_id] = ws
        return conn_id

    def discard(self, conn_id: str) -> None:
        self.clients.pop(conn_id, None)

    def __len__(self) -> int:
        return len(self.clients)

    def __contains__(self, conn_id: object) -> bool:
        return conn_id in self.clients

    async def send_to(self, conn_id: str, msg: dict) -> None:
        ws = self.clients.get(conn_id)
        if ws is None:
            return
        await self._deliver([(conn_id, ws)], msg)

    async def broadcast_all(self, msg: dict) -> None:
        await self._deliver(list(self.clients.items()), msg)

    async def broadcast_except(self, sender_id: str, msg: dict) -> None:
        targets = [(cid, ws) for cid, ws in self.clients.items() if cid != sender_id]
        await self._deliver(targets, msg)

    async def _deliver(self, targets: list[tuple[str, WebSocket]], msg: dict) -> None:
        # Not-ready sockets are skipped (no queueing); a failing send drops only that client.
        dead: list[str] = []
        data = json.dumps(msg, separators=(",", ":"), ensure_ascii=False)
        for conn_id, ws in targets:
            if not _is_ready(ws):
                continue
            try:
                await ws.send_text(data)
            except Exception as e:
                logger.debug("send to %s failed: %s", conn_id, e)
                dead.append(conn_id)
        for conn_id in dead:
            self.discard(conn_id)
