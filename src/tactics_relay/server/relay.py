from __future__ import annotations

import logging

from fastapi import WebSocket
from pydantic import ValidationError

from tactics_relay.protocol.messages import (
    DeleteTacticRequest,
    Init,
    InboundMsg,
    PlayAnimation,
    PlayAnimationRequest,
    SaveTacticRequest,
    StateUpdate,
    TacticsUpdated,
    UpdateRequest,
    dump,
    parse_inbound,
)

from .registry import ConnectionRegistry
from .store import BoardStore

logger = logging.getLogger(__name__)


class RelayHandler:
    """
    Dispatches inbound board messages and decides the fan-out.

    Every broadcast carries full state (not the incoming delta), so a client that
    missed something is healed by the next unrelated update. `update` is the only
    kind not echoed to its sender.
    """

    def __init__(
        self,
        store: BoardStore,
        registry: ConnectionRegistry,
        *,
        debug_log_msgs: bool = False,
    ) -> None:
        self.store = store
        self.registry = registry
        self.debug_log_msgs = debug_log_msgs

    async def connect(self, ws: WebSocket) -> str:
        """Register an accepted socket and send it the current board."""
        conn_id = self.registry.add(ws)
        logger.info("client %s connected (%d open)", conn_id, len(self.registry))
        init = Init(state=self.store.snapshot(), saved_tactics=self.store.saved_tactics())
        await self.registry.send_to(conn_id, dump(init))
        return conn_id

    def disconnect(self, conn_id: str) -> None:
        self.registry.discard(conn_id)
        logger.info("client %s disconnected (%d open)", conn_id, len(self.registry))

    async def handle_raw(self, conn_id: str, raw: str | bytes) -> None:
        try:
            msg = parse_inbound(raw)
        except ValidationError as e:
            logger.warning(
                "dropping malformed message from %s: %s", conn_id, e.errors(include_url=False)
            )
            return
        await self.dispatch(conn_id, msg)

    async def dispatch(self, conn_id: str, msg: InboundMsg) -> None:
        if self.debug_log_msgs:
            logger.info("[ws] in type=%s from=%s", msg.type, conn_id)

        if isinstance(msg, UpdateRequest):
            state = self.store.apply_patch(msg.state)
            await self.registry.broadcast_except(conn_id, dump(StateUpdate(state=state)))
        elif isinstance(msg, SaveTacticRequest):
            self.store.save_tactic(msg.name)
            await self._broadcast_tactics()
        elif isinstance(msg, DeleteTacticRequest):
            self.store.delete_tactic(msg.id)
            await self._broadcast_tactics()
        elif isinstance(msg, PlayAnimationRequest):
            await self.registry.broadcast_all(dump(PlayAnimation()))
        else:
            logger.warning("unrecognized message from %s: %r", conn_id, msg)

    async def _broadcast_tactics(self) -> None:
        update = TacticsUpdated(saved_tactics=self.store.saved_tactics())
        await self.registry.broadcast_all(dump(update))
