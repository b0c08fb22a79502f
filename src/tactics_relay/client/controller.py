from __future__ import annotations

import asyncio
import copy
import json
import logging
import math
import uuid
from typing import Any, Optional

import websockets
from pydantic import ValidationError
from websockets.protocol import State

from tactics_relay.protocol.constants import ERASER_COLOR, PENCIL_COLOR, TEAM_COLORS
from tactics_relay.protocol.messages import (
    DeleteTacticRequest,
    Init,
    PlayAnimation,
    PlayAnimationRequest,
    SaveTacticRequest,
    StateUpdate,
    TacticsUpdated,
    UpdateRequest,
    dump,
    parse_outbound,
)
from tactics_relay.protocol.models import BoardState, Team, default_board_state
from tactics_relay.server.config import Settings, get_settings

from .animation import AnimationEngine, interpolate_endpoints, snapshot_frame

logger = logging.getLogger(__name__)

BALL_ATTACH_THRESHOLD = 0.05

# Team A positions (left half); team B mirrors x.
FORMATIONS: dict[str, list[tuple[str, float, float]]] = {
    "2-2": [
        ("GK", 0.05, 0.5), ("2", 0.25, 0.3), ("3", 0.25, 0.7), ("4", 0.55, 0.3), ("5", 0.55, 0.7)
    ],
    "3-1": [
        ("GK", 0.05, 0.5), ("2", 0.2, 0.5), ("3", 0.4, 0.2), ("4", 0.4, 0.8), ("5", 0.7, 0.5)
    ],
    "4-0": [
        ("GK", 0.05, 0.5), ("2", 0.4, 0.15), ("3", 0.4, 0.38), ("4", 0.4, 0.62), ("5", 0.4, 0.85)
    ],
}


def nearest_player_within(
    players: list[dict[str, Any]],
    ball: dict[str, Any],
    threshold: float = BALL_ATTACH_THRESHOLD,
) -> Optional[str]:
    """
    Id of the player the ball sticks to, or None.

    Euclidean distance in normalized space; strictly closer than `threshold`.
    The first player wins an exact tie. Players without numeric coords are skipped.
    """
    bx, by = ball.get("x"), ball.get("y")
    if not isinstance(bx, (int, float)) or not isinstance(by, (int, float)):
        return None
    closest: Optional[str] = None
    min_dist = math.inf
    for p in players:
        px, py = p.get("x"), p.get("y")
        if not isinstance(px, (int, float)) or not isinstance(py, (int, float)):
            continue
        dx = px - bx
        dy = py - by
        dist = math.sqrt(dx * dx + dy * dy)
        if dist < min_dist:
            min_dist = dist
            closest = p.get("id")
    return closest if min_dist < threshold else None


class BoardController:
    """
    Local mirror of the relay's board for one client.

    Edits are applied optimistically and sent as full merged state; inbound
    messages replace the mirror verbatim (last message wins).
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        settings: Settings | None = None,
        animation: AnimationEngine | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.url = url or self.settings.relay_url
        self.animation = animation or AnimationEngine()

        self.state: BoardState | None = None
        self.saved_tactics: list[dict[str, Any]] = []
        self.ball_attached_to: str | None = None

        # Total-frame mode: two captured endpoints instead of a frame list.
        self.total_frame_mode = False
        self.start_frame: dict[str, Any] | None = None
        self.end_frame: dict[str, Any] | None = None

        self.animation_task: asyncio.Task | None = None
        # Strong refs for fire-and-forget tasks; the loop only keeps weak ones.
        self._tasks: set[asyncio.Task] = set()
        self._ws = None

    # -- connection -------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    def attach(self, ws) -> None:
        """Use an already-open connection (`websockets` client or compatible)."""
        self._ws = ws

    async def run(self) -> None:
        """Connect, adopt `init`, apply relay messages until the connection ends."""
        attempts = 0
        while True:
            try:
                async with websockets.connect(self.url, max_size=2**22) as ws:
                    self.attach(ws)
                    attempts = 0
                    logger.info("connected to relay %s", self.url)
                    async for raw in ws:
                        await self.handle_message(raw)
                logger.info("relay connection closed")
            except (OSError, websockets.WebSocketException) as e:
                logger.warning("relay connection failed: %s", e)
            finally:
                self._ws = None

            if attempts >= self.settings.client_reconnect_attempts:
                return
            attempts += 1
            logger.info(
                "reconnecting in %.1fs (attempt %d/%d)",
                self.settings.client_reconnect_delay_s,
                attempts,
                self.settings.client_reconnect_attempts,
            )
            await asyncio.sleep(self.settings.client_reconnect_delay_s)

    async def _send(self, msg: dict) -> None:
        if not self.connected:
            logger.debug("not connected; dropping outbound %s", msg.get("type"))
            return
        try:
            await self._ws.send(json.dumps(msg, separators=(",", ":"), ensure_ascii=False))
        except websockets.ConnectionClosed as e:
            logger.warning("send failed, connection closed: %s", e)

    # -- inbound ----------------------------------------------------------

    async def handle_message(self, raw: str | bytes) -> None:
        try:
            msg = parse_outbound(raw)
        except ValidationError as e:
            logger.error("failed to parse relay message: %s", e.errors(include_url=False))
            return

        if isinstance(msg, Init):
            self.state = msg.state
            self.saved_tactics = msg.saved_tactics
        elif isinstance(msg, StateUpdate):
            self.state = msg.state
        elif isinstance(msg, TacticsUpdated):
            self.saved_tactics = msg.saved_tactics
        elif isinstance(msg, PlayAnimation):
            self.animation_task = self.spawn(self.run_animation())
        else:
            logger.warning("unrecognized relay message: %r", msg)
        self._refresh_attachment()

    # -- local edits ------------------------------------------------------

    def snapshot(self) -> BoardState:
        return copy.deepcopy(self.state) if self.state is not None else {}

    async def apply_local_edit(self, patch: dict[str, Any]) -> BoardState:
        """Optimistic shallow merge, then send the whole merged board as `update`."""
        merged = {**(self.state or {}), **copy.deepcopy(patch)}
        self.state = merged
        self._refresh_attachment()
        await self._send(dump(UpdateRequest(type="update", state=merged)))
        return merged

    def _players(self) -> list[dict[str, Any]]:
        return list((self.state or {}).get("players") or [])

    async def move_player(self, player_id: str, x: float, y: float) -> None:
        players = [
            {**p, "x": x, "y": y} if p.get("id") == player_id else p for p in self._players()
        ]
        await self.apply_local_edit({"players": players})

    async def move_ball(self, x: float, y: float) -> None:
        self.detach_ball()
        await self.apply_local_edit({"ball": {"x": x, "y": y}})

    def detach_ball(self) -> None:
        self.ball_attached_to = None

    async def add_player(self, team: Team) -> dict[str, Any]:
        players = self._players()
        teammates = [p for p in players if p.get("team") == team]
        player = {
            "id": f"{team.lower()}{uuid.uuid4().hex[:8]}",
            "x": 0.15 if team == "A" else 0.85,
            "y": 0.2 + len(teammates) * 0.1,
            "color": TEAM_COLORS[team],
            "number": str(len(teammates) + 1),
            "team": team,
        }
        await self.apply_local_edit({"players": players + [player]})
        return player

    async def remove_player(self, player_id: str) -> None:
        players = [p for p in self._players() if p.get("id") != player_id]
        await self.apply_local_edit({"players": players})

    async def clear_team(self, team: Team) -> None:
        players = [p for p in self._players() if p.get("team") != team]
        await self.apply_local_edit({"players": players})

    async def apply_formation(self, name: str, team: Team) -> None:
        spots = FORMATIONS.get(name)
        if spots is None:
            logger.debug("unknown formation %r", name)
            return
        prefix = team.lower()
        lineup = [
            {
                "id": f"{prefix}{i + 1}",
                "team": team,
                "color": TEAM_COLORS[team],
                "number": number,
                "x": x if team == "A" else 1 - x,
                "y": y,
            }
            for i, (number, x, y) in enumerate(spots)
        ]
        others = [p for p in self._players() if p.get("team") != team]
        await self.apply_local_edit({"players": others + lineup})

    async def reset_board(self) -> None:
        await self.apply_local_edit(default_board_state())

    async def begin_drawing(self, x: float, y: float, *, eraser: bool = False) -> None:
        stroke = {
            "id": uuid.uuid4().hex[:9],
            "points": [x, y],
            "color": ERASER_COLOR if eraser else PENCIL_COLOR,
        }
        drawings = list((self.state or {}).get("drawings") or [])
        await self.apply_local_edit({"drawings": drawings + [stroke]})

    async def extend_drawing(self, x: float, y: float) -> None:
        drawings = list((self.state or {}).get("drawings") or [])
        if not drawings:
            return
        last = drawings[-1]
        drawings[-1] = {**last, "points": list(last.get("points") or []) + [x, y]}
        await self.apply_local_edit({"drawings": drawings})

    async def clear_drawings(self) -> None:
        await self.apply_local_edit({"drawings": []})

    async def add_frame(self) -> None:
        frame = snapshot_frame(self.state or {})
        if self.total_frame_mode:
            if self.start_frame is None:
                self.start_frame = frame
            else:
                self.end_frame = frame
            return
        frames = list((self.state or {}).get("frames") or [])
        await self.apply_local_edit({"frames": frames + [frame]})

    async def clear_frames(self) -> None:
        await self.apply_local_edit({"frames": [], "isAnimating": False})

    async def load_tactic(self, tactic: dict[str, Any]) -> None:
        await self.apply_local_edit(tactic.get("state") or {})

    # -- relay requests ---------------------------------------------------

    async def save_tactic(self, name: str | None = None) -> None:
        await self._send(dump(SaveTacticRequest(type="save_tactic", name=name)))

    async def delete_tactic(self, tactic_id: str) -> None:
        await self._send(dump(DeleteTacticRequest(type="delete_tactic", id=tactic_id)))

    async def play_animation(self) -> None:
        await self._send(dump(PlayAnimationRequest(type="play_animation")))

    # -- derived / local-only ---------------------------------------------

    def _refresh_attachment(self) -> None:
        state = self.state
        if not state or state.get("isAnimating"):
            return
        players, ball = state.get("players"), state.get("ball")
        if not isinstance(players, list) or not isinstance(ball, dict):
            return
        self.ball_attached_to = nearest_player_within(players, ball)

    def frames_to_play(self) -> list[dict[str, Any]]:
        if self.total_frame_mode and self.start_frame and self.end_frame:
            return interpolate_endpoints(self.start_frame, self.end_frame)
        return list((self.state or {}).get("frames") or [])

    def _show_pose(self, players: list[dict[str, Any]], ball: dict[str, Any]) -> None:
        if self.state is not None:
            self.state = {**self.state, "players": players, "ball": ball}

    async def run_animation(self) -> None:
        """Play the current frames locally, bracketed by `isAnimating` edits."""
        frames = self.frames_to_play()
        if not frames or self.state is None:
            return
        base_ball = dict(self.state.get("ball") or {})
        attached_to = self.ball_attached_to
        await self.apply_local_edit({"isAnimating": True})
        try:
            await self.animation.play(
                frames, self._show_pose, base_ball=base_ball, attached_to=attached_to
            )
        except (KeyError, TypeError, ValueError) as e:
            # Frames come off the wire unvalidated; stop at the last good pose.
            logger.warning("animation stopped on malformed frames: %r", e)
        finally:
            await self.apply_local_edit({"isAnimating": False})

    def spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("background task failed", exc_info=task.exception())

