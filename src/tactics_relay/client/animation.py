from __future__ import annotations

import asyncio
import copy
import math
import time
from typing import Any, Awaitable, Callable, Optional

# Every client runs this locally after a `play_animation` signal; peers stay
# visually consistent only because the constants and formulas are identical.
SEGMENT_DURATION_MS = 1200
SEGMENT_PAUSE_MS = 100
TOTAL_FRAME_STEPS = 30
BALL_TIME_SCALE = 1.2
SCALE_PULSE = 0.1
TICK_S = 1 / 60

Pose = tuple[list[dict[str, Any]], dict[str, Any]]  # (players, ball)


def ease_in_out_cubic(t: float) -> float:
    return 4 * t * t * t if t < 0.5 else 1 - math.pow(-2 * t + 2, 3) / 2


def _lerp(a: float, b: float, p: float) -> float:
    return a + (b - a) * p


def _pulse(progress: float) -> float:
    return 1 + math.sin(progress * math.pi) * SCALE_PULSE


def _tween_players(
    start_players: list[dict[str, Any]], end_players: list[dict[str, Any]], progress: float
) -> list[dict[str, Any]]:
    by_id = {}
    for p in end_players:
        by_id.setdefault(p.get("id"), p)
    out: list[dict[str, Any]] = []
    for sp in start_players:
        ep = by_id.get(sp.get("id"))
        if ep is None:
            out.append(dict(sp))
            continue
        out.append(
            {
                **sp,
                "x": _lerp(sp["x"], ep["x"], progress),
                "y": _lerp(sp["y"], ep["y"], progress),
                "scale": _pulse(progress),
            }
        )
    return out


def snapshot_frame(state: dict[str, Any]) -> dict[str, Any]:
    """Deep copy of the live players and ball, usable as a keyframe."""
    return {
        "players": copy.deepcopy(state.get("players") or []),
        "ball": copy.deepcopy(state.get("ball") or {}),
    }


def interpolate_endpoints(
    start: dict[str, Any], end: dict[str, Any], steps: int = TOTAL_FRAME_STEPS
) -> list[dict[str, Any]]:
    """Total-frame mode: `steps + 1` linear keyframes from `start` to `end` inclusive."""
    frames: list[dict[str, Any]] = []
    for i in range(steps + 1):
        progress = i / steps
        frames.append(
            {
                "players": _tween_players(start["players"], end["players"], progress),
                "ball": {
                    "x": _lerp(start["ball"]["x"], end["ball"]["x"], progress),
                    "y": _lerp(start["ball"]["y"], end["ball"]["y"], progress),
                },
            }
        )
    return frames


def segment_pose(
    start: dict[str, Any],
    end: dict[str, Any],
    t: float,
    *,
    base_ball: dict[str, Any],
    attached_to: Optional[str] = None,
) -> Pose:
    """
    Pose at linear time `t` in [0,1] between two keyframes.

    An attached ball rides on its player's interpolated position; if that player
    is absent the ball stays at `base_ball` (its pre-playback position).
    """
    progress = ease_in_out_cubic(t)
    players = _tween_players(start["players"], end["players"], progress)

    ball = dict(base_ball)
    if attached_to:
        carrier = next((p for p in players if p.get("id") == attached_to), None)
        if carrier is not None:
            ball["x"] = carrier["x"]
            ball["y"] = carrier["y"]
    else:
        ball_progress = ease_in_out_cubic(min(t * BALL_TIME_SCALE, 1))
        ball["x"] = _lerp(start["ball"]["x"], end["ball"]["x"], ball_progress)
        ball["y"] = _lerp(start["ball"]["y"], end["ball"]["y"], ball_progress)
    return players, ball


class AnimationEngine:
    """Plays keyframes as a timed sequence of poses; nothing here touches the wire."""

    def __init__(
        self,
        *,
        duration_ms: float = SEGMENT_DURATION_MS,
        pause_ms: float = SEGMENT_PAUSE_MS,
        tick_s: float = TICK_S,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.duration_s = duration_ms / 1000
        self.pause_s = pause_ms / 1000
        self.tick_s = tick_s
        self._clock = clock
        self._sleep = sleep

    async def play(
        self,
        frames: list[dict[str, Any]],
        on_pose: Callable[[list[dict[str, Any]], dict[str, Any]], None],
        *,
        base_ball: dict[str, Any],
        attached_to: Optional[str] = None,
    ) -> int:
        """Run every consecutive segment; returns the number of poses emitted."""
        emitted = 0
        for start, end in zip(frames, frames[1:]):
            t0 = self._clock()
            while True:
                t = min((self._clock() - t0) / self.duration_s, 1.0)
                on_pose(*segment_pose(start, end, t, base_ball=base_ball, attached_to=attached_to))
                emitted += 1
                if t >= 1.0:
                    break
                await self._sleep(self.tick_s)
            await self._sleep(self.pause_s)
        return emitted
