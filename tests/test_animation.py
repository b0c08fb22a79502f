"""Unit tests for src/tactics_relay/client/animation.py"""

# ruff: noqa: E501
import asyncio

import pytest

from tactics_relay.client.animation import (
    AnimationEngine,
    ease_in_out_cubic,
    interpolate_endpoints,
    segment_pose,
    snapshot_frame,
)


def _player(pid: str, x: float, y: float) -> dict:
    return {"id": pid, "x": x, "y": y, "color": "#3b82f6", "number": "1", "team": "A"}


START = {"players": [_player("a1", 0.0, 0.0), _player("a2", 0.5, 0.5)], "ball": {"x": 0.0, "y": 0.0}}
END = {"players": [_player("a1", 1.0, 0.5), _player("a2", 0.5, 1.0)], "ball": {"x": 1.0, "y": 1.0}}


class FakeClock:
    """Time only moves when the engine sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# --- EASING ----
def test_ease_in_out_cubic_shape() -> None:
    assert ease_in_out_cubic(0.0) == 0.0
    assert ease_in_out_cubic(0.25) == pytest.approx(0.0625)
    assert ease_in_out_cubic(0.5) == pytest.approx(0.5)
    assert ease_in_out_cubic(0.75) == pytest.approx(0.9375)
    assert ease_in_out_cubic(1.0) == 1.0


# --- SEGMENT POSES ----
def test_segment_endpoints() -> None:
    players, ball = segment_pose(START, END, 0.0, base_ball={"x": 0.3, "y": 0.3})
    assert [(p["x"], p["y"]) for p in players] == [(0.0, 0.0), (0.5, 0.5)]
    assert ball == {"x": 0.0, "y": 0.0}

    players, ball = segment_pose(START, END, 1.0, base_ball={"x": 0.3, "y": 0.3})
    assert [(p["x"], p["y"]) for p in players] == [(1.0, 0.5), (0.5, 1.0)]
    assert players[0]["scale"] == pytest.approx(1.0)
    assert ball == {"x": 1.0, "y": 1.0}


def test_midpoint_pulses_scale() -> None:
    players, _ = segment_pose(START, END, 0.5, base_ball={"x": 0, "y": 0})
    assert players[0]["x"] == pytest.approx(0.5)
    assert players[0]["scale"] == pytest.approx(1.1)


def test_ball_arrives_before_players() -> None:
    """Ball time runs 1.2x faster, so it lands at t = 1/1.2 while players are still moving."""
    players, ball = segment_pose(START, END, 1 / 1.2, base_ball={"x": 0, "y": 0})
    assert ball == {"x": 1.0, "y": 1.0}
    assert players[0]["x"] < 1.0


def test_attached_ball_rides_with_player() -> None:
    players, ball = segment_pose(START, END, 0.5, base_ball={"x": 0.9, "y": 0.9}, attached_to="a2")
    assert ball == {"x": players[1]["x"], "y": players[1]["y"]}


def test_attached_to_missing_player_keeps_base_ball() -> None:
    _, ball = segment_pose(START, END, 0.5, base_ball={"x": 0.9, "y": 0.9}, attached_to="zz")
    assert ball == {"x": 0.9, "y": 0.9}


def test_player_missing_from_end_frame_stays_put() -> None:
    end = {"players": [_player("a1", 1.0, 1.0)], "ball": END["ball"]}
    players, _ = segment_pose(START, end, 0.5, base_ball={"x": 0, "y": 0})
    assert players[1] == START["players"][1]


# --- TOTAL FRAME MODE ----
def test_interpolate_endpoints_makes_31_linear_frames() -> None:
    frames = interpolate_endpoints(START, END)

    assert len(frames) == 31
    assert frames[0]["players"][0]["x"] == 0.0
    assert frames[-1]["players"][0]["x"] == pytest.approx(1.0)
    assert frames[15]["ball"]["x"] == pytest.approx(0.5)
    assert frames[15]["players"][0]["scale"] == pytest.approx(1.1)


def test_snapshot_frame_is_a_deep_copy() -> None:
    state = {"players": [_player("a1", 0.1, 0.1)], "ball": {"x": 0.5, "y": 0.5}, "drawings": []}
    frame = snapshot_frame(state)

    state["players"][0]["x"] = 0.9
    state["ball"]["x"] = 0.0

    assert frame == {"players": [_player("a1", 0.1, 0.1)], "ball": {"x": 0.5, "y": 0.5}}


# --- PLAYBACK ----
def test_play_runs_every_segment_with_pauses() -> None:
    clock = FakeClock()
    engine = AnimationEngine(duration_ms=1000, pause_ms=500, tick_s=0.25, clock=clock, sleep=clock.sleep)
    poses: list[tuple] = []
    middle = {"players": [_player("a1", 0.5, 0.5), _player("a2", 0.5, 0.5)], "ball": {"x": 0.5, "y": 0.5}}

    emitted = asyncio.run(
        engine.play([START, middle, END], lambda p, b: poses.append((p, b)), base_ball={"x": 0, "y": 0})
    )

    # t = 0, .25, .5, .75, 1 for each of the two segments
    assert emitted == len(poses) == 10
    assert clock.sleeps.count(0.5) == 2
    final_players, final_ball = poses[-1]
    assert [(p["x"], p["y"]) for p in final_players] == [(1.0, 0.5), (0.5, 1.0)]
    assert final_ball == {"x": 1.0, "y": 1.0}


def test_play_with_single_frame_emits_nothing() -> None:
    clock = FakeClock()
    engine = AnimationEngine(clock=clock, sleep=clock.sleep)
    poses: list = []

    assert asyncio.run(engine.play([START], lambda p, b: poses.append(p), base_ball={})) == 0
    assert poses == []
