from __future__ import annotations

from typing import Any, Literal, Optional, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

from .constants import TEAM_COLORS

# Board coordinates:
# - players/ball: x,y normalized to [0,1] (not enforced; out-of-range renders off-canvas)
# - drawings: flat [x0, y0, x1, y1, ...] in viewport pixels
BoardState: TypeAlias = dict[str, Any]

Team: TypeAlias = Literal["A", "B"]


class Player(BaseModel):
    id: str
    x: float
    y: float
    color: str
    number: str
    team: Team
    scale: Optional[float] = None


class Ball(BaseModel):
    x: float
    y: float


class Drawing(BaseModel):
    id: str
    points: list[float]
    color: str


class Frame(BaseModel):
    players: list[Player]
    ball: Ball


class Tactic(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    state: BoardState
    created_at: str = Field(alias="createdAt")


def _player(pid: str, x: float, y: float, number: str, team: Team) -> dict[str, Any]:
    return Player(
        id=pid, x=x, y=y, color=TEAM_COLORS[team], number=number, team=team
    ).model_dump(exclude_none=True)


def default_players() -> list[dict[str, Any]]:
    """Five per team, goalkeepers on the goal line."""
    return [
        _player("a1", 0.1, 0.5, "1", "A"),
        _player("a2", 0.25, 0.2, "2", "A"),
        _player("a3", 0.25, 0.8, "3", "A"),
        _player("a4", 0.4, 0.5, "4", "A"),
        _player("a5", 0.05, 0.5, "GK", "A"),
        _player("b1", 0.9, 0.5, "1", "B"),
        _player("b2", 0.75, 0.2, "2", "B"),
        _player("b3", 0.75, 0.8, "3", "B"),
        _player("b4", 0.6, 0.5, "4", "B"),
        _player("b5", 0.95, 0.5, "GK", "B"),
    ]


def default_board_state() -> BoardState:
    """Fresh board: default formation, centered ball, nothing drawn or captured."""
    return {
        "players": default_players(),
        "ball": {"x": 0.5, "y": 0.5},
        "drawings": [],
        "frames": [],
        "isAnimating": False,
    }
