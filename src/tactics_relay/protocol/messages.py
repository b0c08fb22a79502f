from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, TypeAlias, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .models import BoardState

# Patch contents are relayed as-is: only the envelope is typed, never the board data.


class UpdateRequest(BaseModel):
    type: Literal["update"]
    state: BoardState


class SaveTacticRequest(BaseModel):
    type: Literal["save_tactic"]
    name: Optional[str] = None


class DeleteTacticRequest(BaseModel):
    type: Literal["delete_tactic"]
    id: str


class PlayAnimationRequest(BaseModel):
    type: Literal["play_animation"]


class Init(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["init"] = "init"
    state: BoardState
    saved_tactics: list[dict[str, Any]] = Field(alias="savedTactics")


class StateUpdate(BaseModel):
    type: Literal["update"] = "update"
    state: BoardState


class TacticsUpdated(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["tactics_updated"] = "tactics_updated"
    saved_tactics: list[dict[str, Any]] = Field(alias="savedTactics")


class PlayAnimation(BaseModel):
    type: Literal["play_animation"] = "play_animation"


InboundMsg: TypeAlias = Annotated[
    Union[UpdateRequest, SaveTacticRequest, DeleteTacticRequest, PlayAnimationRequest],
    Field(discriminator="type"),
]
OutboundMsg: TypeAlias = Annotated[
    Union[Init, StateUpdate, TacticsUpdated, PlayAnimation],
    Field(discriminator="type"),
]

_INBOUND = TypeAdapter(InboundMsg)
_OUTBOUND = TypeAdapter(OutboundMsg)


def parse_inbound(raw: str | bytes) -> InboundMsg:
    """
    Decode one client -> relay frame.

    Raises `pydantic.ValidationError` for invalid JSON, non-object payloads,
    unknown `type` values and missing required fields alike.
    """
    return _INBOUND.validate_json(raw)


def parse_outbound(raw: str | bytes) -> OutboundMsg:
    """Decode one relay -> client frame (same error contract as `parse_inbound`)."""
    return _OUTBOUND.validate_json(raw)


def dump(msg: BaseModel) -> dict[str, Any]:
    """Wire shape of a message (camelCase aliases applied)."""
    return msg.model_dump(by_alias=True)
