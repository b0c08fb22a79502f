from __future__ import annotations

import asyncio
import http.client
import json
import urllib.request
from dataclasses import dataclass
from typing import Any, Union

from pydantic import TypeAdapter, ValidationError

from tactics_relay.protocol.models import BoardState, Frame
from tactics_relay.server.config import Settings, get_settings

TOOL_UPDATE_BOARD = "updateBoardWithAnimation"
TOOL_SAVE_TACTIC = "saveTactic"

_FRAMES = TypeAdapter(list[Frame])

SYSTEM_PROMPT = (
    "Você é um treinador de futsal profissional de elite.\n"
    "Ajude o usuário a criar estratégias e jogadas ensaiadas: marcação (baixa, alta, "
    "goleiro linha, laterais, faltas, escanteios), rodízios (4-0, 3-1), jogadas "
    "ensaiadas de falta, lateral e escanteio, fundamentos e dribles.\n"
    "Quando o usuário pedir para mostrar, desenhar, fazer ou criar uma jogada, use a "
    f"ferramenta {TOOL_UPDATE_BOARD}.\n"
    "Quando o usuário pedir para salvar, guardar ou eternizar a tática atual, use a "
    f"ferramenta {TOOL_SAVE_TACTIC}.\n"
    "Regras para as coordenadas:\n"
    "- X e Y entre 0 e 1.\n"
    "- X=0 é a linha de fundo esquerda (Time A), X=1 a linha de fundo direita (Time B).\n"
    "- Y=0 é a lateral superior, Y=1 a lateral inferior; o centro é (0.5, 0.5).\n"
    "- O gol do Time A fica em (0.05, 0.5); o gol do Time B em (0.95, 0.5).\n"
    "Crie de 3 a 5 frames; o primeiro com a formação inicial, "
    "os seguintes com a movimentação.\n"
)


class AdvisoryError(RuntimeError):
    """The advisory service could not produce a usable answer."""


@dataclass(frozen=True)
class TextAdvice:
    text: str


@dataclass(frozen=True)
class FramesProposal:
    frames: list[dict[str, Any]]
    explanation: str


@dataclass(frozen=True)
class SaveTacticProposal:
    name: str


Advice = Union[TextAdvice, FramesProposal, SaveTacticProposal]


def _tools() -> list[dict]:
    point = {"type": "number", "description": "Posição (0 a 1)"}
    player = {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "x": point,
            "y": point,
            "team": {"type": "string", "enum": ["A", "B"]},
            "number": {"type": "string"},
            "color": {"type": "string"},
        },
        "required": ["id", "x", "y", "team", "number", "color"],
    }
    frame = {
        "type": "object",
        "properties": {
            "players": {"type": "array", "items": player},
            "ball": {
                "type": "object",
                "properties": {"x": point, "y": point},
                "required": ["x", "y"],
            },
        },
        "required": ["players", "ball"],
    }
    return [
        {
            "type": "function",
            "function": {
                "name": TOOL_UPDATE_BOARD,
                "description": (
                    "Atualiza a lousa tática com uma sequência de frames "
                    "para animar uma jogada ensaiada."
                ),
                "parameters": {
                    "type": "object",
                    "properties": {
                        "frames": {
                            "type": "array",
                            "description": (
                                "Frames da jogada: posição de todos os jogadores e da bola."
                            ),
                            "items": frame,
                        },
                        "explanation": {
                            "type": "string",
                            "description": "Explicação técnica da jogada, mostrada no chat.",
                        },
                    },
                    "required": ["frames", "explanation"],
                },
            },
        },
        {
            "type": "function",
            "function": {
                "name": TOOL_SAVE_TACTIC,
                "description": "Salva a tática ou jogada atual com um nome específico.",
                "parameters": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "O nome da tática a ser salva."}
                    },
                    "required": ["name"],
                },
            },
        },
    ]


def _model_server_payload(
    *,
    prompt: str,
    board_state: BoardState,
    model: str,
    temperature: float,
) -> dict:
    board = json.dumps(board_state, separators=(",", ":"), ensure_ascii=False)
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"Estado atual do campo: {board}. Pergunta: {prompt}"},
        ],
        "tools": _tools(),
        "tool_choice": "auto",
        "temperature": temperature,
        "stream": False,
    }


def _call_model_server_sync(
    *, base_url: str, timeout_s: float, payload: dict, api_key: str | None = None
) -> dict:
    url = base_url.rstrip("/") + "/v1/chat/completions"
    data = json.dumps(payload).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    req = urllib.request.Request(url, data=data, headers=headers, method="POST")
    with urllib.request.urlopen(req, timeout=timeout_s) as resp:
        raw = resp.read().decode("utf-8")
        return json.loads(raw)


def parse_advice(resp: dict) -> Advice:
    """
    Turn a chat-completions response into one of the advice shapes.

    Only the first tool call is honored; anything else falls back to the
    message text.
    """
    try:
        msg = resp["choices"][0]["message"]
        tool_calls = msg.get("tool_calls") or []
        if not tool_calls:
            return TextAdvice(text=msg.get("content") or "")
        call = tool_calls[0]["function"]
        name = call.get("name")
        args = json.loads(call.get("arguments") or "{}")
    except (KeyError, IndexError, TypeError, AttributeError, json.JSONDecodeError) as e:
        raise AdvisoryError(f"model-server bad response: {e}") from e
    if not isinstance(args, dict):
        raise AdvisoryError(f"tool {name} arguments are not an object")

    if name == TOOL_UPDATE_BOARD:
        try:
            frames = _FRAMES.validate_python(args.get("frames"))
        except ValidationError as e:
            raise AdvisoryError(f"tool {name} returned invalid frames: {e}") from e
        return FramesProposal(
            frames=[f.model_dump(exclude_none=True) for f in frames],
            explanation=str(args.get("explanation") or ""),
        )
    if name == TOOL_SAVE_TACTIC:
        return SaveTacticProposal(name=str(args.get("name") or ""))
    return TextAdvice(text=msg.get("content") or "")


class AdvisoryService:
    """Natural-language coach behind an OpenAI-compatible model server."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    async def advise(self, prompt: str, board_state: BoardState) -> Advice:
        settings = self.settings
        if not settings.model_server_url:
            raise AdvisoryError("model-server not configured")

        payload = _model_server_payload(
            prompt=prompt,
            board_state=board_state,
            model=settings.model_server_model,
            temperature=settings.model_server_temperature,
        )
        try:
            resp = await asyncio.to_thread(
                _call_model_server_sync,
                base_url=settings.model_server_url,
                timeout_s=settings.model_server_timeout_s,
                payload=payload,
                api_key=settings.model_server_api_key,
            )
        except (OSError, http.client.HTTPException) as e:
            raise AdvisoryError(f"model-server unreachable: {e}") from e
        except json.JSONDecodeError as e:
            raise AdvisoryError(f"model-server bad response: {e}") from e

        if not isinstance(resp, dict):
            raise AdvisoryError("model-server bad response: not an object")
        return parse_advice(resp)
