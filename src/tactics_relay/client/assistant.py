from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

from .advisor import (
    AdvisoryError,
    AdvisoryService,
    FramesProposal,
    SaveTacticProposal,
    TextAdvice,
)
from .controller import BoardController

logger = logging.getLogger(__name__)

GREETING = "Olá! Sou seu assistente tático. Como posso ajudar com sua estratégia hoje?"
ERROR_REPLY = "Ocorreu um erro ao consultar a IA."
FALLBACK_REPLY = "Desculpe, não consegui processar isso."
FRAMES_REPLY = "Entendido! Veja a jogada que preparei para você."


@dataclass
class ChatMessage:
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = field(default_factory=datetime.now)


class TacticsAssistant:
    """Chat front for the advisory service; acts on the board through the controller."""

    def __init__(
        self,
        controller: BoardController,
        service: AdvisoryService | None = None,
        *,
        play_delay_s: float | None = None,
    ) -> None:
        self.controller = controller
        self.service = service or AdvisoryService(controller.settings)
        self.play_delay_s = (
            controller.settings.advisor_play_delay_s if play_delay_s is None else play_delay_s
        )
        self.history: list[ChatMessage] = [ChatMessage("assistant", GREETING)]
        self.pending_play: asyncio.Task | None = None

    async def ask(self, prompt: str) -> Optional[str]:
        """Send one user request; returns the assistant's reply (None for blank input)."""
        prompt = prompt.strip()
        if not prompt:
            return None
        self.history.append(ChatMessage("user", prompt))

        try:
            advice = await self.service.advise(prompt, self.controller.snapshot())
        except AdvisoryError as e:
            logger.error("advisory request failed: %s", e)
            return self._reply(ERROR_REPLY)

        if isinstance(advice, FramesProposal):
            await self.controller.apply_local_edit({"frames": advice.frames})
            self.pending_play = self.controller.spawn(self._play_later())
            return self._reply(advice.explanation or FRAMES_REPLY)
        if isinstance(advice, SaveTacticProposal):
            await self.controller.save_tactic(advice.name)
            return self._reply(
                f'Tática "{advice.name}" salva com sucesso! '
                "Você pode encontrá-la na lista de táticas salvas."
            )
        if isinstance(advice, TextAdvice):
            return self._reply(advice.text or FALLBACK_REPLY)
        return self._reply(FALLBACK_REPLY)

    async def _play_later(self) -> None:
        # Leave the explanation on screen briefly before the play starts.
        await asyncio.sleep(self.play_delay_s)
        await self.controller.play_animation()

    def _reply(self, text: str) -> str:
        self.history.append(ChatMessage("assistant", text))
        return text
