from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from tactics_relay.protocol.constants import TACTIC_NAME_PREFIX
from tactics_relay.protocol.models import BoardState, Tactic, default_board_state

logger = logging.getLogger(__name__)


def _iso_now() -> str:
    # Millisecond precision, trailing Z (matches browser `Date.toISOString()`).
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class BoardStore:
    """
    Canonical board state plus the saved-tactics list.

    Owned by the relay handler; every mutation goes through these methods.
    Nothing is validated: odd patches are stored as given and left to the
    display layer. Callers always get copies back.
    """

    def __init__(self, initial: BoardState | None = None) -> None:
        self._state: BoardState = (
            copy.deepcopy(initial) if initial is not None else default_board_state()
        )
        self._tactics: list[Tactic] = []

    def snapshot(self) -> BoardState:
        return copy.deepcopy(self._state)

    def apply_patch(self, patch: dict[str, Any]) -> BoardState:
        """Shallow merge: keys in `patch` replace the current value whole, others are kept."""
        for key, value in patch.items():
            self._state[key] = copy.deepcopy(value)
        return self.snapshot()

    def reset(self) -> BoardState:
        self._state = default_board_state()
        return self.snapshot()

    def saved_tactics(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(t.model_dump(by_alias=True)) for t in self._tactics]

    def save_tactic(self, name: str | None = None) -> Tactic:
        tactic = Tactic(
            id=uuid.uuid4().hex[:12],
            name=name or f"{TACTIC_NAME_PREFIX} {len(self._tactics) + 1}",
            state=copy.deepcopy(self._state),
            created_at=_iso_now(),
        )
        self._tactics.append(tactic)
        logger.info(
            "saved tactic id=%s name=%r (total=%d)", tactic.id, tactic.name, len(self._tactics)
        )
        return tactic.model_copy(deep=True)

    def delete_tactic(self, tactic_id: str) -> bool:
        before = len(self._tactics)
        self._tactics = [t for t in self._tactics if t.id != tactic_id]
        removed = len(self._tactics) < before
        if not removed:
            logger.debug("delete_tactic: no tactic with id=%s", tactic_id)
        return removed
