from .constants import (
    T_DELETE_TACTIC,
    T_INIT,
    T_PLAY_ANIMATION,
    T_SAVE_TACTIC,
    T_TACTICS_UPDATED,
    T_UPDATE,
)

__all__ = [
    "T_DELETE_TACTIC",
    "T_INIT",
    "T_PLAY_ANIMATION",
    "T_SAVE_TACTIC",
    "T_TACTICS_UPDATED",
    "T_UPDATE",
]
