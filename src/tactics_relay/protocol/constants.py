# Message type constants (stringly-typed protocol; canonical list lives here)

# client -> relay
T_UPDATE = "update"
T_SAVE_TACTIC = "save_tactic"
T_DELETE_TACTIC = "delete_tactic"
T_PLAY_ANIMATION = "play_animation"

# relay -> client (T_UPDATE and T_PLAY_ANIMATION are reused outbound)
T_INIT = "init"
T_TACTICS_UPDATED = "tactics_updated"

TEAM_COLORS = {"A": "#3b82f6", "B": "#ef4444"}

PENCIL_COLOR = "#fbbf24"
# Eraser strokes are painted in the court background color.
ERASER_COLOR = "#0f172a"

TACTIC_NAME_PREFIX = "Tática"
