from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime config (relay server and board clients).

    - Loaded from environment variables (`TACTICS_` prefix)
    - Also reads `.env` if present (via pydantic-settings + python-dotenv)
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="TACTICS_", extra="ignore")

    # Relay process
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    # Built front-end bundle; served at / when set.
    static_dir: str | None = None

    # Debugging
    debug_log_msgs: bool = False

    # Board client
    relay_url: str = "ws://127.0.0.1:3000/ws"
    # 0 keeps a dropped client offline until it is restarted.
    client_reconnect_attempts: int = 0
    client_reconnect_delay_s: float = 0.5

    # Advisory service: OpenAI-compatible model server.
    # If set, the assistant will call `{model_server_url}/v1/chat/completions`.
    model_server_url: str | None = None
    model_server_model: str = "tactics_coach"
    model_server_timeout_s: float = 30.0
    model_server_temperature: float = 0.4
    model_server_api_key: str | None = None

    # Delay between applying proposed frames and starting playback.
    advisor_play_delay_s: float = 1.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
