"""
Runtime settings.

Values come from the environment (prefix ``GAMEHUB_``) or a local ``.env``
file. Defaults suit a development machine.

Example ``.env``::

    GAMEHUB_PORT=9000
    GAMEHUB_LOG_LEVEL=DEBUG
    GAMEHUB_TURN_TIMER_SECONDS=45
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Bind address for the websocket server
    host: str = "0.0.0.0"
    port: int = 8765

    log_level: str = "INFO"

    # Conditional writes that lose a race are re-read and retried this often
    persist_max_retries: int = 3

    # Seconds a dropped player keeps their seat before their turn is skipped
    disconnect_grace_seconds: float = 5.0

    # A bot-turn lock older than this is treated as abandoned
    bot_turn_timeout_seconds: float = 30.0
    # Multiplier on bot thinking/action delays (0 disables them)
    bot_delay_scale: float = 1.0

    # Turn length before the timer auto-plays; 0 disables the timer
    turn_timer_seconds: float = 60.0

    model_config = SettingsConfigDict(
        env_prefix="GAMEHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
