from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Controller Relay"
    debug: bool = False
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    host: str = "0.0.0.0"
    port: int = 3000
    static_dir: str = "public"
    log_level: str = "INFO"
    log_dir: str | None = None

    redis_url: str = "redis://localhost:6379/0"
    rate_limit_enabled: bool = True
    websocket_connect_limit: int = 30
    websocket_connect_window_seconds: int = 60

    player_id_prefix: str = "player_"
    session_cleanup_interval_seconds: float = 300.0
    session_expiry_seconds: float = 600.0
    stats_log_interval_seconds: float = 0.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
