"""Configuration management for the Alertmanager bridge."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server settings
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8065)
    log_level: str = Field(default="INFO")
    # Public URL of this service, used for interactive button callbacks
    base_url: str = Field(default="http://localhost:8065")

    # Mattermost
    mattermost_url: str = Field(default="http://localhost:8065")
    mattermost_bot_token: str = Field(default="")
    # Token of the /alertmanager slash command; empty disables the check
    mattermost_command_token: str = Field(default="")
    bot_username: str = Field(default="AlertManager Bot")
    bot_icon_url: str = Field(default="")

    # Alertmanager connection profiles (YAML)
    alert_configs: str = Field(default="alertmanager.yaml")
    alertmanager_timeout: float = Field(default=15.0)

    # Rewrite the original post even when expiring the silence failed
    reconcile_on_expire_failure: bool = Field(default=True)

    @property
    def alert_configs_path(self) -> Path:
        return Path(self.alert_configs)


@lru_cache
def get_settings() -> Settings:
    return Settings()
