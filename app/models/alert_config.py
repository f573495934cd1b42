"""Alertmanager connection profiles."""

from pydantic import BaseModel, ConfigDict, Field

from app.errors import ConfigError


class AlertConfig(BaseModel):
    """One Alertmanager instance and where its notifications go."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    alertmanager_url: str = Field(default="", alias="alertmanagerurl")
    channel: str = ""
    team: str = ""
    token: str = ""

    def is_valid(self) -> None:
        """Raise ``ConfigError`` naming the first required field that is empty."""
        for field_name in ("team", "channel", "token", "alertmanager_url"):
            if not getattr(self, field_name).strip():
                raise ConfigError(f"Alert configuration {self.id!r} must have a {field_name}")


class AlertConfigFile(BaseModel):
    """Root of the YAML configuration file."""

    alert_configs: list[AlertConfig] = Field(default_factory=list)
