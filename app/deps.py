"""FastAPI dependencies for token resolution and shared clients."""

from typing import Annotated

from fastapi import Depends, Query

from app.channels.mattermost import MattermostClient, get_mattermost_client
from app.config import Settings, get_settings
from app.errors import AuthError
from app.models.alert_config import AlertConfig
from app.services.alertmanager import AlertmanagerClient, get_alertmanager_client
from app.services.registry import ConfigurationRegistry, get_registry

INVALID_TOKEN_MSG = "Invalid or missing token"


async def get_alert_config(
    registry: Annotated[ConfigurationRegistry, Depends(get_registry)],
    token: str = Query(default=""),
) -> AlertConfig:
    """Resolve the ``token`` query parameter to its Alertmanager configuration.

    Raises AuthError for a missing token and for a token nobody owns alike.
    """
    config = registry.resolve(token)
    if config is None:
        raise AuthError(INVALID_TOKEN_MSG)
    return config


# Type aliases for cleaner route signatures
CurrentAlertConfig = Annotated[AlertConfig, Depends(get_alert_config)]
Registry = Annotated[ConfigurationRegistry, Depends(get_registry)]
Mattermost = Annotated[MattermostClient, Depends(get_mattermost_client)]
Alertmanager = Annotated[AlertmanagerClient, Depends(get_alertmanager_client)]
AppSettings = Annotated[Settings, Depends(get_settings)]
