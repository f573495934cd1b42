"""Slash command endpoint for ``/alertmanager``."""

import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, Form

from app.deps import INVALID_TOKEN_MSG, Alertmanager, AppSettings, Mattermost, Registry
from app.errors import AuthError
from app.models.post import CommandResponse
from app.services.commands import CommandDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["commands"])

TRIGGER = "/alertmanager"


@router.post("/command")
async def execute_command(
    registry: Registry,
    alertmanager: Alertmanager,
    mattermost: Mattermost,
    settings: AppSettings,
    token: Annotated[str, Form()] = "",
    command: Annotated[str, Form()] = TRIGGER,
    text: Annotated[str, Form()] = "",
    user_id: Annotated[str, Form()] = "",
    channel_id: Annotated[str, Form()] = "",
) -> CommandResponse:
    """Handle the form Mattermost sends for a custom slash command."""
    expected = settings.mattermost_command_token
    if expected and not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        raise AuthError(INVALID_TOKEN_MSG)

    if command != TRIGGER:
        return CommandResponse()

    dispatcher = CommandDispatcher(registry, alertmanager, mattermost, settings)
    return await dispatcher.execute(text, user_id, channel_id)
