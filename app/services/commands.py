"""The ``/alertmanager`` slash command."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from app.channels.mattermost import MattermostClient
from app.config import Settings
from app.errors import BridgeError, MattermostError
from app.models.alert_config import AlertConfig
from app.models.post import Attachment, CommandResponse, Post
from app.services.alertmanager import AlertmanagerClient
from app.services.formatting import alert_attachment, silence_attachment, status_attachment
from app.services.registry import ConfigurationRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

HELP_MSG = """run:
	/alertmanager alerts - to list the existing alerts
	/alertmanager silences - to list the existing silences
	/alertmanager expire_silence <ALERTMANAGER_CONFIG_ID> <SILENCE_ID> - to expire the specified silence
	/alertmanager status - to list the version and uptime of the Alertmanager instances
	/alertmanager help - to get this help
"""

MISSING_COMMAND_MSG = "Missing command, please run `/alertmanager help` to check all commands available."


class CommandDispatcher:
    """Run ``/alertmanager`` sub-commands against every configured Alertmanager."""

    def __init__(
        self,
        registry: ConfigurationRegistry,
        alertmanager: AlertmanagerClient,
        mattermost: MattermostClient,
        settings: Settings,
    ):
        self._registry = registry
        self._alertmanager = alertmanager
        self._mattermost = mattermost
        self._settings = settings

    def _response(self, text: str, response_type: str = "ephemeral") -> CommandResponse:
        return CommandResponse(
            response_type=response_type,
            text=text,
            username=self._settings.bot_username,
            icon_url=self._settings.bot_icon_url,
        )

    async def execute(self, text: str, user_id: str, channel_id: str) -> CommandResponse:
        """Dispatch the text following ``/alertmanager``."""
        split = text.split()
        if split and split[0] == "/alertmanager":
            split = split[1:]
        if not split:
            return self._response(MISSING_COMMAND_MSG)

        action, parameters = split[0], split[1:]
        logger.info(f"Running /alertmanager {action} for user {user_id}")

        if action == "alerts":
            return await self._list_alerts(channel_id)
        if action == "silences":
            return await self._list_silences(user_id, channel_id)
        if action == "status":
            return await self._status(channel_id)
        if action == "expire_silence":
            return await self._expire_silence(parameters)
        return self._response(HELP_MSG)

    async def _fan_out(
        self,
        call: Callable[[AlertConfig], Awaitable[T]],
        what: str,
    ) -> tuple[list[tuple[AlertConfig, T]], list[str]]:
        """Call every Alertmanager concurrently; failures are collected, not raised."""
        configs = self._registry.configs()
        results = await asyncio.gather(*(call(c) for c in configs), return_exceptions=True)
        succeeded: list[tuple[AlertConfig, T]] = []
        errors: list[str] = []
        for config, result in zip(configs, results):
            if isinstance(result, BridgeError):
                errors.append(f"[{config.id}] failed to {what}... {result}")
            elif isinstance(result, BaseException):
                raise result
            else:
                succeeded.append((config, result))
        return succeeded, errors

    async def _post(self, channel_id: str, attachments: list[Attachment]) -> Optional[str]:
        post = Post(
            channel_id=channel_id,
            props={
                "from_webhook": "true",
                "override_username": self._settings.bot_username,
                "override_icon_url": self._settings.bot_icon_url,
            },
        )
        post.set_attachments(attachments)
        try:
            await self._mattermost.create_post(post)
        except MattermostError as e:
            logger.error(f"Failed to create post in channel {channel_id}: {e}")
            return str(e)
        return None

    async def _publish(
        self,
        channel_id: str,
        rendered: list[tuple[AlertConfig, list[Attachment]]],
        errors: list[str],
        empty_text: str,
    ) -> CommandResponse:
        posted = 0
        for config, attachments in rendered:
            if not attachments:
                continue
            error = await self._post(channel_id, attachments)
            if error:
                errors.append(f"[{config.id}] Error creating the post: {error}")
            else:
                posted += 1

        if errors:
            return self._response("\n".join(errors))
        if not posted:
            return self._response(empty_text, "in_channel")
        return self._response("")

    async def _list_alerts(self, channel_id: str) -> CommandResponse:
        results, errors = await self._fan_out(
            lambda c: self._alertmanager.list_alerts(c.alertmanager_url), "list alerts"
        )
        rendered = [
            (config, [alert_attachment(config, alert) for alert in alerts])
            for config, alerts in results
        ]
        return await self._publish(channel_id, rendered, errors, "No alerts right now! :tada:")

    async def _list_silences(self, user_id: str, channel_id: str) -> CommandResponse:
        results, errors = await self._fan_out(
            lambda c: self._alertmanager.list_silences(c.alertmanager_url), "get silences"
        )
        base_url = self._settings.base_url.rstrip("/")
        rendered = []
        for config, silences in results:
            expire_url = f"{base_url}/api/expire?token={config.token}"
            rendered.append((
                config,
                [
                    silence_attachment(config, silence, expire_url, user_id)
                    for silence in silences
                    if silence.state != "expired"
                ],
            ))
        return await self._publish(channel_id, rendered, errors, "No active or pending silences right now.")

    async def _status(self, channel_id: str) -> CommandResponse:
        results, errors = await self._fan_out(
            lambda c: self._alertmanager.status(c.alertmanager_url), "get status"
        )
        rendered = [(config, [status_attachment(config, status)]) for config, status in results]
        return await self._publish(channel_id, rendered, errors, "No Alertmanager configured.")

    async def _expire_silence(self, parameters: list[str]) -> CommandResponse:
        if len(parameters) != 2:
            return self._response(
                "Usage: `/alertmanager expire_silence <ALERTMANAGER_CONFIG_ID> <SILENCE_ID>`"
            )

        config_id, silence_id = parameters
        config = self._registry.get(config_id)
        if config is None:
            return self._response(f"Alertmanager configuration `{config_id}` not found.")

        try:
            await self._alertmanager.expire_silence(silence_id, config.alertmanager_url)
        except BridgeError as e:
            return self._response(f"failed to expire the silence: {e}")
        return self._response(f"Silence {silence_id} expired.", "in_channel")
