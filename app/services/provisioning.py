"""Startup and reload: load configurations and make sure their channels exist."""

import logging
from pathlib import Path

from app.channels.mattermost import MattermostClient
from app.errors import ConfigError, MattermostError
from app.models.alert_config import AlertConfig
from app.services.registry import ConfigurationRegistry

logger = logging.getLogger(__name__)


async def ensure_alert_channel_exists(client: MattermostClient, config: AlertConfig) -> str:
    """Return the ID of the config's channel, creating it in the team if needed."""
    config.is_valid()

    try:
        team = await client.get_team_by_name(config.team)
    except MattermostError as e:
        raise ConfigError(f"Failed to get team {config.team!r}: {e}") from e

    try:
        channel = await client.get_channel_by_name(team["id"], config.channel)
        if channel is None:
            logger.info(f"Creating channel {config.channel!r} in team {config.team!r}")
            channel = await client.create_channel(team["id"], config.channel, config.channel)
    except MattermostError as e:
        raise ConfigError(f"Failed to ensure channel {config.channel!r}: {e}") from e

    return channel["id"]


async def provision_channels(registry: ConfigurationRegistry, client: MattermostClient) -> dict[str, str]:
    """Resolve channel IDs for every config and publish them in the registry.

    A config whose channel cannot be provisioned is logged and skipped.
    """
    channel_ids: dict[str, str] = {}
    for config in registry.configs():
        try:
            channel_ids[config.id] = await ensure_alert_channel_exists(client, config)
        except ConfigError as e:
            logger.warning(f"Failed to ensure alert channel for {config.id}: {e}")

    registry.set_channel_ids(channel_ids)
    return channel_ids


async def load_and_provision(
    registry: ConfigurationRegistry,
    client: MattermostClient,
    config_path: str | Path,
) -> None:
    """(Re)load the configuration file, then provision channels.

    A file that cannot be read leaves the current configuration in place.
    """
    try:
        registry.reload_from_file(config_path)
    except ConfigError as e:
        logger.error(f"Failed to load alert configurations: {e}")
        return

    try:
        bot = await client.get_me()
        logger.info(f"Posting as Mattermost user {bot.get('username')} ({bot.get('id')})")
    except MattermostError as e:
        logger.error(f"Failed to look up the bot account: {e}")

    await provision_channels(registry, client)
