"""Mattermost REST API v4 client used to post, update and look up messages."""

import logging
from typing import Any

import httpx

from app.errors import MattermostError
from app.models.post import Post

logger = logging.getLogger(__name__)

# Global client instance
_client: "MattermostClient | None" = None


class MattermostClient:
    """Thin async wrapper over the endpoints the bridge needs.

    Authenticates as the bot account whose access token is configured.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/api/v4",
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout_s,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, path: str, json: Any = None) -> Any:
        try:
            resp = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            raise MattermostError(f"{method} {path}: {e}") from e

        if resp.status_code >= 400:
            logger.debug(f"Mattermost API error: {method} {path} status={resp.status_code} body={resp.text}")
            raise MattermostError(
                f"{method} {path}: status {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )
        return resp.json()

    async def get_me(self) -> dict[str, Any]:
        return await self._call("GET", "/users/me")

    async def get_user(self, user_id: str) -> dict[str, Any]:
        return await self._call("GET", f"/users/{user_id}")

    async def create_post(self, post: Post) -> Post:
        data = await self._call("POST", "/posts", json=post.model_dump(exclude_defaults=True))
        return Post.model_validate(data)

    async def get_post(self, post_id: str) -> Post:
        data = await self._call("GET", f"/posts/{post_id}")
        return Post.model_validate(data)

    async def update_post(self, post: Post) -> Post:
        data = await self._call("PUT", f"/posts/{post.id}", json=post.model_dump())
        return Post.model_validate(data)

    async def get_team_by_name(self, name: str) -> dict[str, Any]:
        return await self._call("GET", f"/teams/name/{name}")

    async def get_channel_by_name(self, team_id: str, name: str) -> dict[str, Any] | None:
        """Return the channel, or None when the team has no channel with that name."""
        try:
            return await self._call("GET", f"/teams/{team_id}/channels/name/{name}")
        except MattermostError as e:
            if e.status_code == 404:
                return None
            raise

    async def create_channel(self, team_id: str, name: str, display_name: str) -> dict[str, Any]:
        return await self._call(
            "POST",
            "/channels",
            json={"team_id": team_id, "name": name, "display_name": display_name, "type": "O"},
        )


def init_mattermost_client(base_url: str, token: str) -> MattermostClient:
    global _client

    logger.info(f"Connecting to Mattermost: {base_url}")
    _client = MattermostClient(base_url, token)
    return _client


async def close_mattermost_client() -> None:
    global _client

    if _client:
        await _client.aclose()
        _client = None
        logger.info("Mattermost client closed")


def get_mattermost_client() -> MattermostClient:
    if _client is None:
        raise RuntimeError("Mattermost client not initialized. Call init_mattermost_client() first.")
    return _client
