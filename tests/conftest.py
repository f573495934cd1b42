"""Shared fixtures: fake Alertmanager backends and an in-memory Mattermost."""

import itertools
from typing import Any, Callable

import httpx
import pytest
from fastapi.testclient import TestClient

from app.channels.mattermost import get_mattermost_client
from app.config import Settings, get_settings
from app.errors import MattermostError
from app.main import app
from app.models.alert_config import AlertConfig
from app.models.post import Post
from app.services.alertmanager import AlertmanagerClient, get_alertmanager_client
from app.services.registry import ConfigurationRegistry, get_registry
from app.services.retry import BackoffPolicy, RetryingHTTPClient

FAST_POLICY = BackoffPolicy(
    initial_interval=0.001,
    max_interval=0.01,
    max_elapsed_time=0.5,
    deadline=0.5,
)

AM1_URL = "http://am1.example:9093"
AM2_URL = "http://am2.example:9093"


class FakeAlertmanager:
    """Serves canned responses keyed by (method, host, path) and records requests."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def route(
        self,
        method: str,
        url: str,
        status_code: int = 200,
        json: Any = None,
        text: str | None = None,
    ) -> None:
        parsed = httpx.URL(url)

        def respond(request: httpx.Request) -> httpx.Response:
            if text is not None:
                return httpx.Response(status_code, text=text)
            return httpx.Response(status_code, json=json)

        self._routes[(method, parsed.host, parsed.path)] = respond

    def route_callable(self, method: str, url: str, responder: Callable[[httpx.Request], httpx.Response]) -> None:
        parsed = httpx.URL(url)
        self._routes[(method, parsed.host, parsed.path)] = responder

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self._routes.get((request.method, request.url.host, request.url.path))
        if responder is None:
            return httpx.Response(404, text="not found")
        return responder(request)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


class FakeMattermost:
    """In-memory stand-in for MattermostClient."""

    def __init__(self) -> None:
        self.posts: dict[str, Post] = {}
        self.created: list[Post] = []
        self.updated: list[Post] = []
        self.users: dict[str, dict[str, Any]] = {}
        self.teams: dict[str, dict[str, Any]] = {}
        self.channels: dict[tuple[str, str], dict[str, Any]] = {}
        self.fail_create = False
        self.fail_update = False
        self._ids = itertools.count(1)

    def add_post(self, post: Post) -> Post:
        self.posts[post.id] = post
        return post

    async def get_me(self) -> dict[str, Any]:
        return {"id": "bot-user", "username": "alertmanagerbot"}

    async def get_user(self, user_id: str) -> dict[str, Any]:
        if user_id not in self.users:
            raise MattermostError(f"user {user_id} not found", status_code=404)
        return self.users[user_id]

    async def create_post(self, post: Post) -> Post:
        if self.fail_create:
            raise MattermostError("create failed", status_code=500)
        created = post.model_copy(update={"id": f"post-{next(self._ids)}", "user_id": "bot-user"})
        self.posts[created.id] = created
        self.created.append(created)
        return created

    async def get_post(self, post_id: str) -> Post:
        if post_id not in self.posts:
            raise MattermostError(f"post {post_id} not found", status_code=404)
        return self.posts[post_id].model_copy(deep=True)

    async def update_post(self, post: Post) -> Post:
        if self.fail_update:
            raise MattermostError("update failed", status_code=500)
        self.posts[post.id] = post
        self.updated.append(post)
        return post

    async def get_team_by_name(self, name: str) -> dict[str, Any]:
        if name not in self.teams:
            raise MattermostError(f"team {name} not found", status_code=404)
        return self.teams[name]

    async def get_channel_by_name(self, team_id: str, name: str) -> dict[str, Any] | None:
        return self.channels.get((team_id, name))

    async def create_channel(self, team_id: str, name: str, display_name: str) -> dict[str, Any]:
        channel = {"id": f"chan-{next(self._ids)}", "team_id": team_id, "name": name, "display_name": display_name}
        self.channels[(team_id, name)] = channel
        return channel


@pytest.fixture
def alert_configs() -> list[AlertConfig]:
    return [
        AlertConfig(id="c1", alertmanager_url=AM1_URL, channel="ops", team="eng", token="T1"),
        AlertConfig(id="c2", alertmanager_url=AM2_URL, channel="dev", team="eng", token="T2"),
    ]


@pytest.fixture
def registry(alert_configs: list[AlertConfig]) -> ConfigurationRegistry:
    registry = ConfigurationRegistry(alert_configs)
    registry.set_channel_ids({"c1": "chan-ops", "c2": "chan-dev"})
    return registry


@pytest.fixture
def backend() -> FakeAlertmanager:
    return FakeAlertmanager()


@pytest.fixture
def mattermost() -> FakeMattermost:
    return FakeMattermost()


@pytest.fixture
def alertmanager(backend: FakeAlertmanager) -> AlertmanagerClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(backend.handle))
    return AlertmanagerClient(RetryingHTTPClient(http, FAST_POLICY))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        base_url="http://bridge.example",
        mattermost_command_token="cmd-token",
        bot_username="AlertManager Bot",
        bot_icon_url="http://bridge.example/icon.png",
    )


@pytest.fixture
def client(
    registry: ConfigurationRegistry,
    mattermost: FakeMattermost,
    alertmanager: AlertmanagerClient,
    settings: Settings,
):
    """TestClient with shared clients replaced by fakes. The lifespan is not run."""
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_mattermost_client] = lambda: mattermost
    app.dependency_overrides[get_alertmanager_client] = lambda: alertmanager
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
