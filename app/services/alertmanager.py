"""Alertmanager API v2 client."""

import logging
from typing import TypeVar
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from app.errors import BackendStatusError, DecodeError, InvalidArgumentError
from app.models.alert import Alert, Silence, StatusResponse
from app.services.retry import DEFAULT_POLICY, BackoffPolicy, RetryingHTTPClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

_alerts_adapter = TypeAdapter(list[Alert])
_silences_adapter = TypeAdapter(list[Silence])
_status_adapter = TypeAdapter(StatusResponse)

# Global client instance
_client: "AlertmanagerClient | None" = None


def _decode(adapter: TypeAdapter[T], response: httpx.Response) -> T:
    try:
        return adapter.validate_json(response.content)
    except ValidationError as e:
        logger.debug(f"Undecodable response from {response.request.url}: {e}")
        raise DecodeError(
            f"Invalid response from {response.request.url}: "
            f"{e.error_count()} validation error(s): {e.errors()[0]['msg']}"
        ) from e


def _endpoint(alertmanager_url: str, path: str) -> str:
    return f"{alertmanager_url.rstrip('/')}/api/v2/{path}"


def sort_silences(silences: list[Silence]) -> list[Silence]:
    """Order silences by end time, latest first. Silences without an end go last."""
    with_end = [s for s in silences if s.ends_at is not None]
    without_end = [s for s in silences if s.ends_at is None]
    with_end.sort(key=lambda s: s.ends_at, reverse=True)
    return with_end + without_end


class AlertmanagerClient:
    """Read alerts, silences and status from an Alertmanager, and expire silences."""

    def __init__(self, http: RetryingHTTPClient | None = None):
        self._http = http or RetryingHTTPClient()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def list_alerts(self, alertmanager_url: str) -> list[Alert]:
        response = await self._http.request("GET", _endpoint(alertmanager_url, "alerts"))
        return _decode(_alerts_adapter, response)

    async def list_silences(self, alertmanager_url: str) -> list[Silence]:
        """Return all silences, most recently ending first."""
        response = await self._http.request("GET", _endpoint(alertmanager_url, "silences"))
        return sort_silences(_decode(_silences_adapter, response))

    async def status(self, alertmanager_url: str) -> StatusResponse:
        response = await self._http.request("GET", _endpoint(alertmanager_url, "status"))
        return _decode(_status_adapter, response)

    async def expire_silence(self, silence_id: str, alertmanager_url: str) -> None:
        """Expire a silence by ID.

        Expiring an already expired silence is up to the Alertmanager; callers
        should treat a failure on a repeated call as non-fatal.
        """
        if not silence_id:
            raise InvalidArgumentError("silence ID cannot be empty")
        if silence_id in (".", ".."):
            raise InvalidArgumentError(f"invalid silence ID {silence_id!r}")

        path = f"silence/{quote(silence_id, safe='')}"
        response = await self._http.request("DELETE", _endpoint(alertmanager_url, path))
        if response.status_code != 200:
            raise BackendStatusError(response.status_code, response.text)

        logger.info(f"Expired silence {silence_id} on {alertmanager_url}")


def init_alertmanager_client(timeout: float, policy: BackoffPolicy = DEFAULT_POLICY) -> AlertmanagerClient:
    """Create the shared client used by request handlers."""
    global _client

    _client = AlertmanagerClient(RetryingHTTPClient(httpx.AsyncClient(timeout=timeout), policy))
    return _client


async def close_alertmanager_client() -> None:
    global _client

    if _client:
        await _client.aclose()
        _client = None


def get_alertmanager_client() -> AlertmanagerClient:
    if _client is None:
        raise RuntimeError("Alertmanager client not initialized. Call init_alertmanager_client() first.")
    return _client
