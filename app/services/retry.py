"""HTTP requests against Alertmanager with exponential backoff."""

import asyncio
import logging
import random

import httpx
from pydantic import BaseModel, ConfigDict

from app.errors import BackendStatusError, TransportError

logger = logging.getLogger(__name__)

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


class BackoffPolicy(BaseModel):
    """Retry schedule for one logical request. Durations are in seconds."""

    model_config = ConfigDict(frozen=True)

    initial_interval: float = 0.2
    multiplier: float = 1.5
    randomization_factor: float = 0.5
    max_interval: float = 15.0
    max_elapsed_time: float = 30.0
    deadline: float = 15.0


DEFAULT_POLICY = BackoffPolicy()


def check_response(method: str, response: httpx.Response) -> BackendStatusError | None:
    """Return an error when the response does not count as a success.

    GET requires exactly 200. Mutating methods only fail on 400, anything
    else (including redirects) is accepted without looking at the body.
    """
    if method == "GET":
        if response.status_code != 200:
            return BackendStatusError(
                response.status_code,
                f"GET {response.request.url}: status code is {response.status_code} not 200",
            )
    elif method in MUTATING_METHODS:
        if response.status_code == 400:
            return BackendStatusError(
                response.status_code,
                f"{method} {response.request.url}: status code is 400: {response.text}",
            )
    return None


class RetryingHTTPClient:
    """Issue requests with a deadline and an exponential backoff schedule.

    The wrapped ``httpx.AsyncClient`` only provides connection pooling; no
    other state is shared between calls, so one instance serves concurrent
    requests for different URLs.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        policy: BackoffPolicy = DEFAULT_POLICY,
    ):
        self._client = client or httpx.AsyncClient()
        self._policy = policy

    @property
    def policy(self) -> BackoffPolicy:
        return self._policy

    async def aclose(self) -> None:
        await self._client.aclose()

    def _randomize(self, interval: float) -> float:
        delta = self._policy.randomization_factor * interval
        return random.uniform(interval - delta, interval + delta)

    async def request(self, method: str, url: str) -> httpx.Response:
        """Send ``method`` to ``url`` until it succeeds or the budget runs out.

        Raises the last ``TransportError`` / ``BackendStatusError`` seen,
        annotated with the number of attempts made.
        """
        method = method.upper()
        policy = self._policy
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + policy.deadline
        interval = policy.initial_interval
        attempts = 0

        while True:
            attempts += 1
            remaining = deadline - loop.time()
            try:
                response = await asyncio.wait_for(
                    self._client.request(method, url), timeout=remaining
                )
            except asyncio.TimeoutError:
                error: TransportError = TransportError(
                    f"{method} {url}: deadline of {policy.deadline}s exceeded"
                )
            except httpx.HTTPError as e:
                error = TransportError(f"{method} {url}: {e}")
            else:
                status_error = check_response(method, response)
                if status_error is None:
                    return response
                error = status_error

            delay = self._randomize(interval)
            now = loop.time()
            if now - started + delay > policy.max_elapsed_time or now + delay >= deadline:
                error.attempts = attempts
                logger.warning(f"Giving up on {method} {url}: {error}")
                raise error

            logger.debug(f"Attempt {attempts} of {method} {url} failed ({error}), retrying in {delay:.2f}s")
            await asyncio.sleep(delay)
            interval = min(interval * policy.multiplier, policy.max_interval)
