"""Error types shared by the bridge."""


class BridgeError(Exception):
    """Base class for all errors raised by the bridge."""


class TransportError(BridgeError):
    """Network failure or timeout while talking to an Alertmanager."""

    def __init__(self, detail: str, attempts: int = 1):
        super().__init__(detail)
        self.detail = detail
        self.attempts = attempts

    def __str__(self) -> str:
        if self.attempts > 1:
            return f"{self.detail} (gave up after {self.attempts} attempts)"
        return self.detail


class BackendStatusError(TransportError):
    """Alertmanager answered with a status code that is not a success."""

    def __init__(self, status_code: int, detail: str, attempts: int = 1):
        super().__init__(detail, attempts)
        self.status_code = status_code


class DecodeError(BridgeError):
    """A JSON document could not be decoded into the expected shape."""


class ConfigError(BridgeError):
    """Missing or inconsistent configuration."""


class InvalidArgumentError(BridgeError):
    """An operation was called with an unusable argument."""


class AuthError(BridgeError):
    """Inbound request carried no token or a token no configuration owns."""


class MattermostError(BridgeError):
    """A Mattermost REST call failed."""

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail)
        self.status_code = status_code
