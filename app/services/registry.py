"""Registry of Alertmanager configurations, resolved by inbound token."""

import hmac
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping

import yaml
from pydantic import ValidationError

from app.errors import ConfigError
from app.models.alert_config import AlertConfig, AlertConfigFile

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Many concurrent readers or one writer. Writers are preferred once waiting."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class RegistrySnapshot:
    """One published state of the registry. Never modified after publication."""

    configs: tuple[AlertConfig, ...] = ()
    channel_ids: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    errors: tuple[str, ...] = ()


def _validated_configs(configs: list[AlertConfig]) -> tuple[tuple[AlertConfig, ...], tuple[str, ...]]:
    """Drop invalid configs and configs reusing a token, ordered by ID."""
    accepted: list[AlertConfig] = []
    errors: list[str] = []
    owners: dict[str, str] = {}
    seen_ids: set[str] = set()

    for config in sorted(configs, key=lambda c: c.id):
        try:
            config.is_valid()
        except ConfigError as e:
            errors.append(str(e))
            continue
        if config.id in seen_ids:
            errors.append(f"Alert configuration {config.id!r} is defined more than once")
            continue
        if config.token in owners:
            errors.append(
                f"Alert configuration {config.id!r} reuses the token of {owners[config.token]!r}"
            )
            continue
        seen_ids.add(config.id)
        owners[config.token] = config.id
        accepted.append(config)

    for error in errors:
        logger.warning(f"Skipping alert configuration: {error}")
    return tuple(accepted), tuple(errors)


class ConfigurationRegistry:
    """Alertmanager configurations keyed by ID.

    Every change builds a new ``RegistrySnapshot`` and publishes it under the
    write lock. Readers only hold the read lock long enough to pick up the
    current snapshot, and the configs they get back are immutable, so no lock
    is held while a caller talks to Alertmanager.
    """

    def __init__(self, configs: list[AlertConfig] | None = None):
        self._lock = ReadWriteLock()
        self._snapshot = RegistrySnapshot()
        if configs:
            self.replace(configs)

    def snapshot(self) -> RegistrySnapshot:
        with self._lock.read_locked():
            return self._snapshot

    def configs(self) -> tuple[AlertConfig, ...]:
        return self.snapshot().configs

    @property
    def errors(self) -> tuple[str, ...]:
        return self.snapshot().errors

    def get(self, config_id: str) -> AlertConfig | None:
        for config in self.configs():
            if config.id == config_id:
                return config
        return None

    def channel_id(self, config_id: str) -> str | None:
        return self.snapshot().channel_ids.get(config_id)

    def resolve(self, token: str) -> AlertConfig | None:
        """Find the configuration owning ``token``.

        Every configured token is compared in constant time and the scan does
        not stop at the first hit.
        """
        if not token:
            return None
        candidate = token.encode("utf-8")
        match: AlertConfig | None = None
        for config in self.configs():
            if hmac.compare_digest(candidate, config.token.encode("utf-8")) and match is None:
                match = config
        return match

    def replace(self, configs: list[AlertConfig]) -> RegistrySnapshot:
        """Publish a new set of configurations.

        A channel ID is kept only for configs whose team and channel did not change.
        """
        accepted, errors = _validated_configs(configs)
        with self._lock.write_locked():
            previous = self._snapshot.channel_ids
            old = {c.id: c for c in self._snapshot.configs}
            kept = {
                c.id: previous[c.id]
                for c in accepted
                if c.id in previous and c.id in old and (old[c.id].team, old[c.id].channel) == (c.team, c.channel)
            }
            self._snapshot = RegistrySnapshot(
                configs=accepted,
                channel_ids=MappingProxyType(kept),
                errors=errors,
            )
            snapshot = self._snapshot
        logger.info(f"Loaded {len(accepted)} alert configuration(s): {[c.id for c in accepted]}")
        return snapshot

    def set_channel_ids(self, channel_ids: Mapping[str, str]) -> None:
        """Publish resolved Mattermost channel IDs for the given config IDs."""
        with self._lock.write_locked():
            merged = {**self._snapshot.channel_ids, **channel_ids}
            self._snapshot = replace(self._snapshot, channel_ids=MappingProxyType(merged))

    def reload_from_file(self, path: str | Path) -> RegistrySnapshot:
        return self.replace(load_alert_configs(path))


def _normalize(data: Any) -> dict[str, Any]:
    """Accept ``alert_configs`` as a mapping keyed by ID or as a list with ``id`` fields."""
    if not isinstance(data, dict):
        raise ConfigError("Alert configuration file must contain a mapping")
    raw = data.get("alert_configs") or {}
    if isinstance(raw, dict):
        raw = [{**(attributes or {}), "id": config_id} for config_id, attributes in raw.items()]
    if not isinstance(raw, list):
        raise ConfigError("alert_configs must be a mapping or a list")
    # YAML turns IDs such as 0 or 1 into integers
    items = []
    for item in raw:
        if isinstance(item, dict) and "id" in item:
            item = {**item, "id": str(item["id"])}
        items.append(item)
    return {"alert_configs": items}


def load_alert_configs(config_path: str | Path) -> list[AlertConfig]:
    """Load alert configurations from a YAML file."""
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Alert configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    try:
        return AlertConfigFile.model_validate(_normalize(data)).alert_configs
    except ValidationError as e:
        raise ConfigError(f"Invalid alert configuration in {path}: {e}") from e


# Global registry instance
_registry = ConfigurationRegistry()


def get_registry() -> ConfigurationRegistry:
    return _registry
