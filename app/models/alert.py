"""Alertmanager API v2 and webhook payload models."""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

AlertStatus = Literal["firing", "resolved"]
SilenceState = Literal["pending", "active", "expired"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _zero_time_to_none(value: Optional[datetime]) -> Optional[datetime]:
    # Alertmanager serializes an unset time as 0001-01-01T00:00:00Z
    if value is None or value.year <= 1:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


Timestamp = Annotated[Optional[datetime], AfterValidator(_zero_time_to_none)]


class _AlertmanagerModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AlertState(_AlertmanagerModel):
    state: str = ""
    silenced_by: list[str] = Field(default_factory=list, alias="silencedBy")
    inhibited_by: list[str] = Field(default_factory=list, alias="inhibitedBy")


class Alert(_AlertmanagerModel):
    """An alert as returned by ``GET /api/v2/alerts``."""

    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    starts_at: Timestamp = Field(default=None, alias="startsAt")
    ends_at: Timestamp = Field(default=None, alias="endsAt")
    updated_at: Timestamp = Field(default=None, alias="updatedAt")
    generator_url: str = Field(default="", alias="generatorURL")
    fingerprint: str = ""
    state: AlertState = Field(default_factory=AlertState, alias="status")

    @property
    def name(self) -> str:
        return self.labels.get("alertname", "")

    def is_resolved(self, now: Optional[datetime] = None) -> bool:
        if self.ends_at is None:
            return False
        return self.ends_at <= (now or utcnow())

    @property
    def status(self) -> AlertStatus:
        return "resolved" if self.is_resolved() else "firing"


class WebhookAlert(_AlertmanagerModel):
    """One alert inside an Alertmanager webhook notification."""

    status: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    starts_at: Timestamp = Field(default=None, alias="startsAt")
    ends_at: Timestamp = Field(default=None, alias="endsAt")
    generator_url: str = Field(default="", alias="generatorURL")
    fingerprint: str = ""

    @property
    def is_resolved(self) -> bool:
        return self.status == "resolved"


class WebhookMessage(_AlertmanagerModel):
    """Alertmanager webhook notification body."""

    version: str = ""
    group_key: str = Field(default="", alias="groupKey")
    truncated_alerts: int = Field(default=0, alias="truncatedAlerts")
    status: str = ""
    receiver: str = ""
    group_labels: dict[str, str] = Field(default_factory=dict, alias="groupLabels")
    common_labels: dict[str, str] = Field(default_factory=dict, alias="commonLabels")
    common_annotations: dict[str, str] = Field(default_factory=dict, alias="commonAnnotations")
    external_url: str = Field(default="", alias="externalURL")
    alerts: list[WebhookAlert] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return self == WebhookMessage()


class Matcher(_AlertmanagerModel):
    name: str
    value: str
    is_regex: bool = Field(default=False, alias="isRegex")
    is_equal: bool = Field(default=True, alias="isEqual")


class SilenceStatus(_AlertmanagerModel):
    state: SilenceState = "pending"


class Silence(_AlertmanagerModel):
    """A silence as returned by ``GET /api/v2/silences``."""

    id: str
    matchers: list[Matcher] = Field(default_factory=list)
    status: SilenceStatus = Field(default_factory=SilenceStatus)
    starts_at: Timestamp = Field(default=None, alias="startsAt")
    ends_at: Timestamp = Field(default=None, alias="endsAt")
    updated_at: Timestamp = Field(default=None, alias="updatedAt")
    comment: str = ""
    created_by: str = Field(default="", alias="createdBy")

    @property
    def state(self) -> SilenceState:
        return self.status.state

    def is_resolved(self, now: Optional[datetime] = None) -> bool:
        """A silence without an end never resolves; otherwise it is resolved once the end is not after now."""
        if self.ends_at is None:
            return False
        return not self.ends_at > (now or utcnow())


class VersionInfo(_AlertmanagerModel):
    branch: str = ""
    build_date: str = Field(default="", alias="buildDate")
    build_user: str = Field(default="", alias="buildUser")
    go_version: str = Field(default="", alias="goVersion")
    revision: str = ""
    version: str = ""


class StatusResponse(_AlertmanagerModel):
    """Alertmanager version and uptime, from ``GET /api/v2/status``."""

    uptime: Timestamp = None
    version_info: VersionInfo = Field(default_factory=VersionInfo, alias="versionInfo")
    cluster: dict[str, Any] = Field(default_factory=dict)
