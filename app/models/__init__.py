"""Data models for the Alertmanager bridge."""

from app.models.alert import (
    Alert,
    Matcher,
    Silence,
    StatusResponse,
    VersionInfo,
    WebhookAlert,
    WebhookMessage,
)
from app.models.alert_config import AlertConfig, AlertConfigFile
from app.models.post import (
    ActionCallback,
    ActionContext,
    Attachment,
    AttachmentField,
    CommandResponse,
    EphemeralResponse,
    Post,
    PostAction,
    PostActionIntegration,
)

__all__ = [
    "Alert",
    "Matcher",
    "Silence",
    "StatusResponse",
    "VersionInfo",
    "WebhookAlert",
    "WebhookMessage",
    "AlertConfig",
    "AlertConfigFile",
    "ActionCallback",
    "ActionContext",
    "Attachment",
    "AttachmentField",
    "CommandResponse",
    "EphemeralResponse",
    "Post",
    "PostAction",
    "PostActionIntegration",
]
