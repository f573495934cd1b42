"""Rendering of alerts, silences and status into Mattermost attachments."""

from datetime import datetime, timedelta
from typing import Optional

from jinja2 import BaseLoader, Environment

from app.models.alert import Alert, Silence, StatusResponse, WebhookAlert, WebhookMessage, utcnow
from app.models.alert_config import AlertConfig
from app.models.post import Attachment, AttachmentField, PostAction, PostActionIntegration

COLOR_FIRING = "#FF0000"
COLOR_RESOLVED = "#008000"
COLOR_EXPIRED = "#F0F8FF"
COLOR_SILENCE_ACTIVE = "#008000"
COLOR_SILENCE_INACTIVE = "#808080"

# Label added to every webhook alert so readers can tell backends apart
CONFIG_ID_LABEL = "AlertManagerPluginId"

_DURATION_UNITS = [
    ("year", 365 * 24 * 3600),
    ("week", 7 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
]


def format_duration(delta: timedelta, limit: Optional[int] = 2) -> str:
    """Human readable duration, keeping at most ``limit`` of the largest units."""
    remaining = int(abs(delta.total_seconds()))
    parts: list[str] = []
    for unit, seconds in _DURATION_UNITS:
        count, remaining = divmod(remaining, seconds)
        if count:
            parts.append(f"{count} {unit}{'' if count == 1 else 's'}")
    if not parts:
        return "0 seconds"
    if limit:
        parts = parts[:limit]
    return " ".join(parts)


def format_time(value: Optional[datetime]) -> str:
    """RFC 1123 timestamp, e.g. ``Mon, 02 Jan 2006 15:04:05 UTC``."""
    if value is None:
        return "-"
    return value.strftime("%a, %d %b %Y %H:%M:%S %Z")


def _title(key: str) -> str:
    return key[:1].upper() + key[1:]


_jinja_env = Environment(loader=BaseLoader(), autoescape=False, trim_blocks=True)
_jinja_env.filters["title_key"] = _title
_jinja_env.filters["rfc1123"] = format_time
_jinja_env.filters["ago"] = lambda value, now: format_duration(now - value) if value else "-"

_ALERT_DETAILS = _jinja_env.from_string(
    "{% for key, value in annotations %}"
    "**{{ key | title_key }}:** {{ value }}\n"
    "{% endfor %}"
    " \n"
    "**Started at:** {{ alert.starts_at | rfc1123 }} ({{ alert.starts_at | ago(now) }} ago)\n"
    "{% if alert.is_resolved %}"
    "**Ended at:** {{ alert.ends_at | rfc1123 }} ({{ alert.ends_at | ago(now) }} ago)\n"
    "{% endif %}"
    " \n"
    "Generated by a [Prometheus Alert]({{ alert.generator_url }}) and sent to the "
    "[Alertmanager]({{ external_url }}) '{{ receiver }}' receiver."
)

_ALERT_LABELS = _jinja_env.from_string(
    "{% for key, value in labels %}"
    "**{{ key | title_key }}:** {{ value }}\n"
    "{% endfor %}"
)


def set_color(status: str) -> str:
    return {"firing": COLOR_FIRING, "resolved": COLOR_RESOLVED}.get(status, COLOR_EXPIRED)


def convert_alert_to_fields(
    config: AlertConfig,
    alert: WebhookAlert,
    external_url: str,
    receiver: str,
    now: Optional[datetime] = None,
) -> list[AttachmentField]:
    """Two fields per alert: status banner with details, then the labels."""
    now = now or utcnow()
    status_msg = alert.status.upper()
    if alert.status == "firing":
        status_msg = f":fire: {status_msg} :fire:"

    details = _ALERT_DETAILS.render(
        alert=alert,
        annotations=sorted(alert.annotations.items()),
        external_url=external_url,
        receiver=receiver,
        now=now,
    )

    labels = {**alert.labels, CONFIG_ID_LABEL: config.id}
    label_text = _ALERT_LABELS.render(labels=sorted(labels.items()))

    return [
        AttachmentField(title=status_msg, value=details, short=True),
        AttachmentField(title="", value=label_text, short=True),
    ]


def webhook_attachment(config: AlertConfig, message: WebhookMessage, now: Optional[datetime] = None) -> Attachment:
    fields: list[AttachmentField] = []
    for alert in message.alerts:
        fields.extend(convert_alert_to_fields(config, alert, message.external_url, message.receiver, now))
    return Attachment(fields=fields, color=set_color(message.status))


def alert_attachment(config: AlertConfig, alert: Alert) -> Attachment:
    """Attachment for one alert in the ``alerts`` command listing."""
    fields = [AttachmentField(title="Status", value=alert.status)]
    for key, value in sorted(alert.annotations.items()):
        fields.append(AttachmentField(title=key, value=value, short=True))
    for key, value in sorted(alert.labels.items()):
        fields.append(AttachmentField(title=key, value=value, short=True))
    fields.extend([
        AttachmentField(title="Resolved", value=str(alert.is_resolved()).lower()),
        AttachmentField(title="Start At", value=format_time(alert.starts_at)),
        AttachmentField(title="Ended At", value=format_time(alert.ends_at)),
    ])
    return Attachment(
        pretext=f"Alertmanager `{config.id}`",
        title=alert.name,
        fields=fields,
        color=set_color(alert.status),
    )


def silence_attachment(
    config: AlertConfig,
    silence: Silence,
    expire_url: str,
    user_id: str,
    now: Optional[datetime] = None,
) -> Attachment:
    """Attachment for one silence, with an "Expire Silence" button."""
    now = now or utcnow()
    fields: list[AttachmentField] = []
    matchers: list[str] = []
    for matcher in silence.matchers:
        if matcher.name == "alertname":
            fields.append(AttachmentField(title="Alert Name", value=matcher.value))
        else:
            matchers.append(f'{matcher.name}="{matcher.value}"')
    fields.append(AttachmentField(title="State", value=silence.state))
    fields.append(AttachmentField(title="Matchers", value=" ".join(matchers)))

    if not silence.is_resolved(now):
        started = format_duration(now - silence.starts_at) if silence.starts_at else "-"
        ends = format_duration(silence.ends_at - now) if silence.ends_at else "never"
        fields.append(AttachmentField(
            title="🔕",
            value=f"**Started**: {started} ago\n**Ends:** in {ends}\n",
        ))
    else:
        duration = "-"
        if silence.starts_at:
            duration = format_duration(silence.ends_at - silence.starts_at)
        fields.append(AttachmentField(
            title="",
            value=f"**Ended**: {format_duration(now - silence.ends_at)} ago\n**Duration**: {duration}",
        ))
    fields.append(AttachmentField(title="Comments", value=silence.comment))
    fields.append(AttachmentField(title="Created by", value=silence.created_by))

    action = PostAction(
        name="Expire Silence",
        type="button",
        integration=PostActionIntegration(
            url=expire_url,
            context={"action": "expire", "silence_id": silence.id, "user_id": user_id},
        ),
    )
    return Attachment(
        pretext=f"Alertmanager `{config.id}`",
        title=silence.id,
        fields=fields,
        color=COLOR_SILENCE_ACTIVE if silence.state == "active" else COLOR_SILENCE_INACTIVE,
        actions=[action],
    )


def status_attachment(config: AlertConfig, status: StatusResponse, now: Optional[datetime] = None) -> Attachment:
    now = now or utcnow()
    uptime = format_duration(now - status.uptime, limit=None) if status.uptime else "-"
    return Attachment(
        pretext=f"Alertmanager `{config.id}`",
        fields=[
            AttachmentField(title="AlertManager Version", value=status.version_info.version),
            AttachmentField(title="AlertManager Uptime", value=uptime),
        ],
    )


def expired_attachment(attachment: Attachment, user_name: Optional[str], now: Optional[datetime] = None) -> Attachment:
    """Terminal form of an attachment whose silence was expired."""
    now = now or utcnow()
    if user_name:
        message = f"Silence expired by {user_name} at {format_time(now)}"
    else:
        message = "Silence expired"
    fields = list(attachment.fields or [])
    fields.append(AttachmentField(title="Expired by", value=message, short=False))
    return attachment.model_copy(update={"actions": None, "color": COLOR_EXPIRED, "fields": fields})
