"""Tests for attachment rendering."""

from datetime import datetime, timedelta, timezone

from app.models.alert import Alert, Matcher, Silence, SilenceStatus, StatusResponse, VersionInfo, WebhookMessage
from app.models.alert_config import AlertConfig
from app.models.post import Attachment, AttachmentField, PostAction, PostActionIntegration
from app.services.formatting import (
    COLOR_EXPIRED,
    COLOR_FIRING,
    COLOR_RESOLVED,
    COLOR_SILENCE_ACTIVE,
    COLOR_SILENCE_INACTIVE,
    alert_attachment,
    expired_attachment,
    format_duration,
    format_time,
    set_color,
    silence_attachment,
    status_attachment,
    webhook_attachment,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
CONFIG = AlertConfig(id="c1", alertmanager_url="http://am:9093", channel="ops", team="eng", token="T1")


def webhook_message(status: str = "firing") -> WebhookMessage:
    return WebhookMessage.model_validate({
        "status": status,
        "receiver": "mattermost",
        "externalURL": "http://am:9093",
        "alerts": [{
            "status": status,
            "labels": {"alertname": "HighLoad", "severity": "critical"},
            "annotations": {"summary": "load is high"},
            "startsAt": "2024-06-01T11:00:00Z",
            "endsAt": "2024-06-01T11:30:00Z",
            "generatorURL": "http://prometheus/graph",
        }],
    })


class TestFormatDuration:
    def test_keeps_two_largest_units(self):
        assert format_duration(timedelta(days=1, hours=2, minutes=3)) == "1 day 2 hours"

    def test_no_limit(self):
        assert format_duration(timedelta(hours=1, minutes=1, seconds=5), limit=None) == "1 hour 1 minute 5 seconds"

    def test_zero(self):
        assert format_duration(timedelta(0)) == "0 seconds"


class TestFormatTime:
    def test_rfc1123(self):
        assert format_time(NOW) == "Sat, 01 Jun 2024 12:00:00 UTC"

    def test_unset(self):
        assert format_time(None) == "-"


class TestSetColor:
    def test_colors(self):
        assert set_color("firing") == COLOR_FIRING
        assert set_color("resolved") == COLOR_RESOLVED
        assert set_color("unknown") == COLOR_EXPIRED


class TestWebhookAttachment:
    def test_firing_alert_fields(self):
        attachment = webhook_attachment(CONFIG, webhook_message(), NOW)

        assert attachment.color == COLOR_FIRING
        status, labels = attachment.fields
        assert status.title == ":fire: FIRING :fire:"
        assert "**Summary:** load is high" in status.value
        assert "**Started at:** Sat, 01 Jun 2024 11:00:00 UTC (1 hour ago)" in status.value
        assert "Ended at" not in status.value
        assert "[Prometheus Alert](http://prometheus/graph)" in status.value
        assert "'mattermost' receiver" in status.value
        assert labels.title == ""
        assert "**AlertManagerPluginId:** c1" in labels.value
        assert "**Alertname:** HighLoad" in labels.value

    def test_labels_are_sorted(self):
        labels = webhook_attachment(CONFIG, webhook_message(), NOW).fields[1].value
        assert labels.index("AlertManagerPluginId") < labels.index("Alertname") < labels.index("Severity")

    def test_resolved_alert_shows_end(self):
        attachment = webhook_attachment(CONFIG, webhook_message("resolved"), NOW)

        assert attachment.color == COLOR_RESOLVED
        assert attachment.fields[0].title == "RESOLVED"
        assert "**Ended at:** Sat, 01 Jun 2024 11:30:00 UTC (30 minutes ago)" in attachment.fields[0].value


class TestAlertAttachment:
    def test_fields(self):
        alert = Alert(labels={"alertname": "Disk"}, annotations={"summary": "full"}, ends_at=datetime(2999, 1, 1, tzinfo=timezone.utc))

        attachment = alert_attachment(CONFIG, alert)

        assert attachment.pretext == "Alertmanager `c1`"
        assert attachment.title == "Disk"
        assert attachment.color == COLOR_FIRING
        titles = [f.title for f in attachment.fields]
        assert titles[0] == "Status"
        assert "summary" in titles
        assert {"Resolved", "Start At", "Ended At"} <= set(titles)


class TestSilenceAttachment:
    def test_active_silence_has_expire_button(self):
        silence = Silence(
            id="s1",
            matchers=[Matcher(name="alertname", value="Disk"), Matcher(name="job", value="node")],
            status=SilenceStatus(state="active"),
            starts_at=NOW - timedelta(hours=1),
            ends_at=NOW + timedelta(hours=2),
            comment="maintenance",
            created_by="alice",
        )

        attachment = silence_attachment(CONFIG, silence, "http://bridge/api/expire?token=T1", "u1", NOW)

        assert attachment.color == COLOR_SILENCE_ACTIVE
        assert attachment.title == "s1"
        values = {f.title: f.value for f in attachment.fields}
        assert values["Alert Name"] == "Disk"
        assert values["Matchers"] == 'job="node"'
        assert values["Created by"] == "alice"
        assert "**Started**: 1 hour ago" in values["🔕"]
        assert "in 2 hours" in values["🔕"]
        (action,) = attachment.actions
        assert action.name == "Expire Silence"
        assert action.integration.url == "http://bridge/api/expire?token=T1"
        assert action.integration.context == {"action": "expire", "silence_id": "s1", "user_id": "u1"}

    def test_pending_silence_is_grey(self):
        silence = Silence(id="s2", ends_at=NOW + timedelta(hours=1))
        assert silence_attachment(CONFIG, silence, "http://x", "u1", NOW).color == COLOR_SILENCE_INACTIVE


class TestStatusAttachment:
    def test_version_and_uptime(self):
        status = StatusResponse(uptime=NOW - timedelta(days=2, hours=3, minutes=4), version_info=VersionInfo(version="0.27.0"))

        attachment = status_attachment(CONFIG, status, NOW)

        assert attachment.fields[0].value == "0.27.0"
        assert attachment.fields[1].value == "2 days 3 hours 4 minutes"


class TestExpiredAttachment:
    def _attachment(self) -> Attachment:
        return Attachment(
            title="s1",
            color=COLOR_SILENCE_ACTIVE,
            fields=[AttachmentField(title="State", value="active")],
            actions=[PostAction(name="Expire Silence", integration=PostActionIntegration(context={"silence_id": "s1"}))],
        )

    def test_with_user(self):
        expired = expired_attachment(self._attachment(), "alice", NOW)

        assert expired.actions is None
        assert expired.color == COLOR_EXPIRED
        assert expired.fields[-1].title == "Expired by"
        assert expired.fields[-1].value == "Silence expired by alice at Sat, 01 Jun 2024 12:00:00 UTC"

    def test_without_user(self):
        assert expired_attachment(self._attachment(), None, NOW).fields[-1].value == "Silence expired"

    def test_original_is_untouched(self):
        original = self._attachment()
        expired_attachment(original, "alice", NOW)
        assert len(original.fields) == 1
        assert original.actions
