"""Expire-silence button handling and rewriting of the original post."""

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from app.channels.mattermost import MattermostClient
from app.errors import BridgeError, MattermostError
from app.models.alert import utcnow
from app.models.alert_config import AlertConfig
from app.models.post import ActionCallback, Attachment, Post
from app.services.alertmanager import AlertmanagerClient
from app.services.formatting import expired_attachment

logger = logging.getLogger(__name__)

# Post props carried over when a post is rewritten
RETAINED_PROPS = ("override_username", "override_icon_url")


def _holds_button_for(attachment: dict[str, Any], silence_id: str) -> bool:
    """True when the attachment still has buttons and belongs to ``silence_id``.

    Mattermost strips action integrations from posts read over REST, so the
    attachment title, which carries the silence ID, is checked as well.
    """
    actions = attachment.get("actions") or []
    if not actions:
        return False
    if attachment.get("title") == silence_id:
        return True
    for action in actions:
        integration = action.get("integration") if isinstance(action, dict) else None
        context = (integration or {}).get("context") or {}
        if context.get("silence_id") == silence_id:
            return True
    return False


def expire_attachments(
    attachments: list[dict[str, Any]],
    silence_id: str,
    user_name: Optional[str],
    now: Optional[datetime] = None,
) -> tuple[list[dict[str, Any]], int]:
    """Replace attachments holding a button for ``silence_id`` with their expired form.

    Other attachments are returned as the same dicts. Returns the new
    attachment list and how many attachments were replaced.
    """
    updated: list[dict[str, Any]] = []
    replaced = 0
    for raw in attachments:
        if not isinstance(raw, dict) or not _holds_button_for(raw, silence_id):
            updated.append(raw)
            continue
        try:
            attachment = Attachment.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Leaving unreadable attachment for silence {silence_id} as is: {e}")
            updated.append(raw)
            continue
        updated.append(expired_attachment(attachment, user_name, now).model_dump(exclude_none=True))
        replaced += 1
    return updated, replaced


def rewrite_post(original: Post, attachments: list[dict[str, Any]]) -> Post:
    """Build the in-place update for ``original`` with new attachments."""
    props = {"from_webhook": "true"}
    for prop in RETAINED_PROPS:
        if prop in original.props:
            props[prop] = original.props[prop]
    post = Post(
        id=original.id,
        channel_id=original.channel_id,
        user_id=original.user_id,
        message=original.message,
        props=props,
    )
    post.set_attachments(attachments)
    return post


class SilenceActionService:
    """Handle a click on an "Expire Silence" button."""

    def __init__(
        self,
        alertmanager: AlertmanagerClient,
        mattermost: MattermostClient,
        reconcile_on_failure: bool = True,
    ):
        self._alertmanager = alertmanager
        self._mattermost = mattermost
        self._reconcile_on_failure = reconcile_on_failure

    async def expire(self, config: AlertConfig, callback: ActionCallback) -> str:
        """Expire the silence and update the post. Returns the text shown to the user."""
        silence_id = callback.silence_id
        try:
            await self._alertmanager.expire_silence(silence_id, config.alertmanager_url)
        except BridgeError as e:
            logger.warning(f"Failed to expire silence {silence_id} on {config.id}: {e}")
            message = f"failed to expire the silence: {e}"
            expired = False
        else:
            message = f"Silence {silence_id} expired."
            expired = True

        if expired or self._reconcile_on_failure:
            await self.reconcile(callback)
        return message

    async def _user_name(self, user_id: str) -> Optional[str]:
        if not user_id:
            return None
        try:
            user = await self._mattermost.get_user(user_id)
        except MattermostError as e:
            logger.warning(f"Could not look up user {user_id}: {e}")
            return None
        return user.get("username") or None

    async def reconcile(self, callback: ActionCallback, now: Optional[datetime] = None) -> Optional[Post]:
        """Rewrite the post the button belongs to. Failures are logged, never raised."""
        try:
            original = await self._mattermost.get_post(callback.post_id)
        except MattermostError as e:
            logger.error(f"Failed to fetch post {callback.post_id} for update: {e}")
            return None

        user_name = await self._user_name(callback.user_id)
        attachments, replaced = expire_attachments(
            original.raw_attachments(), callback.silence_id, user_name, now or utcnow()
        )
        logger.debug(f"Marking {replaced} attachment(s) of post {original.id} as expired")

        updated = rewrite_post(original, attachments)
        try:
            return await self._mattermost.update_post(updated)
        except MattermostError as e:
            logger.error(f"Failed to update post {original.id}: {e}")
            return None
