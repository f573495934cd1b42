"""Mattermost post, attachment and integration payload models."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class AttachmentField(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str = ""
    value: Any = ""
    short: bool = False


class PostActionIntegration(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: str = ""
    context: dict[str, Any] = Field(default_factory=dict)


class PostAction(BaseModel):
    """An interactive button on an attachment."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: str = ""
    type: str = "button"
    integration: PostActionIntegration = Field(default_factory=PostActionIntegration)

    @property
    def silence_id(self) -> str:
        return str(self.integration.context.get("silence_id", ""))


class Attachment(BaseModel):
    """Slack-compatible message attachment.

    Unknown keys are kept so that attachments we do not touch are written
    back exactly as Mattermost returned them.
    """

    model_config = ConfigDict(extra="allow")

    fallback: Optional[str] = None
    color: Optional[str] = None
    pretext: Optional[str] = None
    title: Optional[str] = None
    text: Optional[str] = None
    fields: Optional[list[AttachmentField]] = None
    actions: Optional[list[PostAction]] = None


class Post(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""
    channel_id: str = ""
    user_id: str = ""
    message: str = ""
    props: dict[str, Any] = Field(default_factory=dict)

    def raw_attachments(self) -> list[dict[str, Any]]:
        """Attachments exactly as Mattermost returned them."""
        return list(self.props.get("attachments") or [])

    def attachments(self) -> list[Attachment]:
        return [Attachment.model_validate(item) for item in self.raw_attachments()]

    def set_attachments(self, attachments: list[Attachment | dict[str, Any]]) -> None:
        """Store attachments; plain dicts are written back untouched."""
        self.props["attachments"] = [
            attachment if isinstance(attachment, dict) else attachment.model_dump(exclude_none=True)
            for attachment in attachments
        ]


class ActionContext(BaseModel):
    model_config = ConfigDict(extra="allow")

    silence_id: str = ""
    user_id: str = ""
    action: str = ""


class ActionCallback(BaseModel):
    """Request Mattermost sends when a user clicks an attachment button."""

    model_config = ConfigDict(extra="ignore")

    user_id: str = ""
    user_name: str = ""
    channel_id: str = ""
    team_id: str = ""
    post_id: str = ""
    context: Optional[ActionContext] = None

    @property
    def silence_id(self) -> str:
        return self.context.silence_id if self.context else ""


class EphemeralResponse(BaseModel):
    ephemeral_text: str


class CommandResponse(BaseModel):
    """Reply to a slash command."""

    response_type: Literal["ephemeral", "in_channel"] = "ephemeral"
    text: str = ""
    username: str = ""
    icon_url: str = ""
