"""Webhook API for receiving Alertmanager notifications."""

import logging

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.deps import AppSettings, CurrentAlertConfig, Mattermost, Registry
from app.errors import MattermostError
from app.models.alert import WebhookMessage
from app.models.post import Post
from app.services.formatting import webhook_attachment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["webhook"])


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    alert_config: CurrentAlertConfig,
    registry: Registry,
    mattermost: Mattermost,
    settings: AppSettings,
) -> JSONResponse:
    """Receive an Alertmanager notification and post it to the configured channel.

    URL format: /api/webhook?token=<config token>
    """
    logger.info(f"Received alertmanager notification for {alert_config.id}")

    try:
        message = WebhookMessage.model_validate_json(await request.body())
    except ValidationError as e:
        logger.error(f"Failed to decode webhook message: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload",
        )

    if message.is_empty():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Empty webhook payload",
        )

    channel_id = registry.channel_id(alert_config.id)
    if not channel_id:
        logger.error(f"No channel provisioned for {alert_config.id}, dropping notification")
        return JSONResponse(content={"status": "ok"})

    post = Post(
        channel_id=channel_id,
        props={
            "from_webhook": "true",
            "override_username": settings.bot_username,
            "override_icon_url": settings.bot_icon_url,
        },
    )
    post.set_attachments([webhook_attachment(alert_config, message)])

    # Posting is not retried and its failure is not reported to Alertmanager
    try:
        await mattermost.create_post(post)
    except MattermostError as e:
        logger.error(f"Failed to post notification for {alert_config.id}: {e}")
    else:
        logger.info(f"Posted {len(message.alerts)} alert(s) for {alert_config.id}")

    return JSONResponse(content={"status": "ok"})
