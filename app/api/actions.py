"""Interactive button callbacks."""

import logging

from fastapi import APIRouter, Request
from pydantic import ValidationError

from app.deps import Alertmanager, AppSettings, CurrentAlertConfig, Mattermost
from app.models.post import ActionCallback, EphemeralResponse
from app.services.actions import SilenceActionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["actions"])


@router.post("/expire")
async def expire_silence_action(
    request: Request,
    alert_config: CurrentAlertConfig,
    alertmanager: Alertmanager,
    mattermost: Mattermost,
    settings: AppSettings,
) -> EphemeralResponse:
    """Expire the silence behind an "Expire Silence" button and update its post.

    Mattermost shows ``ephemeral_text`` to the user who clicked.
    """
    logger.info(f"Received expire silence action for {alert_config.id}")

    try:
        callback = ActionCallback.model_validate_json(await request.body())
    except ValidationError as e:
        logger.warning(f"Failed to decode action: {e}")
        return EphemeralResponse(ephemeral_text="We could not decode the action")

    if callback.context is None:
        return EphemeralResponse(ephemeral_text="We could not decode the action")

    if not callback.silence_id:
        return EphemeralResponse(ephemeral_text="Silence ID cannot be empty")

    service = SilenceActionService(
        alertmanager,
        mattermost,
        reconcile_on_failure=settings.reconcile_on_expire_failure,
    )
    message = await service.expire(alert_config, callback)
    return EphemeralResponse(ephemeral_text=message)
