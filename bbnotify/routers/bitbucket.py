"""Ruter BB?"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.responses import PlainTextResponse

from bbnotify.config import settings
from bbnotify.services.bitbucket import MalformedEventError, transform_event
from bbnotify.services.discord import send_message
from bbnotify.services.events import parse_event_type, resolve_type
from bbnotify.utils import verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wh", tags=["bitbucket"])


@router.post("/bitbucket", response_class=PlainTextResponse)
async def bitbucket_webhook(
    request: Request,
    x_hub_signature: str | None = Header(None),
):
    """
    Bitbucket webhook endpoint.

    When ``WEBHOOK_SECRET`` is configured the body must carry a matching
    ``X-Hub-Signature``. Unknown event keys are acknowledged and dropped;
    malformed payloads are logged and answered with 422.
    """
    body = await request.body()
    if settings.webhook_secret and not verify_signature(
        settings.webhook_secret, body, x_hub_signature
    ):
        raise HTTPException(401, "Invalid signature")

    key = resolve_type(request.headers)
    event = parse_event_type(key)
    if event is None:
        logger.info("Ignoring Bitbucket event %r", key)
        return "ignored"

    try:
        payload = json.loads(body or b"null")
    except ValueError:
        raise HTTPException(400, "Body is not valid JSON")

    try:
        message = await transform_event(event, payload)
    except MalformedEventError as exc:
        logger.warning("Dropping %s: %s", event.value, exc)
        raise HTTPException(422, str(exc))

    if message.is_empty:
        return "skipped"

    if not settings.discord_webhook_url:
        logger.warning("DISCORD_WEBHOOK_URL is not set, %s not delivered", event.value)
        return "skipped"

    await send_message(settings.discord_webhook_url, message)
    return f"{event.value} event forwarded"
