"""Yet another discord services"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from fastapi import HTTPException

from bbnotify.schemas import OutgoingMessage

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 15

JSONDict = dict[str, Any]


def build_payload(message: OutgoingMessage) -> JSONDict:
    """Serialize a message into the Discord webhook JSON body."""
    payload: JSONDict = message.model_dump(mode="json", exclude_none=True)
    if not payload.get("content"):
        payload.pop("content", None)
    return payload


async def send_message(webhook_url: str, message: OutgoingMessage) -> JSONDict:
    """Execute a Discord webhook; ``?wait=true`` makes Discord echo the message."""
    payload = build_payload(message)
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        resp = await client.post(webhook_url, params={"wait": "true"}, json=payload)
    if resp.status_code >= 300:
        logger.error("Discord rejected message: %s %s", resp.status_code, resp.text)
        raise HTTPException(500, f"Discord error: {resp.status_code} {resp.text}")
    logger.debug("Delivered %d embed(s) to Discord", len(message.embeds))
    return resp.json() if resp.content else {}
