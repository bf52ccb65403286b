"""Ruter Ingfo?"""

from __future__ import annotations

from textwrap import dedent

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from bbnotify.services.events import EventType

router = APIRouter()

HTTP_HELP_TEXT = dedent(
    """
Bitbucket → Discord Notifier (HTTP Help)

Endpoints
---------
- GET  /            : Health check
- GET  /help        : This text
- POST /wh/bitbucket : Bitbucket webhook (X-Event-Key header required)

Supported events
----------------
"""
).strip()


@router.get("/", response_class=PlainTextResponse)
async def health() -> str:
    return "ok"


@router.get("/help", response_class=PlainTextResponse)
async def help_text() -> str:
    events = "\n".join(f"- {event.value}" for event in EventType)
    return f"{HTTP_HELP_TEXT}\n{events}"
