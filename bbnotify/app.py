"""the beautiful world start from here."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from bbnotify.config import settings
from bbnotify.routers import bitbucket, info

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Bitbucket → Discord")

app.include_router(info.router)
app.include_router(bitbucket.router)
