"""the beautiful world start from here."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

DISCORD_DEFAULT_AVATAR = "https://discord.com/assets/1f0bfc0865d324c2587920a7d80c609b.png"


def _parse_user_map(raw: str) -> dict[str, str]:
    """
    Parse ``Display Name:123,Other:456`` into a name → Discord ID mapping.

    Entries without a colon or with an empty side are skipped.
    """
    mapping: dict[str, str] = {}
    for item in raw.split(","):
        name, sep, user_id = item.rpartition(":")
        if not sep or not name.strip() or not user_id.strip():
            continue
        mapping[name.strip()] = user_id.strip()
    return mapping


@dataclass(frozen=True)
class Settings:
    """App Settings"""

    bitbucket_base_url: str = os.getenv("BITBUCKET_BASE_URL", "https://bitbucket.org/")
    discord_webhook_url: str = os.getenv("DISCORD_WEBHOOK_URL", "")
    webhook_secret: str = os.getenv("WEBHOOK_SECRET", "")
    default_avatar_url: str = os.getenv("DEFAULT_AVATAR_URL", DISCORD_DEFAULT_AVATAR)
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    user_map: dict[str, str] = field(
        default_factory=lambda: _parse_user_map(os.getenv("DISCORD_USER_MAP", ""))
    )


settings = Settings()
