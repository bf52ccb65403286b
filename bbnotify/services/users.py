"""Yet another users services"""

from __future__ import annotations

from typing import Mapping, Optional

from bbnotify.config import settings

UNKNOWN_USER = "Someone"


class UserResolver:
    """
    Map Bitbucket display names to Discord mentions.

    Names missing from the mapping come back unchanged, so an unknown user
    never breaks a summary.
    """

    def __init__(self, user_map: Optional[Mapping[str, str]] = None) -> None:
        self.user_map = dict(settings.user_map if user_map is None else user_map)

    async def resolve(self, display_name: Optional[str]) -> str:
        if not display_name:
            return UNKNOWN_USER
        user_id = self.user_map.get(display_name)
        if user_id:
            return f"<@{user_id}>"
        return display_name
