"""Rewrite Bitbucket markdown into something Discord renders."""

from __future__ import annotations

import re

from bbnotify.schemas import Embed, EmbedImage

_IMAGE_RE = re.compile(r'!\[([^\]]*)\]\((\S+?)(?:\s+"[^"]*")?\)')
_HEADING_RE = re.compile(r"^#{1,6}[ \t]+(.+?)[ \t]*#*[ \t]*$", re.MULTILINE)


class MarkdownRewriter:
    """
    Discord has no inline images and renders headings poorly.

    Images become plain links and the first one is promoted to the embed
    image, unless the embed already carries one. Headings become bold lines.
    """

    async def rewrite(self, text: str, embed: Embed) -> str:
        def _image(match: re.Match[str]) -> str:
            alt, url = match.group(1), match.group(2)
            if embed.image is None:
                embed.image = EmbedImage(url=url)
            return f"[{alt or 'image'}]({url})"

        text = _IMAGE_RE.sub(_image, text)
        return _HEADING_RE.sub(r"**\1**", text)
