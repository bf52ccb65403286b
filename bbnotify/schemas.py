"""Discord message schemas"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_COLOR = 0x205081
SUCCESS_COLOR = 0x2DB83D
FAILURE_COLOR = 0xFF3030
PENDING_COLOR = 0xFFA500

# Discord rejects empty field names and values.
BLANK = "\u200b"


class EmbedAuthor(BaseModel):
    name: str
    icon_url: Optional[str] = None
    url: Optional[str] = None


class EmbedFooter(BaseModel):
    text: str
    icon_url: Optional[str] = None


class EmbedImage(BaseModel):
    url: str


class EmbedField(BaseModel):
    name: str = BLANK
    value: str = BLANK
    inline: Optional[bool] = None


class Embed(BaseModel):
    """
    Rich embed attached to a Discord message.

    Rules fill an instance field by field; it is copied when handed to the
    message builder, so later edits never reach an already finalized embed.
    """

    author: Optional[EmbedAuthor] = None
    title: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    footer: Optional[EmbedFooter] = None
    image: Optional[EmbedImage] = None
    fields: list[EmbedField] = Field(default_factory=list)
    color: int = DEFAULT_COLOR


class OutgoingMessage(BaseModel):
    content: str = ""
    embeds: list[Embed] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.content and not self.embeds
