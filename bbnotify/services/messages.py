"""Message accumulator used by the Bitbucket rules."""

from __future__ import annotations

from bbnotify.schemas import Embed, OutgoingMessage


class MessageBuilder:
    """
    Collects the content line and finalized embeds of a single invocation.

    A builder belongs to one rule call. Embeds are copied on the way in and
    on the way out of ``build``, so callers never share an instance.
    """

    def __init__(self) -> None:
        self.content = ""
        self._embeds: list[Embed] = []

    def set_content(self, content: str) -> None:
        self.content = content

    def add_embed(self, embed: Embed) -> None:
        self._embeds.append(embed.model_copy(deep=True))

    def build(self) -> OutgoingMessage:
        return OutgoingMessage(
            content=self.content,
            embeds=[embed.model_copy(deep=True) for embed in self._embeds],
        )
