"""Text helpers shared by the Bitbucket rules."""

from __future__ import annotations

import hashlib
import hmac
import re

DESCRIPTION_LIMIT = 1024
LARGE_TEXT_LIMIT = 256
ELLIPSIS = "…"

_TAG_RE = re.compile(r"<.*?>")


def strip_markup(text: str) -> str:
    """Drop anything that looks like an HTML tag (``<...>``, non-greedy)."""
    return _TAG_RE.sub("", text)


def truncate(text: str, limit: int = LARGE_TEXT_LIMIT) -> str:
    """
    Cut ``text`` down to ``limit`` characters.

    Longer strings keep their first ``limit - 1`` characters followed by a
    single ellipsis, so the result never exceeds ``limit``.
    """
    if len(text) > limit:
        return text[: limit - 1] + ELLIPSIS
    return text


def clean_html(text: str, limit: int = DESCRIPTION_LIMIT) -> str:
    return truncate(strip_markup(text), limit)


def title_case(value: str | None, fallback: str = "None") -> str:
    """
    Normalize a payload enum value for display.

    ``None`` becomes ``fallback`` and the empty string is returned as is.
    Everything else is lower-cased and each space separated token gets an
    upper-case first letter: ``"IN PROGRESS"`` → ``"In Progress"``.
    """
    if value is None:
        return fallback
    if not value:
        return value
    words = str(value).lower().split(" ")
    return " ".join(word[:1].upper() + word[1:] for word in words)


def short_hash(commit_hash: str) -> str:
    return commit_hash[:7]


def verify_signature(secret: str, body: bytes, signature_header: str | None) -> bool:
    """
    Verify Bitbucket webhook HMAC signature (X-Hub-Signature).

    Returns
    -------
    bool
        True if valid, False otherwise.
    """
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    sig = signature_header.split("=", 1)[1]
    mac = hmac.new(secret.encode(), msg=body, digestmod=hashlib.sha256).hexdigest()
    return hmac.compare_digest(mac, sig)
