"""Bitbucket event keys and header lookup."""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Optional

EVENT_HEADER = "x-event-key"


class EventType(str, Enum):
    REPO_PUSH = "repo:push"
    REPO_FORK = "repo:fork"
    REPO_UPDATED = "repo:updated"
    REPO_COMMIT_COMMENT_CREATED = "repo:commit_comment_created"
    REPO_COMMIT_STATUS_CREATED = "repo:commit_status_created"
    REPO_COMMIT_STATUS_UPDATED = "repo:commit_status_updated"
    ISSUE_CREATED = "issue:created"
    ISSUE_UPDATED = "issue:updated"
    ISSUE_COMMENT_CREATED = "issue:comment_created"
    PULL_REQUEST_CREATED = "pullrequest:created"
    PULL_REQUEST_UPDATED = "pullrequest:updated"
    PULL_REQUEST_APPROVED = "pullrequest:approved"
    PULL_REQUEST_UNAPPROVED = "pullrequest:unapproved"
    PULL_REQUEST_FULFILLED = "pullrequest:fulfilled"
    PULL_REQUEST_REJECTED = "pullrequest:rejected"
    PULL_REQUEST_COMMENT_CREATED = "pullrequest:comment_created"
    PULL_REQUEST_COMMENT_UPDATED = "pullrequest:comment_updated"
    PULL_REQUEST_COMMENT_DELETED = "pullrequest:comment_deleted"
    PULL_REQUEST_CHANGES_REQUEST_CREATED = "pullrequest:changes_request_created"
    PULL_REQUEST_CHANGES_REQUEST_REMOVED = "pullrequest:changes_request_removed"

    @property
    def alias(self) -> str:
        """Camel-case name, e.g. ``repo:commit_status_created`` → ``repoCommitStatusCreated``."""
        words = self.value.replace(":", "_").split("_")
        return words[0] + "".join(word.capitalize() for word in words[1:])


_BY_KEY: dict[str, EventType] = {}
for _event in EventType:
    _BY_KEY[_event.value] = _event
    _BY_KEY[_event.alias] = _event


def resolve_type(headers: Optional[Mapping[str, str]]) -> Optional[str]:
    """Return the raw ``X-Event-Key`` header value, or None when absent."""
    if headers is None:
        return None
    for name, value in headers.items():
        if name.lower() == EVENT_HEADER:
            return value
    return None


def parse_event_type(key: Optional[str]) -> Optional[EventType]:
    if not key:
        return None
    return _BY_KEY.get(key.strip())


def is_known(key: Optional[str]) -> bool:
    return parse_event_type(key) is not None
