from typing import Any, Dict, Optional

import pytest

from bbnotify.services.bitbucket import transform_event
from bbnotify.services.markdown import MarkdownRewriter
from bbnotify.services.users import UserResolver

BASE = "https://bitbucket.org/"


def make_user(
    display_name: str,
    *,
    username: Optional[str] = None,
    links: bool = True,
) -> Dict[str, Any]:
    user: Dict[str, Any] = {"display_name": display_name, "type": "user"}
    if username:
        user["username"] = username
    if links:
        slug = username or display_name.lower().replace(" ", "-")
        user["links"] = {
            "avatar": {"href": f"https://avatars.example/{slug}.png"},
            "html": {"href": f"{BASE}{slug}/"},
        }
    return user


def make_repository() -> Dict[str, Any]:
    return {
        "name": "widget",
        "full_name": "acme/widget",
        "links": {"avatar": {"href": "https://bytebucket.example/acme-widget.png"}},
    }


def make_pull_request(**overrides: Any) -> Dict[str, Any]:
    pr: Dict[str, Any] = {
        "id": 42,
        "title": "Add gear ratio",
        "author": make_user("Alice Smith", username="alice"),
        "source": {"branch": {"name": "feature/gears"}},
        "destination": {"branch": {"name": "main"}},
        "participants": [],
    }
    pr.update(overrides)
    return pr


def make_issue(**overrides: Any) -> Dict[str, Any]:
    issue: Dict[str, Any] = {
        "id": 7,
        "title": "Widget wobbles",
        "state": "new",
        "kind": "bug",
        "priority": "major",
        "assignee": None,
        "component": None,
        "milestone": None,
        "version": None,
        "content": {"raw": ""},
    }
    issue.update(overrides)
    return issue


@pytest.fixture
def users():
    return UserResolver({"Alice Smith": "1001", "Bob Jones": "1002"})


@pytest.fixture
def markdown():
    return MarkdownRewriter()


@pytest.fixture
def transform(users, markdown):
    """Run the engine with test collaborators and a fixed base link."""

    async def _transform(event, payload):
        return await transform_event(
            event, payload, users=users, markdown=markdown, base_link=BASE
        )

    return _transform


@pytest.fixture
def base_payload():
    def _payload(**extra: Any) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "actor": make_user("Alice Smith", username="alice"),
            "repository": make_repository(),
        }
        payload.update(extra)
        return payload

    return _payload
