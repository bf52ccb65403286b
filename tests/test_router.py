import dataclasses
import hashlib
import hmac
import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from bbnotify.app import app
from bbnotify.config import settings
from bbnotify.routers import bitbucket as router_module

from .conftest import make_pull_request, make_repository, make_user

WEBHOOK = "https://discord.example/api/webhooks/1/token"


@pytest.fixture
def configure(monkeypatch):
    def _configure(**overrides):
        values = {"discord_webhook_url": WEBHOOK, "webhook_secret": ""}
        values.update(overrides)
        monkeypatch.setattr(router_module, "settings", dataclasses.replace(settings, **values))

    _configure()
    return _configure


@pytest.fixture
def sent(monkeypatch):
    mock = AsyncMock(return_value={})
    monkeypatch.setattr(router_module, "send_message", mock)
    return mock


@pytest.fixture
def client():
    return TestClient(app)


def _pr_payload():
    return {
        "actor": make_user("Alice Smith", username="alice"),
        "repository": make_repository(),
        "pullrequest": make_pull_request(),
    }


def test_health(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "ok"


def test_help_lists_events(client):
    response = client.get("/help")
    assert "pullrequest:changes_request_removed" in response.text


def test_known_event_is_forwarded(client, configure, sent):
    response = client.post(
        "/wh/bitbucket",
        json=_pr_payload(),
        headers={"X-Event-Key": "pullrequest:approved"},
    )

    assert response.status_code == 200
    assert response.text == "pullrequest:approved event forwarded"
    sent.assert_awaited_once()
    url, message = sent.await_args.args
    assert url == WEBHOOK
    assert message.embeds[0].color == 0x2DB83D


@pytest.mark.parametrize("headers", [{}, {"X-Event-Key": "repo:transfer"}])
def test_unknown_event_is_ignored(client, configure, sent, headers):
    response = client.post("/wh/bitbucket", json={}, headers=headers)
    assert response.status_code == 200
    assert response.text == "ignored"
    sent.assert_not_awaited()


def test_malformed_payload_is_rejected(client, configure, sent):
    response = client.post(
        "/wh/bitbucket",
        json={"repository": make_repository()},
        headers={"X-Event-Key": "pullrequest:created"},
    )
    assert response.status_code == 422
    sent.assert_not_awaited()


def test_wrong_shape_payload_is_rejected(client, configure, sent):
    payload = _pr_payload()
    payload["pullrequest"]["participants"] = [None]
    response = client.post(
        "/wh/bitbucket", json=payload, headers={"X-Event-Key": "pullrequest:updated"}
    )
    assert response.status_code == 422
    sent.assert_not_awaited()


def test_invalid_json(client, configure, sent):
    response = client.post(
        "/wh/bitbucket",
        content=b"{not json",
        headers={"X-Event-Key": "repo:push", "Content-Type": "application/json"},
    )
    assert response.status_code == 400


def test_empty_push_is_skipped(client, configure, sent):
    response = client.post(
        "/wh/bitbucket",
        json={"actor": make_user("Alice Smith"), "repository": make_repository()},
        headers={"X-Event-Key": "repo:push"},
    )
    assert response.text == "skipped"
    sent.assert_not_awaited()


def test_signature_required_when_secret_set(client, configure, sent):
    configure(webhook_secret="s3cret")
    body = json.dumps(_pr_payload()).encode()

    response = client.post(
        "/wh/bitbucket",
        content=body,
        headers={"X-Event-Key": "pullrequest:created", "X-Hub-Signature": "sha256=bad"},
    )
    assert response.status_code == 401

    digest = hmac.new(b"s3cret", msg=body, digestmod=hashlib.sha256).hexdigest()
    response = client.post(
        "/wh/bitbucket",
        content=body,
        headers={"X-Event-Key": "pullrequest:created", "X-Hub-Signature": f"sha256={digest}"},
    )
    assert response.status_code == 200
    sent.assert_awaited_once()


def test_no_webhook_configured(client, configure, sent):
    configure(discord_webhook_url="")
    response = client.post(
        "/wh/bitbucket",
        json=_pr_payload(),
        headers={"X-Event-Key": "pullrequest:created"},
    )
    assert response.text == "skipped"
    sent.assert_not_awaited()
