import json

import httpx
import pytest
from fastapi import HTTPException

from bbnotify.schemas import BLANK, Embed, EmbedField, OutgoingMessage
from bbnotify.services import discord

WEBHOOK = "https://discord.example/api/webhooks/1/token"


def _message():
    return OutgoingMessage(
        content="<@1001> created pull request",
        embeds=[Embed(title="Add gear ratio", fields=[EmbedField(name="Reviewers")])],
    )


def test_build_payload_drops_nulls():
    payload = discord.build_payload(_message())
    assert payload["content"] == "<@1001> created pull request"
    (embed,) = payload["embeds"]
    assert embed == {
        "title": "Add gear ratio",
        "fields": [{"name": "Reviewers", "value": BLANK}],
        "color": 0x205081,
    }


def test_build_payload_omits_empty_content():
    payload = discord.build_payload(OutgoingMessage(embeds=[Embed(title="x")]))
    assert "content" not in payload


@pytest.fixture
def mock_discord(monkeypatch):
    requests = []
    responses = {"status": 200}

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(responses["status"], json={"id": "1"})

    real_client = httpx.AsyncClient

    def _client(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(discord.httpx, "AsyncClient", _client)
    return requests, responses


async def test_send_message_posts_payload(mock_discord):
    requests, _ = mock_discord
    result = await discord.send_message(WEBHOOK, _message())

    assert result == {"id": "1"}
    (request,) = requests
    assert request.method == "POST"
    assert request.url.params["wait"] == "true"
    assert json.loads(request.content)["embeds"][0]["title"] == "Add gear ratio"


async def test_send_message_raises_on_error(mock_discord):
    _, responses = mock_discord
    responses["status"] = 400
    with pytest.raises(HTTPException) as excinfo:
        await discord.send_message(WEBHOOK, _message())
    assert excinfo.value.status_code == 500
