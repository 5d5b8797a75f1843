"""Tests for imagerelay.core.notifier — Telegram notifications."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock

import httpx

from imagerelay.core.notifier import (
    ERROR_NOTICE,
    MAX_CAPTION_LENGTH,
    TelegramNotifier,
    relay_outcome,
)
from imagerelay.core.results import (
    GeneratedImage,
    OutcomeStatus,
    PipelineOutcome,
    StoredImage,
)


def _notify(upstream, action, token: str = "123:bot-token"):
    async def _go():
        async with httpx.AsyncClient(transport=upstream.transport) as client:
            return await action(TelegramNotifier(client, token))

    return asyncio.run(_go())


def _telegram_bodies(upstream) -> list[dict]:
    return [json.loads(r.content) for r in upstream.requests_to("api.telegram.org")]


class TestTelegramNotifier:
    """Direct sendMessage / sendPhoto calls."""

    def test_send_message(self, upstream):
        assert _notify(upstream, lambda n: n.send_message(42, "hello")) is True
        request = upstream.requests_to("api.telegram.org")[0]
        assert request.url.path == "/bot123:bot-token/sendMessage"
        assert _telegram_bodies(upstream)[0] == {"chat_id": 42, "text": "hello"}

    def test_send_photo_truncates_caption(self, upstream):
        caption = "x" * (MAX_CAPTION_LENGTH + 50)
        _notify(upstream, lambda n: n.send_photo(42, "https://img/1.png", caption))
        body = _telegram_bodies(upstream)[0]
        assert body["photo"] == "https://img/1.png"
        assert len(body["caption"]) == MAX_CAPTION_LENGTH

    def test_http_failure_swallowed(self, upstream):
        upstream.telegram = (400, {"ok": False, "description": "chat not found"})
        assert _notify(upstream, lambda n: n.send_message(42, "hello")) is False

    def test_transport_failure_swallowed(self, upstream):
        upstream.telegram = httpx.ConnectError("down")
        assert _notify(upstream, lambda n: n.send_message(42, "hello")) is False

    def test_missing_token_skips_request(self, upstream):
        assert _notify(upstream, lambda n: n.send_message(42, "hello"), token="") is False
        assert upstream.requests == []

    def test_configured_reflects_token(self):
        assert TelegramNotifier(MagicMock(), "123:bot-token").configured is True
        assert TelegramNotifier(MagicMock(), "").configured is False


class TestRelayOutcome:
    """Mapping pipeline outcomes to Telegram messages."""

    def test_success_sends_photo(self, upstream):
        outcome = PipelineOutcome(
            OutcomeStatus.SUCCESS,
            prompt="a red fox",
            message="a red fox",
            image=GeneratedImage(data="eA==", mime_type="image/png", caption="a red fox"),
            stored=StoredImage(url="https://img/fox.png", public_id="f/fox"),
        )
        _notify(upstream, lambda n: relay_outcome(n, 42, outcome))
        request = upstream.requests_to("api.telegram.org")[0]
        assert request.url.path.endswith("/sendPhoto")
        assert _telegram_bodies(upstream)[0]["caption"] == "a red fox"

    def test_moderated_sends_reason(self, upstream):
        outcome = PipelineOutcome(OutcomeStatus.MODERATED, prompt="p", message="violence")
        _notify(upstream, lambda n: relay_outcome(n, 42, outcome))
        assert "violence" in _telegram_bodies(upstream)[0]["text"]

    def test_error_sends_notice(self, upstream):
        outcome = PipelineOutcome(OutcomeStatus.ERROR, prompt="p", message="boom")
        _notify(upstream, lambda n: relay_outcome(n, 42, outcome))
        assert _telegram_bodies(upstream)[0]["text"] == ERROR_NOTICE

    def test_unauthorized_not_relayed(self, upstream):
        outcome = PipelineOutcome(OutcomeStatus.UNAUTHORIZED, prompt="p")
        _notify(upstream, lambda n: relay_outcome(n, 42, outcome))
        assert upstream.requests == []

    def test_missing_chat_id_not_relayed(self, upstream):
        outcome = PipelineOutcome(OutcomeStatus.ERROR, prompt="p")
        _notify(upstream, lambda n: relay_outcome(n, 0, outcome))
        assert upstream.requests == []
