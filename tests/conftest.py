"""Shared pytest fixtures for Image Relay tests.

No test touches the network.  Every outbound call goes through
:class:`FakeUpstream`, an ``httpx.MockTransport`` handler that plays the part
of Stability AI, Gemini, Cloudinary and Telegram and records each request.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Generator
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

from imagerelay.api.main import create_app
from imagerelay.core.config import ImageRelayConfig
from imagerelay.core.pipeline import ImagePipeline
from imagerelay.core.results import GenerationRequest

SHARED_SECRET = "s3cret"

STABILITY_HOST = "api.stability.ai"
GEMINI_HOST = "generativelanguage.googleapis.com"
CLOUDINARY_HOST = "api.cloudinary.com"
TELEGRAM_HOST = "api.telegram.org"


class FakeUpstream:
    """Scripted stand-in for every external API.

    Attributes:
        stability: API key -> ``(status, json_body)`` or an exception to raise.
            Keys without an entry answer 401.
        moderation: ``(status, json_body)`` for the Gemini text model.
        gemini_image: ``(status, json_body)`` for the Gemini image model.
        cloudinary: ``(status, json_body)`` or ``None`` to echo a secure URL
            built from the uploaded public id.
        telegram: ``(status, json_body)`` or an exception to raise.
        delay: Seconds every request waits before answering.
        requests: Every request received, in order.
        uploads: Parsed form fields of every Cloudinary upload.
    """

    def __init__(self) -> None:
        self.stability: dict[str, Any] = {}
        self.moderation: Any = (200, self.gemini_text("SAFE"))
        self.gemini_image: Any = (200, self.gemini_image_payload())
        self.cloudinary: Any = None
        self.telegram: Any = (200, {"ok": True})
        self.delay = 0.0
        self.requests: list[httpx.Request] = []
        self.uploads: list[dict[str, str]] = []

    # -- Payload builders ---------------------------------------------------

    @staticmethod
    def gemini_text(text: str, feedback: dict | None = None) -> dict:
        payload: dict[str, Any] = {
            "candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]
        }
        if feedback is not None:
            payload["promptFeedback"] = feedback
        return payload

    @staticmethod
    def gemini_image_payload(
        data: str = "R0VNSU5J",
        mime_type: str = "image/png",
        caption: str | None = "Here is your image",
    ) -> dict:
        parts: list[dict] = []
        if caption is not None:
            parts.append({"text": caption})
        parts.append({"inlineData": {"mimeType": mime_type, "data": data}})
        return {"candidates": [{"content": {"role": "model", "parts": parts}}]}

    @staticmethod
    def stability_payload(data: str = "U1RBQklMSVRZ", finish_reason: str = "SUCCESS") -> dict:
        return {"artifacts": [{"base64": data, "seed": 42, "finishReason": finish_reason}]}

    # -- Inspection ---------------------------------------------------------

    def requests_to(self, host: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.host == host]

    def stability_keys_tried(self) -> list[str]:
        return [
            request.headers["Authorization"].removeprefix("Bearer ")
            for request in self.requests_to(STABILITY_HOST)
        ]

    def gemini_image_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests_to(GEMINI_HOST) if "image-generation" in r.url.path]

    def moderation_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests_to(GEMINI_HOST) if "image-generation" not in r.url.path]

    # -- Transport ----------------------------------------------------------

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        host = request.url.host
        if host == STABILITY_HOST:
            key = request.headers.get("Authorization", "").removeprefix("Bearer ")
            default = (401, {"name": "unauthorized", "message": "bad key"})
            scripted = self.stability.get(key, default)
        elif host == GEMINI_HOST:
            scripted = (
                self.gemini_image if "image-generation" in request.url.path else self.moderation
            )
        elif host == CLOUDINARY_HOST:
            form = {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
            self.uploads.append(form)
            public_id = form.get("public_id")
            scripted = self.cloudinary or (
                200,
                {
                    "public_id": f"{form.get('folder')}/{public_id}",
                    "secure_url": f"https://res.cloudinary.com/demo/image/upload/{public_id}.png",
                },
            )
        elif host == TELEGRAM_HOST:
            scripted = self.telegram
        else:
            scripted = (404, {"error": "unknown host"})

        if isinstance(scripted, Exception):
            raise scripted
        status, body = scripted
        if isinstance(body, (dict, list)):
            return httpx.Response(
                status,
                content=json.dumps(body).encode(),
                headers={"content-type": "application/json"},
            )
        return httpx.Response(status, text=body)


@pytest.fixture
def upstream() -> FakeUpstream:
    """Fresh fake upstream with all providers answering successfully except Stability."""
    return FakeUpstream()


@pytest.fixture
def test_config() -> ImageRelayConfig:
    """Configuration with two Stability keys and every collaborator set.

    Returns:
        ImageRelayConfig that ignores any local ``.env`` file.
    """
    return ImageRelayConfig(
        _env_file=None,
        shared_secret=SHARED_SECRET,
        stability_api_key="",
        stability_api_keys="key-1,key-2",
        gemini_api_key="gemini-key",
        moderation_enabled=True,
        moderation_fail_open=False,
        cloudinary_cloud_name="demo",
        cloudinary_api_key="cloud-key",
        cloudinary_api_secret="cloud-secret",
        cloudinary_folder="telegram-images",
        telegram_bot_token="123:bot-token",
        telegram_notify=False,
        request_timeout_seconds=5.0,
    )


@pytest.fixture
def run_pipeline(test_config: ImageRelayConfig, upstream: FakeUpstream):
    """Return a helper that runs one request through a fresh pipeline.

    The helper accepts a prompt plus optional ``secret`` and ``config``
    overrides and returns the :class:`PipelineOutcome`.
    """

    def _run(prompt: str = "a red fox", secret: str | None = SHARED_SECRET, config=None):
        async def _go():
            async with httpx.AsyncClient(transport=upstream.transport) as client:
                pipeline = ImagePipeline.from_config(config or test_config, client)
                return await pipeline.run(
                    GenerationRequest(prompt=prompt, chat_id=42, user_id="u1", shared_secret=secret)
                )

        return asyncio.run(_go())

    return _run


@pytest.fixture
def test_client(
    test_config: ImageRelayConfig, upstream: FakeUpstream
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the fake upstream.

    Entering the client runs the lifespan, so the shared HTTP client and the
    pipeline exist for the duration of the test.
    """
    app = create_app(test_config, transport=upstream.transport)
    with TestClient(app) as client:
        yield client
