"""Image providers and the ordered fallback chain.

Provider Pattern
----------------
Every provider implements :class:`ImageProviderBase` and turns one prompt into
a tagged result: :class:`~imagerelay.core.results.ProviderSuccess` carrying a
base64 image, or :class:`~imagerelay.core.results.ProviderFailure` carrying a
failure kind and a human-readable reason.  Providers never raise for upstream
problems (HTTP errors, timeouts, malformed payloads); those are failures the
chain can fall back from.

Chain Order
-----------
:meth:`ProviderChain.from_config` builds the attempt list once per process:

1. one :class:`StabilityProvider` per primary credential, in configured order
2. one :class:`GeminiImageProvider` as the last resort

Attempts run strictly one after another and the first success wins.  The
chain does not remember anything between requests, so every request starts
again from the first credential.

Base64 payloads are located and forwarded untouched, never decoded.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import httpx

from imagerelay.core.config import ImageRelayConfig
from imagerelay.core.errors import ProviderChainError, truncate
from imagerelay.core.gemini import (
    GeminiClient,
    GeminiError,
    first_candidate_parts,
    inline_data,
    inline_mime_type,
)
from imagerelay.core.results import (
    FailureKind,
    GeneratedImage,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
)

logger = logging.getLogger(__name__)


class ImageProviderBase(ABC):
    """Abstract base class for image providers.

    Attributes
    ----------
    name : str
        Identifier used in logs and diagnostics.  Never contains credentials.
    description : str
        Brief description of the provider.
    """

    name: str = "base"
    description: str = "Base class for image providers"

    @abstractmethod
    async def generate(self, prompt: str) -> ProviderResult:
        """Attempt to produce one image for *prompt*."""

    def _fail(self, kind: FailureKind, reason: str) -> ProviderFailure:
        return ProviderFailure(provider=self.name, kind=kind, reason=reason)


class StabilityProvider(ImageProviderBase):
    """Stability AI v1 text-to-image, bound to a single API key."""

    description = "Stability AI text-to-image"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        *,
        engine: str,
        api_base: str,
        name: str = "stability",
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._url = f"{api_base.rstrip('/')}/v1/generation/{engine}/text-to-image"
        self.name = name

    async def generate(self, prompt: str) -> ProviderResult:
        payload = {
            "text_prompts": [{"text": prompt, "weight": 1}],
            "cfg_scale": 7,
            "height": 1024,
            "width": 1024,
            "samples": 1,
            "steps": 30,
        }
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

        try:
            response = await self._http.post(self._url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            return self._fail(FailureKind.UPSTREAM_ERROR, f"request failed: {exc!r}")

        if response.status_code >= 400:
            logger.debug("%s error body: %s", self.name, response.text)
            return self._fail(
                FailureKind.UPSTREAM_ERROR,
                f"HTTP {response.status_code}: {_error_message(response)}",
            )

        try:
            data = response.json()
        except ValueError:
            return self._fail(FailureKind.UPSTREAM_ERROR, "malformed JSON payload")

        artifacts = data.get("artifacts") if isinstance(data, dict) else None
        if not isinstance(artifacts, list) or not artifacts:
            return self._fail(FailureKind.NO_IMAGE_PART, "response contained no artifacts")

        for artifact in artifacts:
            if not isinstance(artifact, dict):
                continue
            encoded = artifact.get("base64")
            if not isinstance(encoded, str) or not encoded:
                continue
            if artifact.get("finishReason") == "CONTENT_FILTERED":
                continue
            return ProviderSuccess(
                GeneratedImage(
                    data=encoded,
                    mime_type="image/png",
                    caption=prompt,
                    provider=self.name,
                )
            )

        return self._fail(FailureKind.NO_IMAGE_PART, "no usable artifact (filtered or empty)")


class GeminiImageProvider(ImageProviderBase):
    """Gemini image-capable model, asked for TEXT and IMAGE modalities."""

    name = "gemini"
    description = "Gemini generateContent with image output"

    def __init__(self, client: GeminiClient, model: str) -> None:
        self._client = client
        self._model = model

    async def generate(self, prompt: str) -> ProviderResult:
        if not self._client.configured:
            return self._fail(FailureKind.NOT_CONFIGURED, "Gemini API key is not configured")

        try:
            payload = await self._client.generate_content(
                self._model,
                [{"text": prompt}],
                response_modalities=["TEXT", "IMAGE"],
            )
        except GeminiError as exc:
            return self._fail(FailureKind.UPSTREAM_ERROR, str(exc))

        try:
            parts = first_candidate_parts(payload)
        except GeminiError as exc:
            logger.debug("Malformed Gemini image response: %s", payload)
            return self._fail(FailureKind.UPSTREAM_ERROR, str(exc))

        if parts is None:
            logger.debug("Gemini response without candidates: %s", payload)
            return self._fail(FailureKind.NO_CANDIDATES, "response contained no candidates")

        image = None
        caption = None
        for part in parts:
            data = inline_data(part)
            if (
                image is None
                and data is not None
                and isinstance(data.get("data"), str)
                and data["data"]
                and inline_mime_type(data).startswith("image/")
            ):
                image = data
            text = part.get("text")
            if caption is None and isinstance(text, str) and text.strip():
                caption = text.strip()

        if image is None:
            logger.debug("Gemini response without image part: %s", payload)
            return self._fail(FailureKind.NO_IMAGE_PART, "no part carried image data")

        return ProviderSuccess(
            GeneratedImage(
                data=image["data"],
                mime_type=inline_mime_type(image),
                caption=caption or prompt,
                provider=self.name,
            )
        )


class ProviderChain:
    """Try providers in order until one yields an image."""

    def __init__(self, providers: list[ImageProviderBase]) -> None:
        self.providers = providers

    @classmethod
    def from_config(
        cls,
        config: ImageRelayConfig,
        http_client: httpx.AsyncClient,
        gemini_client: GeminiClient,
    ) -> ProviderChain:
        """Build the attempt list: every Stability key in order, then Gemini."""
        providers: list[ImageProviderBase] = [
            StabilityProvider(
                http_client,
                key,
                engine=config.stability_engine,
                api_base=config.stability_api_base,
                name=f"stability[{index}]",
            )
            for index, key in enumerate(config.primary_credentials, start=1)
        ]
        providers.append(GeminiImageProvider(gemini_client, config.gemini_image_model))
        return cls(providers)

    async def generate(self, prompt: str) -> GeneratedImage:
        """Return the first image any provider produces.

        Raises:
            ProviderChainError: If every attempt failed.
        """
        failures: list[ProviderFailure] = []

        for provider in self.providers:
            logger.info("Requesting image from %s", provider.name)
            result = await provider.generate(prompt)

            if isinstance(result, ProviderSuccess):
                logger.info(
                    "Image produced by %s after %d failed attempt(s)",
                    provider.name,
                    len(failures),
                )
                return result.image

            logger.warning(
                "Image provider %s failed (%s): %s",
                result.provider,
                result.kind.value,
                truncate(result.reason),
            )
            failures.append(result)

        raise ProviderChainError(failures)


def _error_message(response: httpx.Response) -> str:
    """Best-effort short error text from a failed provider response."""
    try:
        body = response.json()
    except ValueError:
        return truncate(response.text or response.reason_phrase)
    if isinstance(body, dict):
        message = body.get("message") or body.get("name")
        if isinstance(message, str) and message:
            return truncate(message)
    return response.reason_phrase
