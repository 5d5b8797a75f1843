"""Request pipeline: authorize, moderate, generate, upload.

This module provides :class:`ImagePipeline`, the single point of control for
one image request.  It owns no state between requests; each call to
:meth:`ImagePipeline.run` walks the same state machine::

    Received -> Authorized -> Moderated(safe) -> ImageProduced -> Uploaded -> success

with early exits to ``unauthorized``, ``moderated`` and ``error``.

Error Boundary
--------------
:meth:`ImagePipeline.run` never raises.  Domain failures
(:class:`~imagerelay.core.errors.ImageRelayError`) keep their message and
redacted details; anything unexpected is logged with its traceback and turned
into a generic error outcome.  The whole run is bounded by
``request_timeout_seconds``.

Moderation Failure Policy
-------------------------
A failed moderation call fails the request (fail-closed) unless
``moderation_fail_open`` is set, in which case the failure is logged and the
prompt proceeds unmoderated.

Usage
-----
::

    pipeline = ImagePipeline.from_config(config, http_client)
    outcome = await pipeline.run(GenerationRequest(prompt="a red fox", shared_secret="s3cret"))
    outcome.status_code  # 200
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from imagerelay.core.config import ImageRelayConfig
from imagerelay.core.errors import ImageRelayError, ModerationError, truncate
from imagerelay.core.gemini import GeminiClient
from imagerelay.core.moderation import Moderator
from imagerelay.core.providers import ProviderChain
from imagerelay.core.results import (
    GenerationRequest,
    ModerationVerdict,
    OutcomeStatus,
    PipelineOutcome,
)
from imagerelay.core.storage import CloudinaryUploader

logger = logging.getLogger(__name__)


def _preview(prompt: str) -> str:
    return truncate(prompt, 80)


class ImagePipeline:
    """Run one generation request end to end.

    Attributes:
        _config (ImageRelayConfig):
            Shared secret, moderation policy and timeout.
        _moderator (Moderator | None):
            ``None`` when moderation is disabled.
        _chain (ProviderChain):
            Ordered image providers.
        _uploader (CloudinaryUploader):
            Object storage for the produced image.
    """

    def __init__(
        self,
        config: ImageRelayConfig,
        chain: ProviderChain,
        uploader: CloudinaryUploader,
        moderator: Moderator | None = None,
    ) -> None:
        self._config = config
        self._chain = chain
        self._uploader = uploader
        self._moderator = moderator

    @classmethod
    def from_config(cls, config: ImageRelayConfig, http_client: httpx.AsyncClient) -> ImagePipeline:
        """Wire every stage from *config*, sharing one HTTP connection pool."""
        gemini = GeminiClient(http_client, config.gemini_api_key, config.gemini_api_base)
        moderator = (
            Moderator(gemini, config.gemini_moderation_model) if config.moderation_enabled else None
        )
        return cls(
            config,
            chain=ProviderChain.from_config(config, http_client, gemini),
            uploader=CloudinaryUploader.from_config(config, http_client),
            moderator=moderator,
        )

    # -- Public interface ---------------------------------------------------

    def authorize(self, shared_secret: str | None) -> bool:
        """Return ``True`` iff *shared_secret* equals the configured secret.

        An unconfigured secret admits nothing.
        """
        expected = self._config.shared_secret
        if not expected:
            logger.warning("Shared secret is not configured; rejecting request.")
            return False
        return shared_secret == expected

    async def run(self, request: GenerationRequest) -> PipelineOutcome:
        """Process *request* and return its terminal outcome."""
        if not self.authorize(request.shared_secret):
            logger.info("Unauthorized request for chat %s", request.chat_id)
            return PipelineOutcome(OutcomeStatus.UNAUTHORIZED, prompt=request.prompt)

        logger.info(
            "Processing prompt for chat %s (user %s): %r",
            request.chat_id,
            request.user_id,
            _preview(request.prompt),
        )

        try:
            return await asyncio.wait_for(
                self._process(request.prompt),
                timeout=self._config.request_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Request exceeded %.0fs for prompt %r",
                self._config.request_timeout_seconds,
                _preview(request.prompt),
            )
            return PipelineOutcome(
                OutcomeStatus.ERROR,
                prompt=request.prompt,
                message="Request timed out",
                details=f"exceeded {self._config.request_timeout_seconds:g}s",
            )
        except ImageRelayError as exc:
            logger.error("%s: %s (%s)", type(exc).__name__, exc.message, exc.details)
            return PipelineOutcome(
                OutcomeStatus.ERROR,
                prompt=request.prompt,
                message=exc.message,
                details=exc.details,
            )
        except Exception as exc:
            logger.exception("Unhandled error while processing prompt %r", _preview(request.prompt))
            return PipelineOutcome(
                OutcomeStatus.ERROR,
                prompt=request.prompt,
                message=str(exc) or "Internal server error",
                details=type(exc).__name__,
            )

    # -- Stages -------------------------------------------------------------

    async def _process(self, prompt: str) -> PipelineOutcome:
        verdict = await self._moderate(prompt)
        if verdict is not None and not verdict.safe:
            return PipelineOutcome(
                OutcomeStatus.MODERATED,
                prompt=prompt,
                message=verdict.reason or "",
                verdict=verdict,
            )

        image = await self._chain.generate(prompt)
        stored = await self._uploader.store(image)

        return PipelineOutcome(
            OutcomeStatus.SUCCESS,
            prompt=prompt,
            message=image.caption,
            image=image,
            stored=stored,
        )

    async def _moderate(self, prompt: str) -> ModerationVerdict | None:
        if self._moderator is None:
            return None
        try:
            return await self._moderator.check(prompt)
        except ModerationError as exc:
            if not self._config.moderation_fail_open:
                raise
            logger.warning("Moderation unavailable, continuing unmoderated: %s", exc.details)
            return None
