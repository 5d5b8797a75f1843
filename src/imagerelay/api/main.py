"""Image Relay: FastAPI application.

This module builds the FastAPI application, defines its routes, and provides
the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The application is stateless between requests:

- **Configuration** is read from the environment once, by :func:`create_app`
  (or :func:`main`), and stored on ``app.state.config``.
- **Outbound HTTP** goes through one shared ``httpx.AsyncClient`` opened in
  the lifespan handler and closed on shutdown.
- **Request processing** is delegated to
  :class:`~imagerelay.core.pipeline.ImagePipeline`, which never raises; the
  route only maps its outcome to a response.
- **Notifications** to Telegram are optional and run as background tasks
  after the response has been produced.

Endpoints
---------
========  ====================  ====================================
Method    Path                  Purpose
========  ====================  ====================================
POST      ``/generate-image``   Moderate, generate, upload, respond
GET       ``/health``           Liveness and configured collaborators
========  ====================  ====================================

Usage
-----
CLI (installed entry point)::

    imagerelay

Direct invocation::

    python -m imagerelay.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import APIRouter, BackgroundTasks, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from imagerelay import __version__
from imagerelay.api.models import GenerateImageRequest
from imagerelay.api.responses import compose_response
from imagerelay.core.config import ImageRelayConfig
from imagerelay.core.notifier import TelegramNotifier, relay_outcome
from imagerelay.core.pipeline import ImagePipeline
from imagerelay.core.results import OutcomeStatus

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

router = APIRouter()


# ---------------------------------------------------------------------------
# Application lifecycle: shared HTTP client and pipeline.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the shared HTTP client and wire the pipeline on startup.

    On startup:
        Creates an ``httpx.AsyncClient`` (using ``app.state.transport`` when a
        test injected one) and builds the pipeline and notifier on top of it.

    On shutdown:
        Closes the client and its connection pool.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    config: ImageRelayConfig = app.state.config

    http_client = httpx.AsyncClient(
        timeout=config.http_timeout_seconds,
        transport=app.state.transport,
    )
    app.state.http_client = http_client
    app.state.pipeline = ImagePipeline.from_config(config, http_client)
    app.state.notifier = TelegramNotifier(http_client, config.telegram_bot_token)

    logger.info(
        "Image relay ready: %d primary key(s), gemini=%s, moderation=%s, storage=%s.",
        len(config.primary_credentials),
        bool(config.gemini_api_key),
        config.moderation_enabled,
        config.storage_configured,
    )

    yield

    await http_client.aclose()
    logger.info("HTTP client closed on shutdown.")


def create_app(
    config: ImageRelayConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Configuration to use.  Read from the environment when omitted.
        transport: Optional httpx transport for every outbound call (tests
            pass an ``httpx.MockTransport``).

    Returns:
        The configured application.
    """
    app = FastAPI(
        title="Image Relay",
        description="Prompt moderation, multi-provider image generation and cloud upload.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config or ImageRelayConfig()
    app.state.transport = transport

    # Callers authenticate with the shared secret, not cookies.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@router.post("/generate-image")
async def generate_image(
    req: GenerateImageRequest,
    request: Request,
    background_tasks: BackgroundTasks,
) -> JSONResponse:
    """Turn a prompt into a stored image.

    This endpoint:

    1. Checks ``sharedSecret`` (401 on mismatch, nothing else runs).
    2. Moderates the prompt (200 ``moderated`` on rejection).
    3. Tries the image providers in order until one succeeds.
    4. Uploads the image and returns its URL (200 ``success``).

    Any failure after authorization is returned as 500 ``error``.

    Args:
        req: Validated :class:`GenerateImageRequest` payload.

    Returns:
        JSON response with the status-specific body.
    """
    pipeline: ImagePipeline = request.app.state.pipeline
    outcome = await pipeline.run(req.to_domain())

    config: ImageRelayConfig = request.app.state.config
    if config.telegram_notify and outcome.status is not OutcomeStatus.UNAUTHORIZED:
        background_tasks.add_task(
            relay_outcome, request.app.state.notifier, req.chat_id_value, outcome
        )

    return compose_response(outcome)


@router.get("/health")
async def health(request: Request) -> dict:
    """Report liveness and which collaborators are configured.

    Only booleans and counts are returned, never credential values.
    """
    config: ImageRelayConfig = request.app.state.config
    return {
        "status": "ok",
        "version": __version__,
        "primary_keys": len(config.primary_credentials),
        "gemini": bool(config.gemini_api_key),
        "moderation": config.moderation_enabled,
        "storage": config.storage_configured,
        "telegram": bool(config.telegram_bot_token) and config.telegram_notify,
    }


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :class:`ImageRelayConfig`
    (``IMAGERELAY_SERVER_HOST``, ``IMAGERELAY_SERVER_PORT``,
    ``IMAGERELAY_LOG_LEVEL``).  Defaults to ``0.0.0.0:8000``.

    This function is registered as the ``imagerelay`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    config = ImageRelayConfig()
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)

    uvicorn.run(
        create_app(config),
        host=config.server_host,
        port=config.server_port,
    )


if __name__ == "__main__":
    main()
