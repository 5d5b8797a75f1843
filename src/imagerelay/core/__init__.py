"""Core pipeline for the Image Relay backend.

Architecture Overview
---------------------
1. **Configuration** (config.py): Pydantic Settings, ``IMAGERELAY_`` prefix.
2. **Moderation** (moderation.py): SAFE/UNSAFE classification via Gemini.
3. **Providers** (providers.py): Stability AI keys in order, then Gemini.
4. **Storage** (storage.py): signed Cloudinary uploads.
5. **Pipeline** (pipeline.py): the per-request state machine and error boundary.
6. **Notifier** (notifier.py): optional Telegram relay of outcomes.

Usage Example
-------------
::

    import httpx
    from imagerelay.core import ImagePipeline, ImageRelayConfig
    from imagerelay.core.results import GenerationRequest

    config = ImageRelayConfig()
    async with httpx.AsyncClient(timeout=config.http_timeout_seconds) as client:
        pipeline = ImagePipeline.from_config(config, client)
        outcome = await pipeline.run(GenerationRequest(prompt="a red fox", shared_secret="..."))
"""

from imagerelay.core.config import ImageRelayConfig
from imagerelay.core.pipeline import ImagePipeline

__all__ = [
    "ImagePipeline",
    "ImageRelayConfig",
]
