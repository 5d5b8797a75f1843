"""Image Relay - prompt moderation, multi-provider image generation and cloud upload."""

__version__ = "0.1.0"

from imagerelay.core.config import ImageRelayConfig
from imagerelay.core.pipeline import ImagePipeline

__all__ = [
    "ImageRelayConfig",
    "ImagePipeline",
]
