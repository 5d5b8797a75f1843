"""Configuration management for the Image Relay backend.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the IMAGERELAY_ prefix,
allowing deployment-specific credentials without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (IMAGERELAY_* prefix)
2. .env file in the working directory
3. Default values defined in ImageRelayConfig

Example .env file:
    IMAGERELAY_SHARED_SECRET=change-me
    IMAGERELAY_STABILITY_API_KEYS=sk-first,sk-second
    IMAGERELAY_GEMINI_API_KEY=AIza...
    IMAGERELAY_CLOUDINARY_CLOUD_NAME=my-cloud
    IMAGERELAY_CLOUDINARY_API_KEY=1234567890
    IMAGERELAY_CLOUDINARY_API_SECRET=abcdef

No Global Instance
------------------
Unlike a module-level singleton, the configuration object is constructed once
by :func:`imagerelay.api.main.create_app` and handed to every collaborator.
Tests build their own instances with ``_env_file=None`` and explicit values.

Credential Rotation
-------------------
The primary image provider accepts either a single key
(``IMAGERELAY_STABILITY_API_KEY``) or a comma-separated list
(``IMAGERELAY_STABILITY_API_KEYS``).  :attr:`ImageRelayConfig.primary_credentials`
merges both forms into one ordered list; every request walks it from the start.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ImageRelayConfig(BaseSettings):
    """Main configuration for the Image Relay backend.

    Attributes
    ----------
    Authorization:
        shared_secret : str
            Value callers must echo in ``sharedSecret``.  Empty rejects all.

    Primary image provider (Stability AI):
        stability_api_key : str
            Single API key.
        stability_api_keys : str
            Comma-separated API keys, tried in order after ``stability_api_key``.
        stability_engine : str
            Engine identifier used in the text-to-image path.
        stability_api_base : str
            Base URL of the Stability REST API.

    Gemini (moderation and secondary image provider):
        gemini_api_key : str
            API key for the Generative Language API.
        gemini_api_base : str
            Base URL of the Generative Language API.
        gemini_image_model : str
            Model used for fallback image generation.
        gemini_moderation_model : str
            Model used for prompt moderation.

    Moderation:
        moderation_enabled : bool
            Run the moderation stage before generating.
        moderation_fail_open : bool
            Proceed unmoderated when the moderation call fails.

    Storage (Cloudinary):
        cloudinary_cloud_name, cloudinary_api_key, cloudinary_api_secret : str
            Account credentials for signed uploads.
        cloudinary_folder : str
            Destination folder for uploaded images.

    Notifications (Telegram):
        telegram_bot_token : str
            Bot API token.
        telegram_notify : bool
            Relay outcomes to the originating chat.

    Timeouts and server:
        http_timeout_seconds : float
            Timeout for each outbound HTTP call.
        request_timeout_seconds : float
            Upper bound for one whole pipeline run.
        server_host, server_port : str, int
            Bind address for the uvicorn server.
        log_level : str
            Root logging level used by the CLI entry point.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="IMAGERELAY_",
        case_sensitive=False,
        extra="ignore",
    )

    # Authorization
    shared_secret: str = Field(
        default="",
        description="Shared secret callers must send as sharedSecret",
    )

    # Primary image provider
    stability_api_key: str = Field(default="", description="Single Stability AI API key")
    stability_api_keys: str = Field(
        default="",
        description="Comma-separated Stability AI API keys, tried in order",
    )
    stability_engine: str = Field(
        default="stable-diffusion-xl-1024-v1-0",
        description="Stability AI engine used for text-to-image",
    )
    stability_api_base: str = Field(default="https://api.stability.ai")

    # Gemini
    gemini_api_key: str = Field(default="", description="Generative Language API key")
    gemini_api_base: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    gemini_image_model: str = Field(
        default="gemini-2.0-flash-preview-image-generation",
        description="Gemini model used for fallback image generation",
    )
    gemini_moderation_model: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model used for prompt moderation",
    )

    # Moderation
    moderation_enabled: bool = Field(default=True)
    moderation_fail_open: bool = Field(
        default=False,
        description="Proceed without moderation when the moderation call fails",
    )

    # Storage
    cloudinary_cloud_name: str = Field(default="")
    cloudinary_api_key: str = Field(default="")
    cloudinary_api_secret: str = Field(default="")
    cloudinary_folder: str = Field(default="telegram-images")

    # Notifications
    telegram_bot_token: str = Field(default="")
    telegram_notify: bool = Field(
        default=False,
        description="Send the outcome to the originating Telegram chat",
    )

    # Timeouts
    http_timeout_seconds: float = Field(default=120.0, gt=0)
    request_timeout_seconds: float = Field(default=300.0, gt=0)

    # Server settings
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8000, ge=1024, le=65535)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @property
    def primary_credentials(self) -> list[str]:
        """Ordered, de-duplicated list of Stability API keys.

        The single-key field comes first, followed by the comma-separated list.
        Blank entries are skipped.

        Returns:
            List of API keys in the order they should be attempted.
        """
        raw = [self.stability_api_key, *self.stability_api_keys.split(",")]
        keys: list[str] = []
        for key in raw:
            key = key.strip()
            if key and key not in keys:
                keys.append(key)
        return keys

    @property
    def storage_configured(self) -> bool:
        """Whether all Cloudinary credentials are present."""
        return bool(
            self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret
        )
