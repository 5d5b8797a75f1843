"""Pydantic request and response models for the Image Relay API.

FastAPI uses these models for request validation, serialisation and the
OpenAPI schema.  Python attributes are snake_case; the wire format is the
camelCase the bot-side script sends and expects, so every model accepts and
emits aliases.

Models
------
GenerateImageRequest
    Payload for ``POST /generate-image``.
SuccessResponse, ModeratedResponse, ErrorResponse, UnauthorizedResponse
    The four response shapes, one per terminal pipeline status.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from imagerelay.core.results import GenerationRequest


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerateImageRequest(_CamelModel):
    """Request body for the ``POST /generate-image`` endpoint.

    Attributes:
        prompt: Text description of the image to generate.
        chat_id: Telegram chat the request came from.  ``0`` when unknown.
        user_id: Opaque identifier of the requesting user.
        shared_secret: Must match the server's configured shared secret.

    Every field is optional and loosely typed so that the shared secret is
    checked before anything about the payload is rejected; only a body that
    is not a JSON object fails validation.
    """

    prompt: Any = Field(
        default="",
        description="Text prompt describing the image.",
    )
    chat_id: Any = Field(
        default=None,
        alias="chatId",
        description="Originating Telegram chat id.",
    )
    user_id: Any = Field(
        default=None,
        alias="userId",
        description="Opaque user identifier.",
    )
    shared_secret: Any = Field(
        default=None,
        alias="sharedSecret",
        description="Shared secret authorizing the caller.",
    )

    @property
    def chat_id_value(self) -> int:
        """Chat id as an integer, ``0`` when absent or not numeric."""
        if isinstance(self.chat_id, int):
            return self.chat_id
        try:
            return int(self.chat_id or 0)
        except (TypeError, ValueError):
            return 0

    def to_domain(self) -> GenerationRequest:
        """Convert to the pipeline's request type."""
        return GenerationRequest(
            prompt="" if self.prompt is None else str(self.prompt),
            chat_id=self.chat_id_value,
            user_id=None if self.user_id is None else str(self.user_id),
            shared_secret=self.shared_secret if isinstance(self.shared_secret, str) else None,
        )


class GeneratedImageInfo(_CamelModel):
    mime_type: str = Field(..., alias="mimeType")
    caption: str
    image_url: str = Field(..., alias="imageUrl")


class SuccessResponse(_CamelModel):
    """Image generated and stored."""

    status: Literal["success"] = "success"
    image_url: str = Field(..., alias="imageUrl")
    message: str = Field(..., description="Caption of the generated image.")
    prompt: str
    generated_image: GeneratedImageInfo = Field(..., alias="generatedImage")


class ModeratedResponse(_CamelModel):
    """Prompt rejected by moderation.  Not an error."""

    status: Literal["moderated"] = "moderated"
    message: str = Field(..., description="Human-readable rejection reason.")
    prompt: str
    moderation_feedback: Any = Field(default=None, alias="moderationFeedback")


class ErrorResponse(_CamelModel):
    """Generation, upload or internal failure."""

    status: Literal["error"] = "error"
    message: str
    prompt: str
    details: str = ""


class UnauthorizedResponse(BaseModel):
    error: str = "Unauthorized request"
