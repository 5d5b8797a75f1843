"""Request-scoped data types passed between pipeline stages.

Provider attempts return tagged variants (:class:`ProviderSuccess` or
:class:`ProviderFailure`) so the fallback chain never inspects
provider-specific payloads.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    """Why a single provider attempt produced no image."""

    UPSTREAM_ERROR = "upstream_error"
    NO_CANDIDATES = "no_candidates"
    NO_IMAGE_PART = "no_image_part"
    NOT_CONFIGURED = "not_configured"


@dataclass(frozen=True)
class ModerationVerdict:
    """Outcome of prompt moderation.

    ``feedback`` is the provider's prompt-feedback block, passed through
    to the caller untouched.
    """

    safe: bool
    reason: str | None = None
    feedback: Any = None


@dataclass(frozen=True)
class GeneratedImage:
    """Base64 image payload produced by exactly one provider attempt."""

    data: str
    mime_type: str
    caption: str
    provider: str = ""

    def as_data_uri(self) -> str:
        """Return the image as a ``data:<mime>;base64,<data>`` URI."""
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class StoredImage:
    """Durable, publicly fetchable location of an uploaded image."""

    url: str
    public_id: str


@dataclass(frozen=True)
class ProviderSuccess:
    image: GeneratedImage


@dataclass(frozen=True)
class ProviderFailure:
    provider: str
    kind: FailureKind
    reason: str


ProviderResult = ProviderSuccess | ProviderFailure


@dataclass(frozen=True)
class GenerationRequest:
    """Decoded inbound request."""

    prompt: str
    chat_id: int = 0
    user_id: str | None = None
    shared_secret: str | None = None


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    MODERATED = "moderated"
    ERROR = "error"
    UNAUTHORIZED = "unauthorized"


STATUS_CODES = {
    OutcomeStatus.SUCCESS: 200,
    OutcomeStatus.MODERATED: 200,
    OutcomeStatus.ERROR: 500,
    OutcomeStatus.UNAUTHORIZED: 401,
}


@dataclass(frozen=True)
class PipelineOutcome:
    """Terminal state of one pipeline run.

    Only the fields relevant to ``status`` are populated: ``image`` and
    ``stored`` on success, ``verdict`` on moderation, ``details`` on error.
    """

    status: OutcomeStatus
    prompt: str
    message: str = ""
    image: GeneratedImage | None = None
    stored: StoredImage | None = None
    verdict: ModerationVerdict | None = None
    details: str = ""

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.status]
