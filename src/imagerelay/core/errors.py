"""Exception hierarchy for the image relay pipeline.

Only genuine failures are exceptions.  An authorization mismatch and a
moderation rejection are ordinary outcomes handled by the pipeline, so they
have no exception class here.
"""

from __future__ import annotations

from imagerelay.core.results import FailureKind, ProviderFailure

# Upstream reasons are echoed to clients in truncated form only.
MAX_REASON_LENGTH = 200


def truncate(text: str, limit: int = MAX_REASON_LENGTH) -> str:
    """Shorten *text* to *limit* characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


class ImageRelayError(Exception):
    """Base class for all pipeline failures.

    Attributes:
        message: Client-facing summary of the failure.
        details: Redacted diagnostic text safe to return to the caller.
    """

    def __init__(self, message: str, details: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ModerationError(ImageRelayError):
    """The moderation call itself failed (network, HTTP or payload error)."""


class UploadError(ImageRelayError):
    """Uploading the generated image to object storage failed."""


class ProviderChainError(ImageRelayError):
    """Every provider attempt failed.

    The chain's kind is the kind of the last attempt, since the secondary
    provider is always tried last.
    """

    MESSAGES = {
        FailureKind.NO_CANDIDATES: "No image candidates found",
        FailureKind.NO_IMAGE_PART: "No image part found in Gemini response",
    }
    DEFAULT_MESSAGE = "Image generation failed: no provider succeeded"

    def __init__(self, failures: list[ProviderFailure]) -> None:
        self.failures = failures
        self.kind = failures[-1].kind if failures else FailureKind.NOT_CONFIGURED
        details = "; ".join(
            f"{failure.provider}: {truncate(failure.reason)}" for failure in failures
        )
        super().__init__(self.MESSAGES.get(self.kind, self.DEFAULT_MESSAGE), details)
