"""Prompt moderation through a Gemini text model.

The model is given a fixed safety instruction plus the raw prompt and asked to
answer ``SAFE`` or ``UNSAFE <reason>``.  Interpretation rules:

- a reply starting with ``UNSAFE`` (any case) rejects the prompt; the rest of
  the reply, minus leading separators, is the reason
- any other non-empty reply accepts the prompt
- if Gemini blocks the prompt itself (no candidates plus a ``blockReason``),
  the prompt is rejected with that block reason

A failed call raises :class:`~imagerelay.core.errors.ModerationError`.  Whether
that fails the request is decided by the pipeline, not here.
"""

from __future__ import annotations

import logging

from imagerelay.core.errors import ModerationError
from imagerelay.core.gemini import (
    GeminiClient,
    GeminiError,
    candidate_text,
    first_candidate_parts,
    prompt_feedback,
)
from imagerelay.core.results import ModerationVerdict

logger = logging.getLogger(__name__)

MODERATION_INSTRUCTION = (
    "You are a content safety expert. Analyze the following user prompt for any content "
    "that could be harmful, sexually explicit, hateful, or promote violence, illegal "
    "activities, or self-harm. Respond ONLY with 'SAFE' if the prompt is acceptable, or "
    "'UNSAFE' followed by a brief reason if it is not. Focus on the user's *intent* to "
    "generate an image."
)

UNSAFE_TOKEN = "UNSAFE"
DEFAULT_UNSAFE_REASON = "Content deemed unsafe."


def parse_verdict(text: str, feedback=None) -> ModerationVerdict:
    """Interpret a moderation reply.

    Args:
        text: Raw reply text from the model.
        feedback: Provider prompt-feedback block to attach to the verdict.

    Returns:
        The resulting :class:`ModerationVerdict`.
    """
    text = text.strip()
    if not text.upper().startswith(UNSAFE_TOKEN):
        return ModerationVerdict(safe=True, feedback=feedback)

    reason = text[len(UNSAFE_TOKEN) :].lstrip(" \t\r\n:-.").strip()
    return ModerationVerdict(safe=False, reason=reason or DEFAULT_UNSAFE_REASON, feedback=feedback)


class Moderator:
    """Classify prompts as safe or unsafe."""

    def __init__(self, client: GeminiClient, model: str) -> None:
        self._client = client
        self._model = model

    async def check(self, prompt: str) -> ModerationVerdict:
        """Moderate *prompt*.

        Raises:
            ModerationError: If the moderation call fails or returns nothing usable.
        """
        try:
            payload = await self._client.generate_content(
                self._model,
                [{"text": MODERATION_INSTRUCTION}, {"text": prompt}],
            )
            parts = first_candidate_parts(payload)
            text = candidate_text(payload) if parts is not None else ""
        except GeminiError as exc:
            raise ModerationError("Moderation check failed", str(exc)) from exc

        feedback = prompt_feedback(payload)

        if parts is None:
            block_reason = (feedback or {}).get("blockReason")
            if block_reason:
                logger.info("Moderation model blocked prompt outright: %s", block_reason)
                return ModerationVerdict(
                    safe=False,
                    reason=f"Prompt blocked by safety filter ({block_reason}).",
                    feedback=feedback,
                )
            raise ModerationError(
                "Moderation check failed", "moderation model returned no candidates"
            )

        if not text.strip():
            raise ModerationError(
                "Moderation check failed", "moderation model returned an empty reply"
            )

        verdict = parse_verdict(text, feedback)
        if not verdict.safe:
            logger.info("Prompt rejected by moderation: %s", verdict.reason)
        return verdict
