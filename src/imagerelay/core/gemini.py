"""Thin async client for the Gemini ``generateContent`` REST endpoint.

Both the moderator (text model) and the fallback image provider (image
model) talk to the same endpoint, so the request assembly and the error
normalisation live here.  Responses are returned as plain dictionaries; the
helpers at the bottom of the module pick candidates and parts out of them.

The API key travels in the ``x-goog-api-key`` header rather than the query
string so it never appears in logged URLs.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class GeminiError(Exception):
    """A ``generateContent`` call failed before yielding a JSON payload.

    Attributes:
        status_code: HTTP status, or ``None`` for transport failures.
        body: Raw response body (server-side logging only).
    """

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class GeminiClient:
    """Issue ``generateContent`` requests against the Generative Language API."""

    def __init__(self, http_client: httpx.AsyncClient, api_key: str, api_base: str) -> None:
        self._http = http_client
        self._api_key = api_key
        self._api_base = api_base.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def generate_content(
        self,
        model: str,
        parts: list[dict[str, Any]],
        response_modalities: list[str] | None = None,
    ) -> dict[str, Any]:
        """Send one user turn made of *parts* to *model*.

        Args:
            model: Model name, e.g. ``"gemini-1.5-flash"``.
            parts: Content parts, e.g. ``[{"text": "..."}]``.
            response_modalities: Optional ``generationConfig.responseModalities``.

        Returns:
            The decoded JSON response.

        Raises:
            GeminiError: On missing key, transport failure, non-2xx status or
                a body that is not a JSON object.
        """
        if not self._api_key:
            raise GeminiError("Gemini API key is not configured")

        body: dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if response_modalities:
            body["generationConfig"] = {"responseModalities": response_modalities}

        url = f"{self._api_base}/models/{model}:generateContent"
        try:
            response = await self._http.post(
                url,
                json=body,
                headers={"x-goog-api-key": self._api_key},
            )
        except httpx.HTTPError as exc:
            raise GeminiError(f"Gemini request failed: {exc!r}") from exc

        if response.status_code >= 400:
            logger.warning(
                "Gemini %s returned %s: %s", model, response.status_code, response.text
            )
            raise GeminiError(
                f"Gemini returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise GeminiError(
                "Gemini returned a malformed payload",
                status_code=response.status_code,
                body=response.text,
            ) from exc

        if not isinstance(payload, dict):
            raise GeminiError(
                "Gemini returned a malformed payload",
                status_code=response.status_code,
                body=response.text,
            )
        return payload


def _malformed(payload: dict[str, Any]) -> GeminiError:
    return GeminiError("Gemini returned a malformed payload", body=str(payload))


def first_candidate_parts(payload: dict[str, Any]) -> list[dict[str, Any]] | None:
    """Return the parts of the first candidate, or ``None`` if there are no candidates.

    Raises:
        GeminiError: If the candidates do not have the documented shape.
    """
    candidates = payload.get("candidates")
    if not candidates:
        return None
    if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
        raise _malformed(payload)
    content = candidates[0].get("content") or {}
    if not isinstance(content, dict):
        raise _malformed(payload)
    parts = content.get("parts") or []
    if not isinstance(parts, list):
        raise _malformed(payload)
    return [part for part in parts if isinstance(part, dict)]


def prompt_feedback(payload: dict[str, Any]) -> dict[str, Any] | None:
    feedback = payload.get("promptFeedback")
    return feedback if isinstance(feedback, dict) else None


def inline_data(part: dict[str, Any]) -> dict[str, Any] | None:
    """Return a part's inline payload, accepting camelCase and snake_case keys."""
    data = part.get("inlineData") or part.get("inline_data")
    return data if isinstance(data, dict) else None


def inline_mime_type(data: dict[str, Any]) -> str:
    mime_type = data.get("mimeType") or data.get("mime_type")
    return mime_type if isinstance(mime_type, str) else ""


def candidate_text(payload: dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate."""
    parts = first_candidate_parts(payload) or []
    return "".join(part["text"] for part in parts if isinstance(part.get("text"), str))
