"""Map pipeline outcomes to HTTP responses.

========  ============  =====================================
Status    HTTP status   Body model
========  ============  =====================================
success   200           :class:`SuccessResponse`
moderated 200           :class:`ModeratedResponse`
error     500           :class:`ErrorResponse`
unauth.   401           :class:`UnauthorizedResponse`
========  ============  =====================================
"""

from __future__ import annotations

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from imagerelay.api.models import (
    ErrorResponse,
    GeneratedImageInfo,
    ModeratedResponse,
    SuccessResponse,
    UnauthorizedResponse,
)
from imagerelay.core.results import OutcomeStatus, PipelineOutcome


def build_body(outcome: PipelineOutcome) -> BaseModel:
    """Return the response model matching *outcome*'s status."""
    if outcome.status is OutcomeStatus.UNAUTHORIZED:
        return UnauthorizedResponse()

    if outcome.status is OutcomeStatus.MODERATED:
        return ModeratedResponse(
            message=outcome.message,
            prompt=outcome.prompt,
            moderation_feedback=outcome.verdict.feedback if outcome.verdict else None,
        )

    if outcome.status is OutcomeStatus.SUCCESS and outcome.image and outcome.stored:
        return SuccessResponse(
            image_url=outcome.stored.url,
            message=outcome.image.caption,
            prompt=outcome.prompt,
            generated_image=GeneratedImageInfo(
                mime_type=outcome.image.mime_type,
                caption=outcome.image.caption,
                image_url=outcome.stored.url,
            ),
        )

    return ErrorResponse(
        message=outcome.message or "Internal server error",
        prompt=outcome.prompt,
        details=outcome.details,
    )


def compose_response(outcome: PipelineOutcome) -> JSONResponse:
    """Serialise *outcome* with camelCase keys and its HTTP status code."""
    body = build_body(outcome)
    status_code = 500 if isinstance(body, ErrorResponse) else outcome.status_code
    return JSONResponse(
        content=body.model_dump(mode="json", by_alias=True), status_code=status_code
    )
