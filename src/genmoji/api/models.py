"""Pydantic request models and the response envelope for the Genmoji API.

Every endpoint answers with the same JSON envelope::

    {"success": true, "data": ...}
    {"success": false, "error": "Emoji not found"}

Request bodies use snake_case field names.  Fields that older clients send
in camelCase (``imageUrl``, ``batchSize``, ``lastProcessedId``) are accepted
under both spellings.

Models
------
GenerateRequest
    Payload for ``POST /genmoji/generate``.
LikeRequest, VoteRequest, ActionRequest
    Payloads for the ``/action`` endpoints.
ReportStatusRequest
    Payload for ``POST /action/reports/{report_id}/status``.
AnalyzeRequest, BatchAnalyzeRequest, ProcessLocalRequest
    Payloads for the ``/analysis`` endpoints.
BatchTranslateRequest
    Payload for ``POST /translation/batch/{locale}``.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator

from genmoji.core.stats import ActionType, ReportReason, ReportStatus

# Analysis batch sizes are clamped into this range rather than rejected.
MIN_BATCH_SIZE = 1
DEFAULT_BATCH_SIZE = 50
MAX_BATCH_SIZE = 200

BATCH_LIMITS = {
    "min_batch_size": MIN_BATCH_SIZE,
    "default_batch_size": DEFAULT_BATCH_SIZE,
    "max_batch_size": MAX_BATCH_SIZE,
}


def clamp_batch_size(value: int | None) -> int:
    """Clamp ``value`` into ``[MIN_BATCH_SIZE, MAX_BATCH_SIZE]``; ``None`` means the default."""
    if value is None:
        return DEFAULT_BATCH_SIZE
    return max(MIN_BATCH_SIZE, min(MAX_BATCH_SIZE, value))


def success(data: Any = None) -> dict:
    """Build a successful response envelope."""
    if data is None:
        return {"success": True}
    return {"success": True, "data": data}


def failure(error: str) -> dict:
    """Build an error response envelope."""
    return {"success": False, "error": error}


class GenerateRequest(BaseModel):
    """Request body for ``POST /genmoji/generate``.

    Attributes:
        prompt: Prompt in any language.  Trimmed; must be non-empty and at
            most ``GENMOJI_MAX_PROMPT_LENGTH`` characters.  Length is checked
            by the generator so the error message matches other clients.
        locale: Locale the emoji is created in.
        image: Optional reference image (URL or data URI).
        model: Generation style.
    """

    prompt: str | None = Field(default=None, description="Prompt in any language")
    locale: str = Field(default="en", description="Locale the emoji is created in")
    image: str | None = Field(default=None, description="Optional reference image")
    model: Literal["gemoji", "sticker", "mascot"] = Field(
        default="gemoji",
        description="Generation style",
    )


class LikeRequest(BaseModel):
    locale: str = Field(default="en")
    user_id: str | None = Field(default=None, description="Signed-in user, if any")


class VoteRequest(BaseModel):
    vote_type: Literal["up", "down"] = Field(description="Up or down vote")
    locale: str = Field(default="en")


class ActionDetails(BaseModel):
    """Optional details attached to an action.

    ``score`` is used by ``rate`` actions; ``reason``, ``description`` and
    ``type`` by ``report`` actions.
    """

    score: int | None = Field(default=None, ge=1, le=5)
    reason: ReportReason | None = None
    description: str | None = Field(default=None, max_length=1000)
    type: Literal["link", "image", "prompt"] | None = None


class ActionRequest(BaseModel):
    """Request body for ``POST /action/{slug}``."""

    action_type: ActionType = Field(description="Action to record")
    locale: str = Field(default="en")
    user_id: str | None = None
    details: ActionDetails | None = None


class ReportStatusRequest(BaseModel):
    status: ReportStatus


class AnalyzeRequest(BaseModel):
    image_url: str = Field(
        min_length=1,
        validation_alias=AliasChoices("image_url", "imageUrl"),
        description="Publicly reachable image URL",
    )


class BatchAnalyzeRequest(BaseModel):
    """Request body for ``POST /analysis/batch``.

    ``batch_size`` must be an integer; out-of-range values are clamped
    rather than rejected.  The request is rejected when more URLs are sent
    than the clamped size allows.
    """

    image_urls: list[str] = Field(
        min_length=1,
        validation_alias=AliasChoices("image_urls", "imageUrls"),
    )
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        validation_alias=AliasChoices("batch_size", "batchSize"),
    )

    @field_validator("batch_size")
    @classmethod
    def _clamp(cls, value: int) -> int:
        return clamp_batch_size(value)


class ProcessLocalRequest(BaseModel):
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        validation_alias=AliasChoices("batch_size", "batchSize"),
    )
    last_processed_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("last_processed_id", "lastProcessedId"),
    )
    locale: str = Field(default="en", description="Locale the analysis is stored under")

    @field_validator("batch_size")
    @classmethod
    def _clamp(cls, value: int) -> int:
        return clamp_batch_size(value)


class BatchTranslateRequest(BaseModel):
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        ge=1,
        le=MAX_BATCH_SIZE,
        validation_alias=AliasChoices("batch_size", "batchSize"),
    )
    last_processed_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("last_processed_id", "lastProcessedId"),
    )
