"""Storage event request/response schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from docflow.core.constants import IntakeStatus


class ObjectCreatedRequest(BaseModel):
    """Generic object-created event (e.g. forwarded from an event grid)."""

    event_type: str = Field(..., min_length=1, max_length=256)
    url: str = Field(..., min_length=1, max_length=2048)
    metadata: dict[str, str] = Field(default_factory=dict)


class S3NotificationRequest(BaseModel):
    """S3 / MinIO bucket notification body."""

    Records: list[dict[str, Any]] = Field(default_factory=list)

    model_config = {"extra": "allow"}


class IntakeResponse(BaseModel):
    """Outcome of handling one event."""

    status: IntakeStatus
    reference_id: str | None = None
    current_step: str | None = None
    reason: str | None = None
