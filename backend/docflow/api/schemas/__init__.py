"""API schema package."""

from docflow.api.schemas.events import IntakeResponse, ObjectCreatedRequest, S3NotificationRequest

__all__ = ["ObjectCreatedRequest", "S3NotificationRequest", "IntakeResponse"]
