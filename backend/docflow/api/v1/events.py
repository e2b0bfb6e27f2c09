"""
Storage event endpoints — the HTTP face of trigger intake.

Object-store failures surface as 503 so the notifier redelivers.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from docflow.api.deps import get_intake
from docflow.api.schemas.events import IntakeResponse, ObjectCreatedRequest, S3NotificationRequest
from docflow.pipeline.errors import StorageError
from docflow.pipeline.intake import ObjectCreatedNotification, TriggerIntake

router = APIRouter(prefix="/events", tags=["Events"])


async def _handle(intake: TriggerIntake, notification: ObjectCreatedNotification) -> IntakeResponse:
    try:
        result = await intake.handle(notification)
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Object store unavailable: {exc}",
        ) from exc
    return IntakeResponse(**result.to_dict())


# ─── Generic event ────────────────────────────────────────
@router.post("/object-created", response_model=IntakeResponse)
async def object_created(
    body: ObjectCreatedRequest,
    intake: TriggerIntake = Depends(get_intake),
):
    """Start a workflow for a newly created object."""
    notification = ObjectCreatedNotification(
        event_type=body.event_type,
        url=body.url,
        metadata=body.metadata,
    )
    return await _handle(intake, notification)


# ─── S3 / MinIO bucket notification ───────────────────────
@router.post("/s3", response_model=list[IntakeResponse])
async def s3_notification(
    body: S3NotificationRequest,
    intake: TriggerIntake = Depends(get_intake),
):
    """Start one workflow per created object in the notification."""
    return [
        await _handle(intake, notification)
        for notification in ObjectCreatedNotification.from_s3_records(body.model_dump())
    ]
