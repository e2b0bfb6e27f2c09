"""
TriggerIntake — turns "object created" notifications into workflows.

Flow:
    1. Ignore anything that is not a created event in the intake container
    2. Resolve metadata: notification ∪ object tags ∪ object user metadata
    3. Validate ``reference_id`` and the step list (or configured default)
    4. Build the initial envelope and hand it to the router

Handling the same notification twice rebuilds an equivalent envelope, so
notifier redelivery is harmless apart from running the workflow again.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote, unquote_plus, urlsplit

from docflow.core.constants import (
    ALERT_MISSING_REFERENCE,
    ALERT_STEPS_MISSING,
    CREATED_EVENT_MARKERS,
    META_REFERENCE_ID,
    META_WORKFLOW_STEPS,
    IntakeStatus,
)
from docflow.core.logging import get_logger
from docflow.pipeline.alerts import AlertPublisher
from docflow.pipeline.envelope import CaseInsensitiveDict, WorkflowEnvelope, normalize_steps
from docflow.pipeline.errors import IntakeValidationError, StorageError
from docflow.pipeline.routing import QueueRouter, WorkflowConfig
from docflow.storage.blob_store import BlobStore

logger = get_logger(__name__)

_AMZ_META_PREFIX = "x-amz-meta-"


# ═══════════════════════════════════════════════════════════
#  Notification
# ═══════════════════════════════════════════════════════════

@dataclass
class ObjectCreatedNotification:
    """
    One storage event.

    Args:
        event_type: e.g. ``Microsoft.Storage.BlobCreated`` or ``s3:ObjectCreated:Put``.
        url: Object URL (path-style) or a bare ``{container}/{key}`` path.
        metadata: Metadata delivered with the event, if any.
    """

    event_type: str
    url: str
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def is_created(self) -> bool:
        event = self.event_type.lower()
        return any(marker in event for marker in CREATED_EVENT_MARKERS)

    @property
    def blob_path(self) -> str:
        """``{container}/{key}`` of the object the event refers to."""
        parts = urlsplit(self.url)
        path = unquote(parts.path) if parts.scheme else self.url
        return path.strip().lstrip("/")

    @classmethod
    def from_s3_records(cls, body: Mapping[str, Any]) -> Iterator[ObjectCreatedNotification]:
        """Yield one notification per record of an S3/MinIO bucket event."""
        for record in body.get("Records") or []:
            event_name = str(record.get("eventName") or "")
            s3 = record.get("s3") or {}
            bucket = (s3.get("bucket") or {}).get("name") or ""
            obj = s3.get("object") or {}
            key = unquote_plus(str(obj.get("key") or ""))

            metadata: dict[str, str] = {}
            for name, value in (obj.get("userMetadata") or {}).items():
                name = str(name)
                if name.lower().startswith(_AMZ_META_PREFIX):
                    name = name[len(_AMZ_META_PREFIX):]
                metadata[name] = str(value)

            yield cls(
                event_type=event_name if event_name.startswith("s3:") else f"s3:{event_name}",
                url=f"{bucket}/{key}",
                metadata=metadata,
            )


@dataclass
class IntakeResult:
    status: IntakeStatus
    envelope: WorkflowEnvelope | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "reference_id": self.envelope.reference_id if self.envelope else None,
            "current_step": self.envelope.current_step if self.envelope else None,
            "reason": self.reason,
        }


# ═══════════════════════════════════════════════════════════
#  TriggerIntake
# ═══════════════════════════════════════════════════════════

class TriggerIntake:

    def __init__(
        self,
        config: WorkflowConfig,
        store: BlobStore,
        router: QueueRouter,
        alerts: AlertPublisher,
    ) -> None:
        self.config = config
        self.store = store
        self.router = router
        self.alerts = alerts

    async def handle(self, notification: ObjectCreatedNotification) -> IntakeResult:
        log = logger.bind(event_type=notification.event_type, url=notification.url)

        if not notification.is_created:
            log.info("Ignoring non-created event")
            return IntakeResult(IntakeStatus.IGNORED, reason="not a created event")

        blob_path = notification.blob_path
        container = blob_path.partition("/")[0]
        if container != self.config.input_container or not blob_path.partition("/")[2]:
            log.info("Ignoring object outside the intake container", blob_path=blob_path)
            return IntakeResult(IntakeStatus.IGNORED, reason="not in intake container")

        log = log.bind(blob_path=blob_path)
        metadata = await self._resolve_metadata(notification, blob_path)

        try:
            reference_id, steps = self._validate(metadata)
        except IntakeValidationError as exc:
            log.error("Rejecting object", reason=str(exc))
            self.alerts.publish(blob_path, exc.reference_id, str(exc))
            return IntakeResult(IntakeStatus.REJECTED, reason=str(exc))

        envelope = WorkflowEnvelope.start(reference_id, blob_path, steps, metadata)
        if not self.router.route(envelope):
            return IntakeResult(IntakeStatus.REJECTED, envelope, reason="dispatch refused")

        log.info("Workflow started", reference_id=reference_id, steps=list(steps))
        return IntakeResult(IntakeStatus.DISPATCHED, envelope)

    async def _resolve_metadata(
        self,
        notification: ObjectCreatedNotification,
        blob_path: str,
    ) -> CaseInsensitiveDict:
        metadata = CaseInsensitiveDict(notification.metadata)
        try:
            metadata.update(await self.store.get_tags(blob_path))
            metadata.update(await self.store.get_metadata(blob_path))
        except StorageError as exc:
            logger.error("Could not read object metadata", blob_path=blob_path, error=str(exc))
            self.alerts.publish(
                blob_path,
                metadata.get(META_REFERENCE_ID),
                f"object metadata unavailable: {exc}",
            )
            raise
        return metadata

    def _validate(self, metadata: CaseInsensitiveDict) -> tuple[str, tuple[str, ...]]:
        reference_id = (metadata.get(META_REFERENCE_ID) or "").strip()
        if not reference_id:
            raise IntakeValidationError(ALERT_MISSING_REFERENCE)

        steps = normalize_steps(metadata.get(META_WORKFLOW_STEPS)) or self.config.default_steps
        if not steps:
            raise IntakeValidationError(ALERT_STEPS_MISSING, reference_id=reference_id)
        return reference_id, steps
