"""Shared constants and enums used across the application."""

from enum import StrEnum


class StepName(StrEnum):
    """Processing steps that can appear in a ``workflow_steps`` list."""

    TRANSLATION = "translation"
    DOCUMENT_ANALYSIS = "documentanalysis"
    IMAGE_ANALYSIS = "imageanalysis"
    IMAGE_DESCRIBE = "imagedescribe"
    PII = "pii"
    PDF_IMAGES = "pdfimages"


class StepOutcome(StrEnum):
    """What the executor does after a step returns."""

    ADVANCE = "advance"            # output written, move to the next step
    SUSPENDED = "suspended"        # long-running operation handed to the poller
    FANNED_OUT = "fanned_out"      # sibling envelopes already dispatched
    HALTED = "halted"              # alerted partial success, workflow stops


class PollOutcome(StrEnum):
    """Result of one poll of a long-running operation."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REJECTED = "rejected"


class IntakeStatus(StrEnum):
    """Result of handling one object-created notification."""

    DISPATCHED = "dispatched"
    IGNORED = "ignored"
    REJECTED = "rejected"


# ── Metadata keys ────────────────────────────────────────
META_REFERENCE_ID = "reference_id"
META_WORKFLOW_STEPS = "workflow_steps"
META_DOCUMENT_MODEL = "document-model"
META_LAST_OUTPUT = "last-output"
META_SOURCE_BLOB = "source-blob"
META_SOURCE_PAGE = "source-page"
META_SOURCE_INDEX = "source-index"

UNKNOWN_REFERENCE = "unknown"

# ── Alert reasons ────────────────────────────────────────
ALERT_MISSING_REFERENCE = "missing correlation id"
ALERT_STEPS_MISSING = "workflow steps missing"
ALERT_NO_QUEUE = "no queue configured for step"
ALERT_UNPARSEABLE = "unparseable queue message"
ALERT_NO_IMAGES = "no images extracted"
ALERT_NO_OPERATION_RESULT = "operation completed without a result"

# ── Celery task names ────────────────────────────────────
STEP_TASK_PREFIX = "docflow.steps."
POLL_TASK_NAME = "docflow.operations.poll"
ALERT_TASK_NAME = "docflow.alerts.record"

# Event types that count as "object created"
CREATED_EVENT_MARKERS = ("blobcreated", "objectcreated")

# Output document content type
JSON_CONTENT_TYPE = "application/json"


def step_task_name(step: str) -> str:
    """Celery task name that consumes a step's queue."""
    return f"{STEP_TASK_PREFIX}{step}"
