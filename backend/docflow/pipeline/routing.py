"""
Workflow configuration and the queue router.

WorkflowConfig is built once per process from settings and shared by
reference.  QueueRouter maps an envelope's ``current_step`` to its input
queue and sends the serialized envelope there.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from docflow.core.config import Settings
from docflow.core.constants import ALERT_NO_QUEUE, StepName, step_task_name
from docflow.core.logging import get_logger
from docflow.pipeline.alerts import AlertPublisher
from docflow.pipeline.envelope import WorkflowEnvelope, normalize_steps
from docflow.pipeline.transport import QueueTransport

logger = get_logger(__name__)


DEFAULT_STEP_QUEUES: dict[str, str] = {
    StepName.TRANSLATION: "translation-in",
    StepName.DOCUMENT_ANALYSIS: "documentanalysis-in",
    StepName.IMAGE_ANALYSIS: "imageanalysis-in",
    StepName.IMAGE_DESCRIBE: "imagedescribe-in",
    StepName.PII: "pii-in",
    StepName.PDF_IMAGES: "pdfimages-in",
}


# ═══════════════════════════════════════════════════════════
#  WorkflowConfig
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WorkflowConfig:
    """Immutable per-process workflow settings."""

    step_queues: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(
            {str(k): v for k, v in DEFAULT_STEP_QUEUES.items()}
        )
    )
    default_steps: tuple[str, ...] = ()
    alert_queue: str = "workflow-alerts"
    operation_queue: str = "documentanalysis-operations"
    poll_delay_seconds: int = 30
    initial_delay_seconds: int = 10
    input_container: str = "input"
    output_container: str = "output"
    detection_max_chars: int = 5120
    translator_max_chars: int = 10000
    pii_max_chars: int = 5120
    source_language: str = ""
    target_language: str = "en"
    pii_language: str = "en"
    drop_first_line: bool = True
    default_document_model: str = "prebuilt-layout"

    @classmethod
    def from_settings(cls, settings: Settings) -> WorkflowConfig:
        queues = {str(k): v for k, v in DEFAULT_STEP_QUEUES.items()}
        for step, queue in settings.STEP_QUEUES.items():
            name = step.strip().lower()
            if name and queue:
                queues[name] = queue.strip()

        return cls(
            step_queues=MappingProxyType(queues),
            default_steps=normalize_steps(settings.DEFAULT_WORKFLOW_STEPS),
            alert_queue=settings.ALERT_QUEUE_NAME,
            operation_queue=settings.OPERATION_QUEUE_NAME,
            poll_delay_seconds=settings.OPERATION_POLL_DELAY_SECONDS,
            initial_delay_seconds=settings.OPERATION_INITIAL_DELAY_SECONDS,
            input_container=settings.INPUT_CONTAINER,
            output_container=settings.OUTPUT_CONTAINER,
            detection_max_chars=settings.LANGUAGE_DETECTION_MAX_CHARS,
            translator_max_chars=settings.TRANSLATOR_MAX_CHARS,
            pii_max_chars=settings.PII_MAX_CHARS,
            source_language=settings.TRANSLATION_SOURCE_LANGUAGE.strip().lower(),
            target_language=settings.TRANSLATION_TARGET_LANGUAGE.strip().lower(),
            pii_language=settings.PII_LANGUAGE.strip().lower(),
            drop_first_line=settings.TRANSLATION_DROP_FIRST_LINE,
            default_document_model=settings.DOCUMENT_ANALYSIS_DEFAULT_MODEL,
        )

    def queue_for(self, step: str) -> str | None:
        return self.step_queues.get(step.strip().lower())


# ═══════════════════════════════════════════════════════════
#  QueueRouter
# ═══════════════════════════════════════════════════════════

class QueueRouter:
    """
    Dispatches envelopes to the input queue of their current step.

    ``route`` returns False instead of raising for anything that is a
    configuration problem (failed envelope, unknown step); retrying those
    cannot help.  Transport errors still propagate.
    """

    def __init__(
        self,
        config: WorkflowConfig,
        transport: QueueTransport,
        alerts: AlertPublisher,
    ) -> None:
        self.config = config
        self._transport = transport
        self._alerts = alerts

    def route(self, envelope: WorkflowEnvelope) -> bool:
        log = logger.bind(**envelope.log_context())

        if envelope.is_failed:
            log.warning("Refusing to route failed envelope", failed_step=envelope.failure.step)
            return False

        queue = self.config.queue_for(envelope.current_step)
        if not queue:
            reason = f"{ALERT_NO_QUEUE} '{envelope.current_step}'"
            log.error("No queue configured for step")
            self._alerts.publish(
                envelope.blob_path,
                envelope.reference_id,
                reason,
                failed_step=envelope.current_step,
            )
            return False

        self._transport.send(
            queue,
            step_task_name(envelope.current_step),
            envelope.to_json(),
        )
        log.info("Envelope routed", queue=queue)
        return True
