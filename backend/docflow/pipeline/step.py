"""
WorkflowStep — abstract base class for all workflow steps.

Every step consumed from a queue inherits from this class.  The executor
parses the envelope, calls execute() and turns the returned StepResult
into the next transition (advance, wait for the poller, stop).  Steps
only implement the business logic plus the output contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from docflow.core.constants import StepOutcome
from docflow.core.logging import get_logger
from docflow.pipeline.artifacts import (
    build_output_document,
    original_filename,
    output_path,
)
from docflow.pipeline.envelope import WorkflowEnvelope
from docflow.pipeline.routing import WorkflowConfig

if TYPE_CHECKING:
    from docflow.storage.blob_store import BlobStore

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════
#  StepResult
# ═══════════════════════════════════════════════════════════

@dataclass
class StepResult:
    """Outcome of a single step execution."""

    step_name: str
    outcome: StepOutcome
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_name": self.step_name,
            "outcome": self.outcome,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "metadata": self.metadata,
        }


# ═══════════════════════════════════════════════════════════
#  WorkflowStep
# ═══════════════════════════════════════════════════════════

class WorkflowStep(ABC):
    """
    Base class for every workflow step.

    Subclasses MUST implement:
        - name (str)          — step identifier used in ``workflow_steps``
        - description (str)   — human-readable label for logs
        - execute(envelope)   — the actual business logic

    A step that returns ``advance`` must have recorded its output with
    write_output() (or envelope.record_output()).  Raise a PipelineError
    subclass on failure; the executor fails the workflow and alerts.
    """

    name: str = "unnamed_step"
    description: str = "No description"

    def __init__(self, config: WorkflowConfig, store: BlobStore) -> None:
        self.config = config
        self.store = store

    @abstractmethod
    async def execute(self, envelope: WorkflowEnvelope) -> StepResult:
        """Run the step's logic.  Must return a StepResult."""
        ...

    # ─── Output contract ───────────────────────────────

    async def write_output(
        self,
        envelope: WorkflowEnvelope,
        *,
        folder: str,
        suffix: str,
        processor: str,
        main_content: str,
        message: Any,
        origin_file: str,
    ) -> str:
        """
        Write the standard output document and record its location.

        The file is named after the workflow's original upload, so a step
        that reads a previous step's artifact still produces
        ``{original}{suffix}``.
        """
        original = self.original_filename(envelope)
        location = output_path(self.config.output_container, folder, f"{original}{suffix}")
        document = build_output_document(
            reference_id=envelope.reference_id,
            processor=processor,
            main_content=main_content,
            message=message,
            original_filename=original,
            origin_file=origin_file,
            folder=folder,
        )
        await self.store.write_json(location, document)
        envelope.record_output(self.name, location)

        logger.info(
            "Step output written",
            reference_id=envelope.reference_id,
            step=self.name,
            location=location,
        )
        return location

    @staticmethod
    def original_filename(envelope: WorkflowEnvelope) -> str:
        return original_filename(envelope.blob_path)

    # ─── Helpers available to all steps ────────────────

    def _result(
        self,
        outcome: StepOutcome,
        started_at: datetime,
        metadata: dict[str, Any] | None = None,
    ) -> StepResult:
        now = datetime.now(timezone.utc)
        duration_ms = int((now - started_at).total_seconds() * 1000)
        return StepResult(
            step_name=self.name,
            outcome=outcome,
            started_at=started_at,
            completed_at=now,
            duration_ms=duration_ms,
            metadata=metadata or {},
        )

    def _advance(self, started_at: datetime, metadata: dict[str, Any] | None = None) -> StepResult:
        """Output written; the controller moves on to the next step."""
        return self._result(StepOutcome.ADVANCE, started_at, metadata)

    def _suspend(self, started_at: datetime, metadata: dict[str, Any] | None = None) -> StepResult:
        """A long-running operation was handed to the poller."""
        return self._result(StepOutcome.SUSPENDED, started_at, metadata)

    def _fan_out(self, started_at: datetime, metadata: dict[str, Any] | None = None) -> StepResult:
        """Sibling envelopes were dispatched; the parent stops here."""
        return self._result(StepOutcome.FANNED_OUT, started_at, metadata)

    def _halt(self, started_at: datetime, metadata: dict[str, Any] | None = None) -> StepResult:
        """Nothing to pass on (already alerted); the workflow stops."""
        return self._result(StepOutcome.HALTED, started_at, metadata)

    def _now(self) -> datetime:
        """UTC-aware now."""
        return datetime.now(timezone.utc)
