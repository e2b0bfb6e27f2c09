"""
WorkflowEnvelope — the workflow state carried inside every queue message.

There is no workflow database: the in-flight queue message IS the state.
Each step receives an envelope, does its work, records where its output
went in ``metadata`` and hands the envelope back to the controller, which
rotates ``current_step`` / ``remaining_steps`` and dispatches it again.

Because delivery is at-least-once, replaying any message must be safe:
envelopes are plain data, and every step writes to deterministic keys.

Also defined here:
    - AsyncOperationHandle: envelope + external operation id, carried
      through the polling queue while a long-running operation runs.
    - ExtractedArtifact: one image pulled out of a PDF during fan-out.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from docflow.core.constants import META_LAST_OUTPUT
from docflow.pipeline.errors import EnvelopeParseError


# ═══════════════════════════════════════════════════════════
#  Step list normalization
# ═══════════════════════════════════════════════════════════

def normalize_steps(steps: str | Iterable[str] | None) -> tuple[str, ...]:
    """
    Trim, lowercase and de-duplicate step names, keeping first-seen order.

    Accepts either a comma-separated string (the ``workflow_steps``
    metadata format) or any iterable of names.  Blank entries are dropped.
    """
    if steps is None:
        return ()
    if isinstance(steps, str):
        steps = steps.split(",")

    seen: dict[str, None] = {}
    for raw in steps:
        name = (raw or "").strip().lower()
        if name and name not in seen:
            seen[name] = None
    return tuple(seen)


# ═══════════════════════════════════════════════════════════
#  Case-insensitive metadata map
# ═══════════════════════════════════════════════════════════

class CaseInsensitiveDict(MutableMapping[str, str]):
    """
    str → str mapping with case-insensitive keys.

    Keys keep the spelling they were last written with (so serialized
    output stays readable) but lookups, membership and equality ignore case.
    Object-store metadata arrives in whatever case the uploader used.
    """

    def __init__(self, data: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None) -> None:
        self._store: dict[str, tuple[str, str]] = {}
        if data is not None:
            self.update(data)

    def __setitem__(self, key: str, value: Any) -> None:
        self._store[key.lower()] = (key, "" if value is None else str(value))

    def __getitem__(self, key: str) -> str:
        return self._store[key.lower()][1]

    def __delitem__(self, key: str) -> None:
        del self._store[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._store

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        other_ci = other if isinstance(other, CaseInsensitiveDict) else CaseInsensitiveDict(other)
        return dict(self.lower_items()) == dict(other_ci.lower_items())

    def lower_items(self) -> Iterator[tuple[str, str]]:
        return ((lower, pair[1]) for lower, pair in self._store.items())

    def copy(self) -> CaseInsensitiveDict:
        return CaseInsensitiveDict(self.to_dict())

    def to_dict(self) -> dict[str, str]:
        return {original: value for original, value in self._store.values()}

    def __repr__(self) -> str:
        return f"CaseInsensitiveDict({self.to_dict()!r})"


# ═══════════════════════════════════════════════════════════
#  FailureInfo
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FailureInfo:
    """Terminal failure stamped on an envelope by the controller."""

    step: str
    error: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, str]:
        return {
            "step": self.step,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FailureInfo:
        return cls(
            step=str(data["step"]),
            error=str(data["error"]),
            timestamp=datetime.fromisoformat(str(data["timestamp"])),
        )


# ═══════════════════════════════════════════════════════════
#  WorkflowEnvelope
# ═══════════════════════════════════════════════════════════

@dataclass
class WorkflowEnvelope:
    """
    State of one workflow instance.

    Args:
        reference_id: External correlation id (required, non-empty).
        blob_path: ``{container}/{key}`` of the object the current step acts on.
        current_step: Name of the step about to run.
        remaining_steps: Steps still pending after ``current_step``.
        metadata: Open extension map: output locations and ingestion tags.
        failure: Set once by the controller; the envelope is then terminal.
    """

    reference_id: str
    blob_path: str
    current_step: str
    remaining_steps: tuple[str, ...] = ()
    metadata: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    failure: FailureInfo | None = None

    def __post_init__(self) -> None:
        self.reference_id = (self.reference_id or "").strip()
        if not self.reference_id:
            raise ValueError("reference_id is required")
        if not self.current_step:
            raise ValueError("current_step is required while in flight")

        self.remaining_steps = tuple(self.remaining_steps)
        if self.current_step in self.remaining_steps:
            raise ValueError(
                f"remaining_steps repeats current step '{self.current_step}'"
            )

        if not isinstance(self.metadata, CaseInsensitiveDict):
            self.metadata = CaseInsensitiveDict(self.metadata)

    # ─── Construction ──────────────────────────────────

    @classmethod
    def start(
        cls,
        reference_id: str,
        blob_path: str,
        steps: str | Iterable[str],
        metadata: Mapping[str, Any] | None = None,
    ) -> WorkflowEnvelope:
        """
        Build the initial envelope for a freshly ingested object.

        Raises:
            ValueError: if the normalized step list is empty.
        """
        normalized = normalize_steps(steps)
        if not normalized:
            raise ValueError("workflow has no steps")
        return cls(
            reference_id=reference_id,
            blob_path=blob_path,
            current_step=normalized[0],
            remaining_steps=normalized[1:],
            metadata=CaseInsensitiveDict(metadata or {}),
        )

    def spawn(
        self,
        blob_path: str,
        extra_metadata: Mapping[str, Any] | None = None,
    ) -> WorkflowEnvelope:
        """
        Build an independent sibling envelope for fan-out.

        The sibling starts at the first of this envelope's remaining steps
        and acts on ``blob_path``.  Metadata is copied, never shared.
        """
        if not self.remaining_steps:
            raise ValueError("no remaining steps to spawn a sibling for")

        metadata = self.metadata.copy()
        metadata.update(extra_metadata or {})
        return WorkflowEnvelope(
            reference_id=self.reference_id,
            blob_path=blob_path,
            current_step=self.remaining_steps[0],
            remaining_steps=self.remaining_steps[1:],
            metadata=metadata,
        )

    # ─── State helpers ─────────────────────────────────

    @property
    def is_failed(self) -> bool:
        return self.failure is not None

    @property
    def is_last_step(self) -> bool:
        return not self.remaining_steps

    def rotate(self) -> str:
        """Pop the next remaining step into ``current_step`` and return it."""
        if not self.remaining_steps:
            raise ValueError("no remaining steps")
        self.current_step = self.remaining_steps[0]
        self.remaining_steps = self.remaining_steps[1:]
        return self.current_step

    def record_output(self, step: str, location: str) -> None:
        """Record where ``step`` wrote its output (``{step}-output``)."""
        self.metadata[f"{step}-output"] = location
        self.metadata[META_LAST_OUTPUT] = location

    def output_of(self, step: str) -> str | None:
        return self.metadata.get(f"{step}-output")

    def log_context(self) -> dict[str, Any]:
        """Compact fields for bound loggers."""
        return {
            "reference_id": self.reference_id,
            "blob_path": self.blob_path,
            "step": self.current_step,
            "remaining_steps": list(self.remaining_steps),
        }

    # ─── Serialization ─────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "reference_id": self.reference_id,
            "blob_path": self.blob_path,
            "current_step": self.current_step,
            "remaining_steps": list(self.remaining_steps),
            "metadata": self.metadata.to_dict(),
            "failure": self.failure.to_dict() if self.failure else None,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: Any) -> WorkflowEnvelope:
        if not isinstance(data, Mapping):
            raise EnvelopeParseError("envelope payload is not a JSON object")
        try:
            remaining = data.get("remaining_steps") or []
            if isinstance(remaining, str) or not isinstance(remaining, (list, tuple)):
                raise TypeError("remaining_steps must be a list")
            metadata = data.get("metadata") or {}
            if not isinstance(metadata, Mapping):
                raise TypeError("metadata must be an object")
            failure = data.get("failure")
            return cls(
                reference_id=_required_text(data, "reference_id"),
                blob_path=_required_text(data, "blob_path"),
                current_step=_required_text(data, "current_step"),
                remaining_steps=tuple(str(step) for step in remaining),
                metadata=CaseInsensitiveDict(metadata),
                failure=FailureInfo.from_dict(failure) if failure else None,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise EnvelopeParseError(
                f"invalid envelope: {exc}",
                reference_id=_best_effort_reference(data),
            ) from exc

    @classmethod
    def from_json(cls, payload: str | bytes) -> WorkflowEnvelope:
        try:
            data = json.loads(payload)
        except (TypeError, ValueError) as exc:
            raise EnvelopeParseError(f"envelope is not valid JSON: {exc}") from exc
        return cls.from_dict(data)


# ═══════════════════════════════════════════════════════════
#  AsyncOperationHandle
# ═══════════════════════════════════════════════════════════

@dataclass
class AsyncOperationHandle:
    """A started external operation plus the workflow waiting on it."""

    operation_id: str
    target_blob: str
    envelope: WorkflowEnvelope

    def to_json(self) -> str:
        return json.dumps(
            {
                "operation_id": self.operation_id,
                "target_blob": self.target_blob,
                "envelope": self.envelope.to_dict(),
            },
            ensure_ascii=False,
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, payload: str | bytes) -> AsyncOperationHandle:
        try:
            data = json.loads(payload)
        except (TypeError, ValueError) as exc:
            raise EnvelopeParseError(f"operation handle is not valid JSON: {exc}") from exc
        if not isinstance(data, Mapping):
            raise EnvelopeParseError("operation handle is not a JSON object")

        operation_id = data.get("operation_id")
        target_blob = data.get("target_blob")
        envelope = data.get("envelope")
        reference_id = _best_effort_reference(envelope)

        if not operation_id or not isinstance(operation_id, str):
            raise EnvelopeParseError("operation handle has no operation_id", reference_id=reference_id)
        if not target_blob or not isinstance(target_blob, str):
            raise EnvelopeParseError("operation handle has no target_blob", reference_id=reference_id)
        if not envelope:
            raise EnvelopeParseError("operation handle has no envelope")

        return cls(
            operation_id=operation_id,
            target_blob=target_blob,
            envelope=WorkflowEnvelope.from_dict(envelope),
        )


# ═══════════════════════════════════════════════════════════
#  ExtractedArtifact
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ExtractedArtifact:
    """One raster image materialized from a PDF page."""

    data: bytes
    page_index: int          # 1-based page number
    index_in_page: int       # 0-based position among the page's images
    content_type: str
    extension: str


def _required_text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} must be a non-empty string")
    return value


def _best_effort_reference(data: Any) -> str | None:
    if isinstance(data, Mapping):
        value = data.get("reference_id")
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None
