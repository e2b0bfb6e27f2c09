"""
Domain-specific exception hierarchy for the workflow engine.

All workflow exceptions inherit from PipelineError so callers can
catch broadly or narrowly as needed.  Each exception carries structured
context (reference id, step name, details) for logging and alerting.

Handling policy, by family:
    - EnvelopeParseError / IntakeValidationError: log, alert, drop.
    - ConfigurationError: fail fast, alert, never retried.
    - StepExecutionError / StorageError / CapabilityError: fail the
      workflow, alert, then re-raise so broker redelivery applies.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for all workflow errors."""

    def __init__(
        self,
        message: str,
        *,
        reference_id: str | None = None,
        step_name: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.reference_id = reference_id
        self.step_name = step_name
        self.details = details or {}
        super().__init__(message)


class EnvelopeParseError(PipelineError):
    """A queue payload could not be parsed into an envelope or handle."""
    pass


class IntakeValidationError(PipelineError):
    """An object-created notification is missing required metadata."""
    pass


class ConfigurationError(PipelineError):
    """A required setting (endpoint, key, queue) is missing or invalid."""
    pass


class StepExecutionError(PipelineError):
    """A step's own precondition or output contract was violated."""
    pass


class StorageError(PipelineError):
    """Object store operation (S3/MinIO) failed."""
    pass


class CapabilityError(PipelineError):
    """An external analysis service returned an error."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
        **kwargs,
    ) -> None:
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message, **kwargs)
