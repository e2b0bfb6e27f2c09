"""Shared dependencies for API routes."""

from __future__ import annotations

from docflow.pipeline.intake import TriggerIntake
from docflow.runtime import get_runtime


def get_intake() -> TriggerIntake:
    """Process-wide trigger intake (overridden in tests)."""
    return get_runtime().intake
