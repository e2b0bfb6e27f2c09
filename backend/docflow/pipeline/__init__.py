"""
Workflow engine — queue-driven, step-based document processing.

This package provides the envelope model, the queue router, the step
executor and operation poller that drive ingested objects through a
configurable sequence of steps, with alerting on every failure path.
The live workflow state is the queue message itself.
"""

from docflow.pipeline.controller import WorkflowController
from docflow.pipeline.envelope import AsyncOperationHandle, ExtractedArtifact, WorkflowEnvelope
from docflow.pipeline.executor import StepExecutor
from docflow.pipeline.routing import QueueRouter, WorkflowConfig
from docflow.pipeline.step import StepResult, WorkflowStep

__all__ = [
    "AsyncOperationHandle",
    "ExtractedArtifact",
    "QueueRouter",
    "StepExecutor",
    "StepResult",
    "WorkflowConfig",
    "WorkflowController",
    "WorkflowEnvelope",
    "WorkflowStep",
]
