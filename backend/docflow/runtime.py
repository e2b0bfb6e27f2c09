"""
Process wiring — every collaborator the tasks and the API need, built once.

A worker process (or the API process) calls get_runtime() and reuses the
same WorkflowConfig, transport, store and clients for every message.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from celery import Celery

from docflow.capabilities import (
    DocumentAnalysisClient,
    LanguageClient,
    MultimodalClient,
    TranslatorClient,
    VisionClient,
)
from docflow.core.config import Settings, settings
from docflow.pipeline.alerts import AlertPublisher
from docflow.pipeline.controller import WorkflowController
from docflow.pipeline.executor import StepExecutor
from docflow.pipeline.intake import TriggerIntake
from docflow.pipeline.poller import AsyncOperationPoller
from docflow.pipeline.routing import QueueRouter, WorkflowConfig
from docflow.pipeline.steps import build_step_registry
from docflow.pipeline.transport import QueueTransport
from docflow.storage.blob_store import BlobStore


@dataclass
class Runtime:
    config: WorkflowConfig
    transport: QueueTransport
    store: BlobStore
    alerts: AlertPublisher
    router: QueueRouter
    controller: WorkflowController
    executor: StepExecutor
    poller: AsyncOperationPoller
    intake: TriggerIntake


def build_runtime(app_settings: Settings, celery_app: Celery) -> Runtime:
    config = WorkflowConfig.from_settings(app_settings)
    timeout = app_settings.CAPABILITY_TIMEOUT_SECONDS

    transport = QueueTransport(celery_app)
    store = BlobStore(
        endpoint_url=app_settings.STORAGE_ENDPOINT,
        access_key=app_settings.STORAGE_ACCESS_KEY,
        secret_key=app_settings.STORAGE_SECRET_KEY,
        region=app_settings.AWS_REGION,
    )
    alerts = AlertPublisher(transport, config.alert_queue)
    router = QueueRouter(config, transport, alerts)
    controller = WorkflowController(router, alerts)

    # ── External capabilities ─────────────────────
    language = LanguageClient(
        app_settings.LANGUAGE_ENDPOINT,
        app_settings.LANGUAGE_API_KEY,
        api_version=app_settings.LANGUAGE_API_VERSION,
        timeout=timeout,
    )
    translator = TranslatorClient(
        app_settings.TRANSLATOR_ENDPOINT,
        app_settings.TRANSLATOR_API_KEY,
        region=app_settings.TRANSLATOR_REGION,
        timeout=timeout,
    )
    vision = VisionClient(
        app_settings.VISION_ENDPOINT,
        app_settings.VISION_API_KEY,
        api_version=app_settings.VISION_API_VERSION,
        timeout=timeout,
    )
    document_analysis = DocumentAnalysisClient(
        app_settings.DOCUMENT_ANALYSIS_ENDPOINT,
        app_settings.DOCUMENT_ANALYSIS_API_KEY,
        api_version=app_settings.DOCUMENT_ANALYSIS_API_VERSION,
        timeout=timeout,
    )
    multimodal = MultimodalClient(
        api_key=app_settings.GOOGLE_API_KEY,
        model=app_settings.GEMINI_MODEL,
        temperature=app_settings.LLM_TEMPERATURE,
        max_output_tokens=app_settings.LLM_MAX_TOKENS,
    )

    steps = build_step_registry(
        config=config,
        store=store,
        transport=transport,
        router=router,
        alerts=alerts,
        language=language,
        translator=translator,
        vision=vision,
        document_analysis=document_analysis,
        multimodal=multimodal,
    )

    return Runtime(
        config=config,
        transport=transport,
        store=store,
        alerts=alerts,
        router=router,
        controller=controller,
        executor=StepExecutor(steps, controller, alerts),
        poller=AsyncOperationPoller(config, document_analysis, store, transport, controller, alerts),
        intake=TriggerIntake(config, store, router, alerts),
    )


@lru_cache(maxsize=1)
def get_runtime() -> Runtime:
    """Process-wide runtime bound to the shared Celery app."""
    from docflow.tasks import celery_app

    return build_runtime(settings, celery_app)
