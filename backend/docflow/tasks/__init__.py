"""
Celery application factory.
"""

from celery import Celery
from celery.signals import setup_logging as setup_logging_signal

from docflow.core.config import settings
from docflow.core.logging import setup_logging
from docflow.core.tracing import setup_tracing

celery_app = Celery("docflow")
celery_app.config_from_object("celeryconfig")

# Queue consumers: one task per step, the operation poller and the alert sink
celery_app.autodiscover_tasks(
    [
        "docflow.tasks.step_tasks",
        "docflow.tasks.poll_tasks",
        "docflow.tasks.alert_tasks",
    ],
    related_name=None,
)


@setup_logging_signal.connect
def configure_worker_logging(**kwargs) -> None:
    """Replace Celery's logging setup with structlog."""
    setup_logging(settings.log_level)
    setup_tracing()
