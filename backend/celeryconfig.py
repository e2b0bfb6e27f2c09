"""
Celery configuration for the document workflow workers.

Loaded by `celery_app.config_from_object("celeryconfig")` in docflow/tasks/__init__.py.
All broker/result-backend URLs come from environment variables,
defaulting to localhost for local dev.
"""

import os

# ═══════════════════════════════════════════════════════════
#  Broker & Result Backend
# ═══════════════════════════════════════════════════════════

broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

# ═══════════════════════════════════════════════════════════
#  Serialization — JSON only (envelopes are JSON strings)
# ═══════════════════════════════════════════════════════════

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]

# ═══════════════════════════════════════════════════════════
#  Timezone
# ═══════════════════════════════════════════════════════════

timezone = "UTC"
enable_utc = True

# ═══════════════════════════════════════════════════════════
#  Task Execution
# ═══════════════════════════════════════════════════════════

# Acknowledge tasks AFTER they complete; a crashed worker's message is redelivered
task_acks_late = True
task_reject_on_worker_lost = True

# Failed tasks are rejected, not acked: the broker's dead-letter policy applies
task_acks_on_failure_or_timeout = False

# Only prefetch 1 task at a time per worker process
worker_prefetch_multiplier = 1

# Capability calls (OCR upload, LLM) can take a while
task_soft_time_limit = 600    # 10 min: raises SoftTimeLimitExceeded
task_time_limit = 660         # 11 min: hard kill

# Step queues are declared on first send; workers may start first
task_create_missing_queues = True

# ═══════════════════════════════════════════════════════════
#  Result Expiry — auto-clean after 24h
# ═══════════════════════════════════════════════════════════

result_expires = 86400

# ═══════════════════════════════════════════════════════════
#  Worker Settings
# ═══════════════════════════════════════════════════════════

worker_max_tasks_per_child = 200

# Events off by default
# Enable with: celery -A docflow.tasks worker -E
worker_send_task_events = False
task_send_sent_event = False

# ═══════════════════════════════════════════════════════════
#  Task Routes
# ═══════════════════════════════════════════════════════════
# Step messages are always sent to an explicit queue (one per step).
# Run workers per queue, e.g.:
#   celery -A docflow.tasks worker -Q translation-in,pii-in
#   celery -A docflow.tasks worker -Q documentanalysis-in,documentanalysis-operations
#   celery -A docflow.tasks worker -Q workflow-alerts

ALERT_QUEUE_NAME = os.getenv("ALERT_QUEUE_NAME", "workflow-alerts")
OPERATION_QUEUE_NAME = os.getenv("OPERATION_QUEUE_NAME", "documentanalysis-operations")

task_routes = {
    "docflow.alerts.*": {"queue": ALERT_QUEUE_NAME},
    "docflow.operations.*": {"queue": OPERATION_QUEUE_NAME},
}

task_default_queue = "default"
