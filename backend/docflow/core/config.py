"""
Pydantic Settings — centralized configuration loaded from environment variables.

Nested values use a double underscore, e.g. ``STEP_QUEUES__PII=pii-priority``
overrides the queue for the ``pii`` step only.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Application ───────────────────────────
    APP_ENV: str = "development"
    LOG_LEVEL: str = ""

    # ── Redis / Celery ────────────────────────
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    # ── Object Storage (S3 / MinIO) ───────────
    STORAGE_ENDPOINT: str = "http://localhost:9000"
    STORAGE_ACCESS_KEY: str = "minioadmin"
    STORAGE_SECRET_KEY: str = "minioadmin"
    AWS_REGION: str = "us-east-1"
    INPUT_CONTAINER: str = "input"
    OUTPUT_CONTAINER: str = "output"

    # ── Workflow ──────────────────────────────
    DEFAULT_WORKFLOW_STEPS: str = ""
    STEP_QUEUES: dict[str, str] = Field(default_factory=dict)
    ALERT_QUEUE_NAME: str = "workflow-alerts"
    OPERATION_QUEUE_NAME: str = "documentanalysis-operations"
    OPERATION_POLL_DELAY_SECONDS: int = 30
    OPERATION_INITIAL_DELAY_SECONDS: int = 10

    # ── Text limits (service character caps) ──
    LANGUAGE_DETECTION_MAX_CHARS: int = 5120
    TRANSLATOR_MAX_CHARS: int = 10000
    PII_MAX_CHARS: int = 5120

    # ── Languages ─────────────────────────────
    TRANSLATION_SOURCE_LANGUAGE: str = ""
    TRANSLATION_TARGET_LANGUAGE: str = "en"
    TRANSLATION_DROP_FIRST_LINE: bool = True
    PII_LANGUAGE: str = "en"

    # ── Language service (detection + PII) ───
    LANGUAGE_ENDPOINT: str = ""
    LANGUAGE_API_KEY: str = ""
    LANGUAGE_API_VERSION: str = "2023-04-01"

    # ── Translator ────────────────────────────
    TRANSLATOR_ENDPOINT: str = "https://api.cognitive.microsofttranslator.com"
    TRANSLATOR_API_KEY: str = ""
    TRANSLATOR_REGION: str = ""

    # ── Image analysis ────────────────────────
    VISION_ENDPOINT: str = ""
    VISION_API_KEY: str = ""
    VISION_API_VERSION: str = "2024-02-01"

    # ── Document analysis (OCR / layout) ──────
    DOCUMENT_ANALYSIS_ENDPOINT: str = ""
    DOCUMENT_ANALYSIS_API_KEY: str = ""
    DOCUMENT_ANALYSIS_API_VERSION: str = "2024-11-30"
    DOCUMENT_ANALYSIS_DEFAULT_MODEL: str = "prebuilt-layout"

    # ── Google Gemini (multimodal describe) ───
    GOOGLE_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    LLM_TEMPERATURE: float = 0.0
    LLM_MAX_TOKENS: int = 2048

    CAPABILITY_TIMEOUT_SECONDS: float = 60.0

    # ── LangSmith Tracing ────────────────────
    LANGSMITH_API_KEY: str = ""
    LANGSMITH_ENDPOINT: str = "https://api.smith.langchain.com"
    LANGSMITH_PROJECT: str = "docflow"
    LANGSMITH_TRACING: bool = False

    model_config = {
        "env_file": ["../.env", ".env"],
        "extra": "ignore",
        "env_nested_delimiter": "__",
    }

    @property
    def log_level(self) -> str:
        """Explicit LOG_LEVEL wins; otherwise DEBUG in development."""
        if self.LOG_LEVEL:
            return self.LOG_LEVEL.upper()
        return "DEBUG" if self.APP_ENV == "development" else "INFO"


settings = Settings()
