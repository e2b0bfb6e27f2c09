"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from docflow.api.v1 import events
from docflow.core.config import settings
from docflow.core.logging import get_logger, setup_logging
from docflow.core.tracing import setup_tracing


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    setup_logging(settings.log_level)
    setup_tracing()
    logger = get_logger("startup")
    logger.info("Application starting", env=settings.APP_ENV)
    yield
    logger.info("Application shutting down")


app = FastAPI(
    title="Document Workflow API",
    description="Object-created intake for the queue-driven document workflow",
    version="0.1.0",
    lifespan=lifespan,
)

API_PREFIX = "/api/v1"
app.include_router(events.router, prefix=API_PREFIX)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Public health-check endpoint."""
    return {"status": "ok", "env": settings.APP_ENV}
