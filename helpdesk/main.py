"""
Helpdesk Assistant - Main Application
=====================================

Entry point for the support desk's AI chat assistant: FAQ-grounded chat
with per-user memory, FAQ curation, and learning from conversations.

Package layout per bounded context (`helpdesk.assistant`):
domain holds entities, prompt builders and output parsing; application
holds services and DTOs; infrastructure holds persistence, the LLM
adapter, the config watcher and the scheduler; interfaces holds the
FastAPI router.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from helpdesk.config import settings
from helpdesk.core import ApplicationException, ConfigurationException
from helpdesk.infrastructure.database import init_database, close_database, create_tables
from helpdesk.infrastructure.llm import create_llm_client, flush_metric_exports
from helpdesk.assistant.infrastructure import (
    AssistantConfigManager,
    ConversationLearningJob,
    LearningScheduler,
    LLMBackendAdapter,
)
from helpdesk.assistant.interfaces import assistant_router
from helpdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from helpdesk.shared.infrastructure.grafana import init_grafana_exporter
from helpdesk.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)

ASSISTANT_ENDPOINTS = [
    "POST /api/ai/chat - Send a message",
    "GET /api/ai/memory - Recent conversation",
    "GET /api/ai/settings - Assistant availability",
    "POST /api/ai/settings - Enable / disable (admin)",
    "GET /api/ai/faq - List FAQ entries (admin)",
    "POST /api/ai/faq - Add FAQ entry (admin)",
    "DELETE /api/ai/faq/{id} - Delete FAQ entry (admin)",
    "POST /api/ai/faq/extract - Extract from document (admin)",
    "POST /api/ai/faq/learn - Learn from exchange (admin)",
]


def _grafana_configured() -> bool:
    return bool(settings.grafana_host and settings.grafana_api_key and settings.grafana_instance_id)


def _build_backend():
    """LLM backend adapter, or None when the provider has no credentials."""
    try:
        return LLMBackendAdapter(create_llm_client(settings))
    except ConfigurationException as e:
        logger.warning("LLM client not configured, AI endpoints will return 503", extra={"reason": e.message})
        return None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Wire process-wide resources onto app.state and tear them down in
    reverse order on shutdown.

    A missing database or LLM key degrades the service instead of
    aborting startup.
    """
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Helpdesk Assistant", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()
    try:
        # Schema bootstrap for local runs; deployed databases are migrated
        await create_tables()
    except Exception as e:
        logger.warning("Could not create tables, continuing without them", extra={"error": str(e)})

    config_manager = AssistantConfigManager()
    config_manager.load(settings.assistant_config_path)
    config_manager.start_watching()

    llm_backend = _build_backend()

    if _grafana_configured():
        init_grafana_exporter(
            host=settings.grafana_host,
            api_key=settings.grafana_api_key,
            instance_id=settings.grafana_instance_id
        )
    else:
        logger.info("LLM usage metrics disabled (Grafana credentials not set)")

    learning_scheduler = None
    if llm_backend is not None and settings.learning_interval_seconds > 0:
        learning_job = ConversationLearningJob(
            llm_backend,
            batch_size=settings.learning_batch_size,
            timeout_seconds=settings.llm_timeout_seconds
        )
        learning_scheduler = LearningScheduler(interval_seconds=settings.learning_interval_seconds)
        await learning_scheduler.start(learning_job.run)

    app.state.settings = settings
    app.state.llm_backend = llm_backend
    app.state.assistant_config = config_manager
    app.state.learning_scheduler = learning_scheduler

    logger.info("Helpdesk Assistant ready")
    yield

    logger.info("Shutting down Helpdesk Assistant")
    if learning_scheduler:
        await learning_scheduler.stop()
    config_manager.stop_watching()
    await flush_metric_exports()
    await close_database()
    logger.info("Helpdesk Assistant stopped")


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Build the FastAPI application; tests skip the lifespan and wire app.state themselves."""
    app = FastAPI(
        title="Helpdesk Assistant API",
        description="""
    ## AI Chat Assistant for the Support Desk

    Answers user questions using an admin-curated FAQ knowledge base and
    each user's recent conversation history.

    **Endpoints:**
    - `POST /api/ai/chat` - Send a message
    - `GET /api/ai/memory` - Recent conversation (oldest first)
    - `GET /api/ai/settings` - Assistant availability
    - `POST /api/ai/settings` - Enable / disable the assistant (admin)
    - `GET|POST /api/ai/faq`, `DELETE /api/ai/faq/{id}` - FAQ curation (admin)
    - `POST /api/ai/faq/extract` - Extract FAQ entries from a document (admin)
    - `POST /api/ai/faq/learn` - Learn a FAQ entry from an exchange (admin)

    Identity is forwarded by the gateway in `X-User-ID` and `X-User-Role`.
    """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if use_lifespan else None
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Added last so it runs first and LoggingMiddleware sees the correlation ID
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)

    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(assistant_router)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Liveness plus the state of optional components; always 200 while the process serves."""
        state = request.app.state
        scheduler = getattr(state, "learning_scheduler", None)
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "checks": {
                "llm_backend": "available" if getattr(state, "llm_backend", None) else "not_configured",
                "assistant_config": "loaded" if getattr(state, "assistant_config", None) else "defaults",
                "learning_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
            },
        }

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "service": "Helpdesk Assistant",
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/health",
            "modules": {
                "assistant": {"prefix": "/api/ai", "endpoints": ASSISTANT_ENDPOINTS},
            },
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "helpdesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
