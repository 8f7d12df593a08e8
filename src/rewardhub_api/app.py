from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from rewardhub_api.core.settings import settings
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing
from .services.notifications import ClaimNotificationOutbox, NotificationService


APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    outbox: ClaimNotificationOutbox | None = app.state.notification_outbox
    if outbox is not None:
        outbox.start()
        logger.info(
            "Claim notification dispatcher enabled",
            queue_size=settings.notification_queue_size,
            email_backend=outbox.notification_service.has_backend,
        )
    else:
        logger.info(
            "Claim notification dispatcher disabled",
            reason="notifications_enabled is false",
        )

    try:
        yield
    finally:
        if outbox is not None and outbox.is_running:
            await outbox.stop()


def create_app() -> FastAPI:
    """Application factory for the RewardHub FastAPI service."""
    configure_logging(
        service_name="rewardhub-api",
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="RewardHub API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.notification_outbox = (
        ClaimNotificationOutbox(NotificationService(), max_size=settings.notification_queue_size)
        if settings.notifications_enabled
        else None
    )

    configure_tracing(
        app,
        service_name="rewardhub-api",
        service_version=APP_VERSION,
        environment=settings.environment,
    )

    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
