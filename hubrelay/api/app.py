"""
FastAPI application factory.

Two surfaces share one app: the hub callback (plain text, unauthenticated,
mounted at WEBHOOK_PATH) and the subscription admin API (JSON, API key).
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from hubrelay import __version__
from hubrelay.api.dependencies import AppResources
from hubrelay.api.routes import subscriptions, webhook
from hubrelay.config.settings import get_settings
from hubrelay.observability.logging import bind_context, clear_context

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADERS = ("X-Request-ID", "X-Correlation-ID")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Hub relay API starting", callback_url=get_settings().callback_url)
    try:
        yield
    finally:
        await app.state.resources.close()
        logger.info("Hub relay API stopped")


async def request_context(request: Request, call_next) -> Response:
    """Bind a request id to every log line of the request and echo it back."""
    request_id = next(
        (request.headers[h] for h in REQUEST_ID_HEADERS if request.headers.get(h)),
        None,
    ) or uuid.uuid4().hex
    bind_context(request_id=request_id)
    start = time.perf_counter()
    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response
    finally:
        clear_context()


async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        method=request.method,
        path=request.url.path,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_type": "internal"},
    )


def create_app() -> FastAPI:
    """Build the app with its own AppResources; nothing connects until first use."""
    settings = get_settings()

    app = FastAPI(
        title="Hub Relay",
        description=(
            "WebSub subscriber that relays new-video notifications to Telegram.\n\n"
            "Subscription endpoints require the `X-API-KEY` header when "
            "`API_KEYS` is set. The hub callback is unauthenticated."
        ),
        version=__version__,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "webhook", "description": "Hub verification and deliveries"},
            {"name": "subscriptions", "description": "Subscription health and renewal"},
        ],
    )
    app.state.resources = AppResources(settings)

    app.middleware("http")(request_context)
    app.add_exception_handler(Exception, unhandled_error)

    app.include_router(webhook.router, prefix=settings.webhook_path, tags=["webhook"])
    app.include_router(subscriptions.router, tags=["subscriptions"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {"service": "Hub Relay", "version": __version__, "docs": "/docs"}

    return app
