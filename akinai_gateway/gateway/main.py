"""
Akinai Gateway - Main FastAPI Application

Public API gateway (bearer API keys, per-plan rate limits, usage logging)
and the outbound webhook delivery engine.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from akinai_gateway.config import Settings, configure_logging, load_settings
from akinai_gateway.errors import (
    ConfigurationError,
    SubscriptionNotFoundError,
    UnknownEventTypeError,
    InvalidEventPayloadError,
)
from akinai_gateway.gateway.components import GatewayComponents, build_components
from akinai_gateway.gateway.middleware import InboundGatewayMiddleware
from akinai_gateway.gateway.responses import api_error
from akinai_gateway.gateway.routes import router as api_router
from akinai_gateway.storage.redis_client import health_check

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build components unless they were injected, and close what we built"""
    owned: Optional[GatewayComponents] = None

    if getattr(app.state, "components", None) is None:
        try:
            settings = app.state.settings or load_settings()
            configure_logging(settings.log_level)
            owned = build_components(settings)
            app.state.components = owned
        except ConfigurationError as e:
            configure_logging()
            logger.critical("Gateway started without components: %s", e.message)

    yield

    if owned is not None:
        await owned.aclose()
        app.state.components = None


def create_app(
    components: Optional[GatewayComponents] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Create the gateway application

    Args:
        components: prebuilt components (tests inject in-memory ones)
        settings: settings used to build components at startup when none are
            injected; read from the environment if omitted
    """
    app = FastAPI(
        title="Akinai Gateway",
        description="Public commerce API gateway and webhook delivery engine",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.components = components
    app.state.settings = settings

    app.add_middleware(InboundGatewayMiddleware)
    app.include_router(api_router)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return api_error(str(exc.detail), exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "Invalid request")
        return api_error(f"Invalid request: {location} {message}".strip(), 400)

    @app.exception_handler(UnknownEventTypeError)
    @app.exception_handler(InvalidEventPayloadError)
    async def event_error(request: Request, exc: ValueError):
        return api_error(str(exc), 400)

    @app.exception_handler(SubscriptionNotFoundError)
    async def not_found(request: Request, exc: SubscriptionNotFoundError):
        return api_error("Webhook not found", 404)

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint"""
        components: Optional[GatewayComponents] = request.app.state.components
        if components is None:
            return {"status": "misconfigured", "version": VERSION}

        storage = components.settings.storage_backend
        if storage == "redis":
            storage_status = "connected" if await health_check(components.redis) else "disconnected"
        else:
            storage_status = "memory"
        return {
            "status": "healthy",
            "storage": storage_status,
            "pending_deliveries": components.dispatcher.pending,
            "version": VERSION,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "akinai_gateway.gateway.main:app",
        host=settings.host,
        port=settings.port,
    )
