"""
Inbound gateway middleware

Every request under /api/v1 goes through: resolve credential, check quota,
run the handler, attach rate-limit headers, log usage in the background.
CORS headers are added to every response.
"""

import logging
import time
from typing import Awaitable, Callable, Optional, Tuple
from fastapi import FastAPI, HTTPException, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from akinai_gateway.errors import AuthError, ConfigurationError
from akinai_gateway.gateway.components import GatewayComponents
from akinai_gateway.gateway.responses import (
    api_error,
    apply_headers,
    cors_headers,
    options_response,
    rate_limit_error,
)
from akinai_gateway.models.tenant import Credential
from akinai_gateway.models.usage import UsageLogEntry
from akinai_gateway.usage.recorder import get_client_ip, get_user_agent, normalize_endpoint

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def get_components(app: FastAPI) -> GatewayComponents:
    components = getattr(app.state, "components", None)
    if components is None:
        raise ConfigurationError("Gateway components are not initialised")
    return components


def current_credential(request: Request) -> Credential:
    """Dependency: the credential resolved by the gateway middleware"""
    credential = getattr(request.state, "credential", None)
    if credential is None:
        raise HTTPException(status_code=401, detail="Authorization header is required")
    return credential


def request_components(request: Request) -> GatewayComponents:
    """Dependency: the app's components"""
    return get_components(request.app)


class InboundGatewayMiddleware(BaseHTTPMiddleware):
    """Authentication, rate limiting and usage logging for the public API"""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.method == "OPTIONS":
            return options_response()

        if not request.url.path.startswith(API_PREFIX):
            response = await call_next(request)
            return apply_headers(response, cors_headers())

        started = time.monotonic()
        try:
            components = get_components(request.app)
        except ConfigurationError as e:
            logger.critical("Gateway misconfigured: %s", e.message)
            return apply_headers(api_error("Server configuration error", 500), cors_headers())

        response, credential = await self._handle(components, request, call_next)
        apply_headers(response, cors_headers())

        if credential is not None:
            components.usage.record_nowait(UsageLogEntry(
                tenant_id=credential.tenant_id,
                endpoint=normalize_endpoint(request.url.path),
                method=request.method,
                status_code=response.status_code,
                response_time_ms=int((time.monotonic() - started) * 1000),
                client_ip=get_client_ip(request),
                user_agent=get_user_agent(request),
            ))
        return response

    async def _handle(
        self,
        components: GatewayComponents,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Tuple[Response, Optional[Credential]]:
        try:
            credential = await components.resolver.resolve(request.headers.get("authorization"))
        except AuthError as e:
            return api_error(e.message, e.status_code), None
        except ConfigurationError as e:
            logger.critical("Credential store misconfigured: %s", e.message)
            return api_error("Server configuration error", 500), None
        except Exception:
            logger.exception("Credential lookup failed")
            return api_error("Internal Server Error", 500), None

        result = await components.rate_limiter.check(credential.tenant_id, credential.plan)
        if not result.allowed:
            return rate_limit_error(result), credential

        request.state.credential = credential
        request.state.rate_limit = result

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error in %s %s", request.method, request.url.path)
            response = api_error("Internal Server Error", 500)

        return apply_headers(response, result.headers()), credential
