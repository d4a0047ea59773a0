"""Uniform JSON envelopes and response headers"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response

from akinai_gateway.models.webhook import isoformat_ms
from akinai_gateway.rate_limiter.limiter import RateLimitResult

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def timestamp() -> str:
    return isoformat_ms(datetime.now(timezone.utc))


def cors_headers() -> Dict[str, str]:
    return dict(CORS_HEADERS)


def apply_headers(response: Response, headers: Mapping[str, str]) -> Response:
    for name, value in headers.items():
        response.headers[name] = value
    return response


def api_success(
    data: Any,
    meta: Optional[Dict[str, Any]] = None,
    status_code: int = 200,
) -> JSONResponse:
    """`{data, meta: {...meta, timestamp}}`"""
    return JSONResponse(
        jsonable_encoder({"data": data, "meta": {**(meta or {}), "timestamp": timestamp()}}),
        status_code=status_code,
    )


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit > 0 else 0,
        "hasMore": page * limit < total,
    }


def api_success_paginated(data: Sequence[Any], page: int, limit: int, total: int) -> JSONResponse:
    """`{data: [...], meta: {pagination, timestamp}}`"""
    return JSONResponse(jsonable_encoder({
        "data": list(data),
        "meta": {
            "pagination": pagination_meta(page, limit, total),
            "timestamp": timestamp(),
        },
    }))


def api_error(message: str, status_code: int = 400) -> JSONResponse:
    """`{error, status, timestamp}`"""
    return JSONResponse(
        {"error": message, "status": status_code, "timestamp": timestamp()},
        status_code=status_code,
    )


def rate_limit_error(result: RateLimitResult) -> JSONResponse:
    """429 body carrying the quota state"""
    return JSONResponse(
        {
            "error": "Too Many Requests",
            "message": "API rate limit exceeded. Please try again later.",
            "status": 429,
            "limits": {
                "minute": {"limit": result.minute_limit, "remaining": result.minute_remaining},
                "day": {"limit": result.day_limit, "remaining": result.day_remaining},
            },
            "retryAfter": result.retry_after_seconds,
            "timestamp": timestamp(),
        },
        status_code=429,
        headers=result.headers(),
    )


def options_response() -> Response:
    """Preflight answer: 204, CORS headers, no body"""
    return Response(status_code=204, headers=cors_headers())
