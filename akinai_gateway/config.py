"""Environment-driven configuration"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from akinai_gateway.errors import ConfigurationError
from akinai_gateway.models.tenant import DEFAULT_PLAN_LIMITS, Plan, PlanLimits

STORAGE_BACKENDS = ("redis", "memory")
DEFAULT_USER_AGENT = "Akinai-Webhook/1.0"


@dataclass(frozen=True)
class Settings:
    storage_backend: str = "memory"
    redis_url: Optional[str] = None
    credential_cache_ttl: float = 30.0
    plan_limits: Dict[Plan, PlanLimits] = field(default_factory=lambda: dict(DEFAULT_PLAN_LIMITS))
    webhook_user_agent: str = DEFAULT_USER_AGENT
    delivery_history_limit: int = 1000
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    def limits_for(self, plan: Plan) -> PlanLimits:
        """Quotas for a plan, falling back to the free tier"""
        return self.plan_limits.get(plan) or self.plan_limits[Plan.FREE]


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'") from e
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {value}")
    return value


def _load_plan_limits() -> Dict[Plan, PlanLimits]:
    limits = {}
    for plan, default in DEFAULT_PLAN_LIMITS.items():
        prefix = f"AKINAI_RATE_LIMIT_{plan.value.upper()}"
        limits[plan] = PlanLimits(
            minute=_int_env(f"{prefix}_MINUTE", default.minute),
            day=_int_env(f"{prefix}_DAY", default.day),
        )
    return limits


def load_settings() -> Settings:
    """
    Load settings from environment variables

    Raises:
        ConfigurationError: if the storage backend is unknown, REDIS_URL is
            missing for the redis backend, or a numeric value is malformed
    """
    backend = os.getenv("AKINAI_STORAGE_BACKEND", "redis").strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise ConfigurationError(
            f"AKINAI_STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}, got '{backend}'"
        )

    redis_url = os.getenv("REDIS_URL") or None
    if backend == "redis" and not redis_url:
        raise ConfigurationError("REDIS_URL is required when AKINAI_STORAGE_BACKEND=redis")

    return Settings(
        storage_backend=backend,
        redis_url=redis_url,
        credential_cache_ttl=_float_env("AKINAI_CREDENTIAL_CACHE_TTL", 30.0),
        plan_limits=_load_plan_limits(),
        webhook_user_agent=os.getenv("AKINAI_WEBHOOK_USER_AGENT", DEFAULT_USER_AGENT),
        delivery_history_limit=_int_env("AKINAI_DELIVERY_HISTORY_LIMIT", 1000),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        host=os.getenv("GATEWAY_HOST", "0.0.0.0"),
        port=_int_env("GATEWAY_PORT", 8000),
    )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
