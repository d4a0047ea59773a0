"""Rate limiting implementation"""

import logging
from typing import Dict, Optional
from pydantic import BaseModel

from akinai_gateway.models.tenant import DEFAULT_PLAN_LIMITS, Plan, PlanLimits
from akinai_gateway.rate_limiter.counters import CounterStore

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 60


class RateLimitResult(BaseModel):
    """Quota state after a check"""
    allowed: bool
    minute_limit: int
    minute_remaining: int
    day_limit: int
    day_remaining: int
    retry_after_seconds: Optional[int] = None

    def headers(self) -> Dict[str, str]:
        """X-RateLimit-* headers, plus Retry-After when denied"""
        headers = {
            "X-RateLimit-Limit-Minute": str(self.minute_limit),
            "X-RateLimit-Remaining-Minute": str(self.minute_remaining),
            "X-RateLimit-Limit-Day": str(self.day_limit),
            "X-RateLimit-Remaining-Day": str(self.day_remaining),
        }
        if self.retry_after_seconds:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


class RateLimiter:
    """Per-tenant minute and day quotas keyed by plan"""

    def __init__(
        self,
        counters: CounterStore,
        plan_limits: Optional[Dict[Plan, PlanLimits]] = None,
    ):
        self.counters = counters
        self.plan_limits = plan_limits or dict(DEFAULT_PLAN_LIMITS)

    def limits_for(self, plan: Plan) -> PlanLimits:
        return self.plan_limits.get(plan) or self.plan_limits[Plan.FREE]

    async def check(self, tenant_id: str, plan: Plan) -> RateLimitResult:
        """
        Check and consume one request from the tenant's quota

        Fails open: if the counter store errors, the request is allowed and
        the nominal limits are reported as fully available.
        """
        limits = self.limits_for(plan)

        try:
            counts = await self.counters.hit(tenant_id, limits.minute, limits.day)
        except Exception:
            logger.exception("Rate limit check failed for tenant %s, allowing request", tenant_id)
            return RateLimitResult(
                allowed=True,
                minute_limit=limits.minute,
                minute_remaining=limits.minute,
                day_limit=limits.day,
                day_remaining=limits.day,
            )

        result = RateLimitResult(
            allowed=counts.allowed,
            minute_limit=limits.minute,
            minute_remaining=max(0, min(limits.minute, limits.minute - counts.minute_used)),
            day_limit=limits.day,
            day_remaining=max(0, min(limits.day, limits.day - counts.day_used)),
            retry_after_seconds=None if counts.allowed else RETRY_AFTER_SECONDS,
        )
        if not result.allowed:
            logger.info(
                "Rate limit exceeded: tenant=%s plan=%s minute=%d/%d day=%d/%d",
                tenant_id,
                plan.value,
                counts.minute_used,
                limits.minute,
                counts.day_used,
                limits.day,
            )
        return result
