"""Tenant credential and plan models"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Plan(str, Enum):
    """Subscription plan tiers"""
    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    ENTERPRISE = "enterprise"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Plan":
        """Parse a plan name, falling back to the free tier"""
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.FREE


class PlanLimits(BaseModel):
    """Request quotas for a plan"""
    model_config = ConfigDict(frozen=True)

    minute: int = Field(..., gt=0)
    day: int = Field(..., gt=0)


DEFAULT_PLAN_LIMITS = {
    Plan.FREE: PlanLimits(minute=30, day=1_000),
    Plan.STARTER: PlanLimits(minute=60, day=10_000),
    Plan.PRO: PlanLimits(minute=300, day=100_000),
    Plan.ENTERPRISE: PlanLimits(minute=1_000, day=1_000_000),
}


class Credential(BaseModel):
    """Tenant identity resolved from an API key"""
    model_config = ConfigDict(frozen=True)

    tenant_id: str
    tenant_name: str
    plan: Plan = Plan.FREE
    active: bool = True
