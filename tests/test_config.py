"""Tests for environment configuration"""

import pytest

from akinai_gateway.config import DEFAULT_USER_AGENT, Settings, load_settings
from akinai_gateway.errors import ConfigurationError
from akinai_gateway.models.tenant import Plan, PlanLimits

ENV_VARS = [
    "AKINAI_STORAGE_BACKEND",
    "REDIS_URL",
    "AKINAI_CREDENTIAL_CACHE_TTL",
    "AKINAI_RATE_LIMIT_PRO_MINUTE",
    "AKINAI_DELIVERY_HISTORY_LIMIT",
    "AKINAI_WEBHOOK_USER_AGENT",
    "GATEWAY_PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_redis_backend_requires_url():
    with pytest.raises(ConfigurationError) as exc_info:
        load_settings()
    assert "REDIS_URL" in exc_info.value.message
    assert exc_info.value.status_code == 500


def test_memory_backend_defaults(monkeypatch):
    monkeypatch.setenv("AKINAI_STORAGE_BACKEND", "memory")

    settings = load_settings()

    assert settings.storage_backend == "memory"
    assert settings.redis_url is None
    assert settings.webhook_user_agent == DEFAULT_USER_AGENT
    assert settings.limits_for(Plan.FREE) == PlanLimits(minute=30, day=1000)
    assert settings.limits_for(Plan.ENTERPRISE) == PlanLimits(minute=1000, day=1000000)


def test_plan_limits_overridable(monkeypatch):
    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
    monkeypatch.setenv("AKINAI_RATE_LIMIT_PRO_MINUTE", "500")

    settings = load_settings()

    assert settings.storage_backend == "redis"
    assert settings.limits_for(Plan.PRO) == PlanLimits(minute=500, day=100000)


@pytest.mark.parametrize(
    "name, value",
    [
        ("AKINAI_RATE_LIMIT_PRO_MINUTE", "lots"),
        ("AKINAI_RATE_LIMIT_PRO_MINUTE", "0"),
        ("AKINAI_CREDENTIAL_CACHE_TTL", "-1"),
        ("AKINAI_STORAGE_BACKEND", "postgres"),
    ],
)
def test_malformed_values_rejected(monkeypatch, name, value):
    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError):
        load_settings()


def test_limits_fall_back_to_free_tier():
    settings = Settings(plan_limits={Plan.FREE: PlanLimits(minute=1, day=2)})
    assert settings.limits_for(Plan.STARTER) == PlanLimits(minute=1, day=2)
