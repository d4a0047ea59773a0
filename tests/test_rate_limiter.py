"""Tests for rate limiting"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from akinai_gateway.models.tenant import Plan, PlanLimits
from akinai_gateway.rate_limiter.counters import (
    CounterStore,
    InMemoryCounterStore,
    RedisCounterStore,
    HIT_SCRIPT,
)
from akinai_gateway.rate_limiter.limiter import RateLimiter


class Clock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def limiter_with(minute=5, day=100, clock=None):
    counters = InMemoryCounterStore(clock=clock or Clock())
    return RateLimiter(counters, {Plan.FREE: PlanLimits(minute=minute, day=day)})


@pytest.mark.asyncio
async def test_minute_limit_enforced():
    """Requests beyond the minute quota are denied with Retry-After"""
    limiter = limiter_with(minute=3)

    results = [await limiter.check("org_1", Plan.FREE) for _ in range(5)]

    assert [r.allowed for r in results] == [True, True, True, False, False]
    assert [r.minute_remaining for r in results] == [2, 1, 0, 0, 0]
    assert results[0].retry_after_seconds is None
    assert results[3].retry_after_seconds == 60
    assert results[3].headers()["Retry-After"] == "60"
    assert "Retry-After" not in results[0].headers()


@pytest.mark.asyncio
async def test_concurrent_requests_never_over_admit():
    """Under concurrent load no more than minute_limit requests are admitted"""
    limiter = limiter_with(minute=10, day=1000)

    results = await asyncio.gather(*[limiter.check("org_1", Plan.FREE) for _ in range(100)])

    assert sum(r.allowed for r in results) == 10
    assert all(0 <= r.minute_remaining <= r.minute_limit for r in results)


@pytest.mark.asyncio
async def test_windows_reset_and_day_limit_holds():
    """A new minute window admits again until the day quota runs out"""
    clock = Clock()
    limiter = limiter_with(minute=2, day=3, clock=clock)

    assert (await limiter.check("org_1", Plan.FREE)).allowed
    assert (await limiter.check("org_1", Plan.FREE)).allowed
    assert not (await limiter.check("org_1", Plan.FREE)).allowed

    clock.now += 60
    third = await limiter.check("org_1", Plan.FREE)
    assert third.allowed
    assert third.day_remaining == 0

    fourth = await limiter.check("org_1", Plan.FREE)
    assert not fourth.allowed
    assert fourth.minute_remaining == 1

    clock.now += 86400
    assert (await limiter.check("org_1", Plan.FREE)).allowed


@pytest.mark.asyncio
async def test_tenants_are_isolated():
    limiter = limiter_with(minute=1)

    assert (await limiter.check("org_1", Plan.FREE)).allowed
    assert (await limiter.check("org_2", Plan.FREE)).allowed
    assert not (await limiter.check("org_1", Plan.FREE)).allowed


@pytest.mark.asyncio
async def test_limits_depend_on_plan():
    """Unconfigured plans fall back to the free tier; default tiers differ"""
    limiter = RateLimiter(InMemoryCounterStore())

    free = await limiter.check("org_1", Plan.FREE)
    pro = await limiter.check("org_2", Plan.PRO)

    assert free.minute_limit < pro.minute_limit
    assert free.day_limit < pro.day_limit
    assert limiter_with().limits_for(Plan.ENTERPRISE) == PlanLimits(minute=5, day=100)


@pytest.mark.asyncio
async def test_fail_open_when_counter_store_errors():
    """A failing counter backend does not reject legitimate traffic"""
    class BrokenCounters(CounterStore):
        async def hit(self, tenant_id, minute_limit, day_limit):
            raise ConnectionError("redis unreachable")

    limiter = RateLimiter(BrokenCounters(), {Plan.FREE: PlanLimits(minute=60, day=10000)})

    result = await limiter.check("org_1", Plan.FREE)

    assert result.allowed
    assert result.minute_limit == result.minute_remaining == 60
    assert result.day_limit == result.day_remaining == 10000
    assert result.retry_after_seconds is None


@pytest.mark.asyncio
async def test_redis_counter_store_runs_single_script():
    """Both windows are checked and incremented by one script call"""
    script = AsyncMock(return_value=[1, 4, 40])
    client = MagicMock()
    client.register_script.return_value = script

    store = RedisCounterStore(client, clock=lambda: 1_700_000_000.0)
    counts = await store.hit("org_1", 60, 10000)

    client.register_script.assert_called_once_with(HIT_SCRIPT)
    script.assert_awaited_once()
    kwargs = script.await_args.kwargs
    assert kwargs["keys"] == [
        "akinai:rate_limit:org_1:minute:28333333",
        "akinai:rate_limit:org_1:day:19675",
    ]
    assert kwargs["args"][:2] == [60, 10000]
    assert counts.allowed and counts.minute_used == 4 and counts.day_used == 40


@pytest.mark.asyncio
async def test_redis_denial_maps_to_result():
    script = AsyncMock(return_value=[0, 60, 61])
    client = MagicMock()
    client.register_script.return_value = script
    limiter = RateLimiter(RedisCounterStore(client), {Plan.FREE: PlanLimits(minute=60, day=10000)})

    result = await limiter.check("org_1", Plan.FREE)

    assert not result.allowed
    assert result.minute_remaining == 0
    assert result.day_remaining == 10000 - 61
