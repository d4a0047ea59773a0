"""Tests for usage logging"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from starlette.requests import Request

from akinai_gateway.errors import PersistenceError
from akinai_gateway.models.usage import UsageLogEntry
from akinai_gateway.usage.recorder import (
    InMemoryUsageRecorder,
    RedisUsageRecorder,
    UsageRecorder,
    get_client_ip,
    normalize_endpoint,
)


def make_request(headers=None, client=("10.0.0.9", 52000)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/v1/usage",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def entry(status_code=200, response_time_ms=100, created_at=None, tenant_id="org_1"):
    return UsageLogEntry(
        tenant_id=tenant_id,
        endpoint="/api/v1/webhooks",
        method="GET",
        status_code=status_code,
        response_time_ms=response_time_ms,
        created_at=created_at or datetime.now(timezone.utc),
    )


def test_normalize_endpoint():
    path = "/api/v1/webhooks/3f2b8c1e-9a4d-4e5f-8b6a-0c1d2e3f4a5b/deliveries"
    assert normalize_endpoint(path) == "/api/v1/webhooks/:id/deliveries"
    assert normalize_endpoint("/api/v1/usage") == "/api/v1/usage"


@pytest.mark.parametrize(
    "headers, client, expected",
    [
        ({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}, ("10.0.0.9", 1), "203.0.113.7"),
        ({"X-Real-IP": "198.51.100.2"}, ("10.0.0.9", 1), "198.51.100.2"),
        ({}, ("10.0.0.9", 1), "10.0.0.9"),
        ({}, None, None),
    ],
)
def test_get_client_ip(headers, client, expected):
    assert get_client_ip(make_request(headers, client)) == expected


@pytest.mark.asyncio
async def test_stats_aggregates_days():
    """Totals span the range; the average is weighted by request count"""
    recorder = InMemoryUsageRecorder()
    now = datetime.now(timezone.utc)
    await recorder.record(entry(200, 100, now))
    await recorder.record(entry(404, 200, now))
    await recorder.record(entry(200, 400, now - timedelta(days=1)))
    await recorder.record(entry(200, 900, now - timedelta(days=40)))
    await recorder.record(entry(200, 100, now, tenant_id="org_2"))

    stats = await recorder.stats("org_1", days=30)

    assert stats.total_requests == 3
    assert stats.successful_requests == 2
    assert stats.failed_requests == 1
    assert stats.avg_response_time_ms == round((100 + 200 + 400) / 3)
    assert [d.date for d in stats.daily] == [
        (now - timedelta(days=1)).date().isoformat(),
        now.date().isoformat(),
    ]


@pytest.mark.asyncio
async def test_record_swallows_backend_errors():
    """A failing usage log never surfaces to the request"""
    class BrokenRecorder(UsageRecorder):
        async def _append(self, entry):
            raise PersistenceError("disk full")

        async def _daily(self, tenant_id, dates):
            raise PersistenceError("disk full")

    recorder = BrokenRecorder()
    await recorder.record(entry())
    recorder.record_nowait(entry())
    await recorder.drain()

    assert recorder.pending == 0
    assert (await recorder.stats("org_1")).total_requests == 0


@pytest.mark.asyncio
async def test_record_nowait_returns_before_write():
    recorder = InMemoryUsageRecorder()

    recorder.record_nowait(entry())
    assert recorder.pending == 1
    assert recorder.entries == []

    await recorder.drain()
    assert len(recorder.entries) == 1


@pytest.mark.asyncio
async def test_redis_recorder_writes_log_and_daily_counters():
    client = AsyncMock()
    recorder = RedisUsageRecorder(client)
    created_at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    await recorder.record(entry(500, 250, created_at))

    client.lpush.assert_awaited_once()
    assert client.lpush.await_args.args[0] == "akinai:api_usage:org_1"
    client.ltrim.assert_awaited_once_with("akinai:api_usage:org_1", 0, 9999)
    daily_key = "akinai:api_usage:daily:org_1:2026-03-01"
    fields = [c.args[1:] for c in client.hincrby.await_args_list]
    assert fields == [("total_requests", 1), ("failed_requests", 1), ("total_response_time_ms", 250)]
    assert all(c.args[0] == daily_key for c in client.hincrby.await_args_list)


@pytest.mark.asyncio
async def test_redis_errors_become_persistence_errors():
    client = AsyncMock()
    client.lpush.side_effect = RedisConnectionError("connection refused")
    recorder = RedisUsageRecorder(client)

    with pytest.raises(PersistenceError):
        await recorder._append(entry())

    await recorder.record(entry())


@pytest.mark.asyncio
async def test_redis_stats_reads_daily_hashes():
    client = AsyncMock()

    async def hgetall(name):
        if name.endswith(datetime.now(timezone.utc).date().isoformat()):
            return {
                "total_requests": "4",
                "successful_requests": "3",
                "failed_requests": "1",
                "total_response_time_ms": "400",
            }
        return {}

    client.hgetall.side_effect = hgetall
    stats = await RedisUsageRecorder(client).stats("org_1", days=7)

    assert client.hgetall.await_count == 7
    assert stats.total_requests == 4
    assert stats.failed_requests == 1
    assert stats.avg_response_time_ms == 100
