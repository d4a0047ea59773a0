"""API usage logging"""

import asyncio
import logging
import re
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set
from fastapi import Request
from redis.asyncio import Redis
from redis.exceptions import RedisError
from slowapi.util import get_remote_address

from akinai_gateway.errors import PersistenceError
from akinai_gateway.models.usage import DailyUsage, UsageLogEntry, UsageStats
from akinai_gateway.storage.redis_client import key

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)
USAGE_LOG_LIMIT = 10000
USAGE_RETENTION_SECONDS = 90 * 24 * 3600


def normalize_endpoint(path: str) -> str:
    """Replace UUID path segments with ':id'"""
    return UUID_PATTERN.sub(":id", path)


def get_client_ip(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client is None:
        return None
    return get_remote_address(request)


def get_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("user-agent") or None


class UsageRecorder:
    """
    Best-effort usage log

    `record` and `record_nowait` never raise; a failing backend is logged
    and the entry is dropped.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    async def _append(self, entry: UsageLogEntry):
        raise NotImplementedError

    async def _daily(self, tenant_id: str, dates: List[str]) -> List[DailyUsage]:
        raise NotImplementedError

    async def record(self, entry: UsageLogEntry) -> None:
        try:
            await self._append(entry)
        except Exception as e:
            logger.error("Failed to log API usage for tenant %s: %s", entry.tenant_id, e)

    def record_nowait(self, entry: UsageLogEntry) -> None:
        """Schedule `record` in the background and return immediately"""
        task = asyncio.create_task(self.record(entry))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self):
        """Wait for every scheduled record to finish"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stats(self, tenant_id: str, days: int = 30) -> UsageStats:
        """Usage totals for the last `days` days, including today"""
        today = datetime.now(timezone.utc).date()
        dates = [(today - timedelta(days=offset)).isoformat() for offset in range(days - 1, -1, -1)]

        try:
            daily = await self._daily(tenant_id, dates)
        except Exception as e:
            logger.error("Error fetching API usage stats for tenant %s: %s", tenant_id, e)
            return UsageStats()

        total = sum(d.total_requests for d in daily)
        weighted = sum(d.avg_response_time_ms * d.total_requests for d in daily)
        return UsageStats(
            total_requests=total,
            successful_requests=sum(d.successful_requests for d in daily),
            failed_requests=sum(d.failed_requests for d in daily),
            avg_response_time_ms=round(weighted / total) if total else 0,
            daily=daily,
        )


class RedisUsageRecorder(UsageRecorder):
    """Usage log as a capped list plus per-day counters"""

    def __init__(self, client: Redis):
        super().__init__()
        self.client = client

    async def _append(self, entry: UsageLogEntry):
        log_key = key("api_usage", entry.tenant_id)
        daily_key = key("api_usage", "daily", entry.tenant_id, entry.created_at.date().isoformat())
        try:
            await self.client.lpush(log_key, entry.model_dump_json())
            await self.client.ltrim(log_key, 0, USAGE_LOG_LIMIT - 1)

            await self.client.hincrby(daily_key, "total_requests", 1)
            await self.client.hincrby(
                daily_key,
                "successful_requests" if entry.successful else "failed_requests",
                1,
            )
            await self.client.hincrby(daily_key, "total_response_time_ms", entry.response_time_ms)
            await self.client.expire(daily_key, USAGE_RETENTION_SECONDS)
        except RedisError as e:
            raise PersistenceError(f"usage log write failed: {e}") from e

    async def _daily(self, tenant_id: str, dates: List[str]) -> List[DailyUsage]:
        daily = []
        for date in dates:
            data = await self.client.hgetall(key("api_usage", "daily", tenant_id, date))
            total = int(data.get("total_requests", 0))
            if not total:
                continue
            daily.append(DailyUsage(
                date=date,
                total_requests=total,
                successful_requests=int(data.get("successful_requests", 0)),
                failed_requests=int(data.get("failed_requests", 0)),
                avg_response_time_ms=round(int(data.get("total_response_time_ms", 0)) / total),
            ))
        return daily


class InMemoryUsageRecorder(UsageRecorder):
    """Process-local usage log for development and tests"""

    def __init__(self):
        super().__init__()
        self.entries: List[UsageLogEntry] = []

    async def _append(self, entry: UsageLogEntry):
        self.entries.append(entry)

    async def _daily(self, tenant_id: str, dates: List[str]) -> List[DailyUsage]:
        by_date: Dict[str, List[UsageLogEntry]] = defaultdict(list)
        for entry in self.entries:
            if entry.tenant_id == tenant_id:
                by_date[entry.created_at.date().isoformat()].append(entry)

        daily = []
        for date in dates:
            entries = by_date.get(date)
            if not entries:
                continue
            successful = sum(1 for e in entries if e.successful)
            daily.append(DailyUsage(
                date=date,
                total_requests=len(entries),
                successful_requests=successful,
                failed_requests=len(entries) - successful,
                avg_response_time_ms=round(sum(e.response_time_ms for e in entries) / len(entries)),
            ))
        return daily
