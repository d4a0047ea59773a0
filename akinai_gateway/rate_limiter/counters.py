"""Counter stores with atomic check-and-increment over two windows"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple
from redis.asyncio import Redis

from akinai_gateway.storage.redis_client import key

MINUTE_SECONDS = 60
DAY_SECONDS = 86400


@dataclass(frozen=True)
class WindowCounts:
    """Outcome of a check-and-increment"""
    allowed: bool
    minute_used: int
    day_used: int


def window_ids(now: float) -> Tuple[int, int]:
    """Fixed minute and day window numbers for a unix timestamp"""
    return int(now // MINUTE_SECONDS), int(now // DAY_SECONDS)


class CounterStore:
    """Shared counter backend"""

    async def hit(self, tenant_id: str, minute_limit: int, day_limit: int) -> WindowCounts:
        """
        Admit one request if both windows have room

        Check and increment happen as one atomic step. A denied request
        does not increment either counter.
        """
        raise NotImplementedError


# KEYS: minute counter, day counter
# ARGV: minute limit, day limit, minute ttl, day ttl
HIT_SCRIPT = """
local minute_used = tonumber(redis.call('GET', KEYS[1]) or '0')
local day_used = tonumber(redis.call('GET', KEYS[2]) or '0')
if minute_used >= tonumber(ARGV[1]) or day_used >= tonumber(ARGV[2]) then
  return {0, minute_used, day_used}
end
minute_used = redis.call('INCR', KEYS[1])
if minute_used == 1 then
  redis.call('EXPIRE', KEYS[1], ARGV[3])
end
day_used = redis.call('INCR', KEYS[2])
if day_used == 1 then
  redis.call('EXPIRE', KEYS[2], ARGV[4])
end
return {1, minute_used, day_used}
"""


class RedisCounterStore(CounterStore):
    """Fixed-window counters evaluated by a single Lua script"""

    def __init__(self, client: Redis, clock: Callable[[], float] = time.time):
        self.client = client
        self.clock = clock
        self._script = client.register_script(HIT_SCRIPT)

    def keys_for(self, tenant_id: str, now: float) -> Tuple[str, str]:
        minute_window, day_window = window_ids(now)
        return (
            key("rate_limit", tenant_id, "minute", str(minute_window)),
            key("rate_limit", tenant_id, "day", str(day_window)),
        )

    async def hit(self, tenant_id: str, minute_limit: int, day_limit: int) -> WindowCounts:
        minute_key, day_key = self.keys_for(tenant_id, self.clock())
        allowed, minute_used, day_used = await self._script(
            keys=[minute_key, day_key],
            args=[minute_limit, day_limit, MINUTE_SECONDS * 2, DAY_SECONDS * 2],
        )
        return WindowCounts(bool(int(allowed)), int(minute_used), int(day_used))


class InMemoryCounterStore(CounterStore):
    """Process-local counters guarded by one asyncio lock"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.counters: Dict[Tuple[str, str, int], int] = {}
        self._lock = asyncio.Lock()

    async def hit(self, tenant_id: str, minute_limit: int, day_limit: int) -> WindowCounts:
        async with self._lock:
            minute_window, day_window = window_ids(self.clock())
            self._expire(minute_window, day_window)

            minute_key = (tenant_id, "minute", minute_window)
            day_key = (tenant_id, "day", day_window)
            minute_used = self.counters.get(minute_key, 0)
            day_used = self.counters.get(day_key, 0)

            if minute_used >= minute_limit or day_used >= day_limit:
                return WindowCounts(False, minute_used, day_used)

            self.counters[minute_key] = minute_used + 1
            self.counters[day_key] = day_used + 1
            return WindowCounts(True, minute_used + 1, day_used + 1)

    def _expire(self, minute_window: int, day_window: int):
        stale = [
            k for k in self.counters
            if (k[1] == "minute" and k[2] < minute_window) or (k[1] == "day" and k[2] < day_window)
        ]
        for k in stale:
            del self.counters[k]
