from __future__ import annotations

import pytest

from portfolio.analytics.service import AnalyticsService


class FakeRedis:
    """The slice of ``redis.asyncio.Redis`` the analytics service uses."""

    def __init__(self):
        self.strings: dict[str, str] = {}
        self.lists: dict[str, list[str]] = {}
        self.sets: dict[str, set[str]] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.ttls: dict[str, int] = {}

    async def lpush(self, key, *values):
        self.lists.setdefault(key, [])[:0] = reversed(values)
        return len(self.lists[key])

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    async def incr(self, key):
        self.strings[key] = str(int(self.strings.get(key, 0)) + 1)
        return int(self.strings[key])

    async def get(self, key):
        return self.strings.get(key)

    async def sadd(self, key, *members):
        self.sets.setdefault(key, set()).update(members)
        return len(members)

    async def scard(self, key):
        return len(self.sets.get(key, ()))

    async def smembers(self, key):
        return set(self.sets.get(key, ()))

    async def zincrby(self, key, amount, member):
        zset = self.zsets.setdefault(key, {})
        zset[member] = zset.get(member, 0) + amount
        return zset[member]

    async def zrevrange(self, key, start, end, withscores=False):
        rows = sorted(self.zsets.get(key, {}).items(), key=lambda item: -item[1])
        if end != -1:
            rows = rows[start : end + 1]
        return rows if withscores else [member for member, _ in rows]


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def service(fake_redis) -> AnalyticsService:
    return AnalyticsService(client=fake_redis)
