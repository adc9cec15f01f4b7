"""Redis-backed analytics counters.

Events are appended to a per-day list and folded into per-day counters so
that dashboards can read totals without scanning events:

- ``analytics:events:<date>``          list of JSON events (30 days)
- ``analytics:<counter>:<date>``       page_views, project_views, ...
- ``analytics:top_pages:<date>``       sorted set page -> views
- ``analytics:top_projects:<date>``    sorted set project -> views
- ``analytics:unique_visitors:<date>`` set of session ids
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import date
from datetime import timedelta
from typing import Any

import redis.asyncio as redis
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone

logger = logging.getLogger(__name__)

EVENTS_TTL = 60 * 60 * 24 * 30
TOP_LIMIT = 10

# event type -> daily counter it increments
COUNTERS = {
    "page_view": "page_views",
    "project_view": "project_views",
    "contact_form": "contact_forms",
    "download": "downloads",
}


def _day(value: date | None = None) -> str:
    return (value or timezone.now().date()).isoformat()


def date_range(start: date, end: date) -> list[str]:
    days = []
    current = start
    while current <= end:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days


class AnalyticsService:
    def __init__(self, client: redis.Redis | None = None, url: str | None = None):
        self._fixed_client = client
        self._url = url
        self._client: redis.Redis | None = None
        self._client_loop: asyncio.AbstractEventLoop | None = None

    @property
    def client(self) -> redis.Redis:
        """Redis client bound to the running event loop.

        Pooled connections belong to the loop that opened them. Sync views
        reach this service through ``async_to_sync``, which may run each call
        on a fresh loop, so a new client is built whenever the loop changes.
        """

        if self._fixed_client is not None:
            return self._fixed_client
        loop = asyncio.get_running_loop()
        if self._client is None or self._client_loop is not loop:
            self._client = redis.Redis.from_url(
                self._url or settings.REDIS_URL,
                decode_responses=True,
                socket_timeout=0.5,
                socket_connect_timeout=0.5,
            )
            self._client_loop = loop
        return self._client

    async def track(
        self,
        event_type: str,
        attributes: dict[str, Any],
        *,
        session_id: str | None = None,
        user_id: str | None = None,
    ) -> None:
        """Record one event. Failures are logged and swallowed."""

        today = _day()
        event = {
            "type": event_type,
            "sessionId": session_id,
            "userId": user_id,
            "data": attributes,
            "timestamp": timezone.now(),
        }
        try:
            key = f"analytics:events:{today}"
            await self.client.lpush(key, json.dumps(event, cls=DjangoJSONEncoder))
            await self.client.expire(key, EVENTS_TTL)
            await self._update_counters(event_type, attributes, session_id, today)
        except Exception:  # noqa: BLE001 - analytics never breaks callers
            logger.exception("Failed to track analytics event %s", event_type)

    async def _update_counters(
        self,
        event_type: str,
        attributes: dict[str, Any],
        session_id: str | None,
        today: str,
    ) -> None:
        counter = COUNTERS.get(event_type)
        if counter is not None:
            await self.client.incr(f"analytics:{counter}:{today}")
        if event_type == "page_view" and attributes.get("page"):
            await self.client.zincrby(
                f"analytics:top_pages:{today}",
                1,
                str(attributes["page"]),
            )
        if event_type == "project_view" and attributes.get("projectId"):
            await self.client.zincrby(
                f"analytics:top_projects:{today}",
                1,
                str(attributes["projectId"]),
            )
        if session_id:
            await self.client.sadd(f"analytics:unique_visitors:{today}", session_id)

    async def realtime_summary(self) -> dict[str, Any]:
        today = _day()
        page_views = await self.client.get(f"analytics:page_views:{today}")
        unique_visitors = await self.client.scard(f"analytics:unique_visitors:{today}")
        project_views = await self.client.get(f"analytics:project_views:{today}")
        return {
            "todayPageViews": int(page_views or 0),
            "todayUniqueVisitors": int(unique_visitors or 0),
            "todayProjectViews": int(project_views or 0),
            "timestamp": timezone.now().isoformat(),
        }

    async def get_metrics(self, start: date, end: date) -> dict[str, Any]:
        days = date_range(start, end)
        totals = {
            counter: await self._sum_counter(counter, days)
            for counter in COUNTERS.values()
        }
        visitors: set[str] = set()
        for day in days:
            visitors.update(await self.client.smembers(f"analytics:unique_visitors:{day}"))
        return {
            "pageViews": totals["page_views"],
            "uniqueVisitors": len(visitors),
            "projectViews": totals["project_views"],
            "contactFormSubmissions": totals["contact_forms"],
            "downloadCount": totals["downloads"],
            "topPages": [
                {"page": page, "views": views}
                for page, views in await self._top("top_pages", days)
            ],
            "topProjects": [
                {"project": project, "views": views}
                for project, views in await self._top("top_projects", days)
            ],
        }

    async def _sum_counter(self, counter: str, days: list[str]) -> int:
        total = 0
        for day in days:
            total += int(await self.client.get(f"analytics:{counter}:{day}") or 0)
        return total

    async def _top(self, name: str, days: list[str]) -> list[tuple[str, int]]:
        scores: dict[str, int] = {}
        for day in days:
            rows = await self.client.zrevrange(
                f"analytics:{name}:{day}",
                0,
                -1,
                withscores=True,
            )
            for member, score in rows:
                scores[member] = scores.get(member, 0) + int(score)
        ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:TOP_LIMIT]
