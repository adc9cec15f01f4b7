"""Periodic push of dashboard, analytics and live-count snapshots."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING
from typing import Any
from typing import Protocol

from .rooms import ADMIN_DASHBOARD_ROOM
from .rooms import ADMINS_ROOM

if TYPE_CHECKING:  # import for type checking only
    from .router import BroadcastRouter

logger = logging.getLogger(__name__)


class AnalyticsSummarySource(Protocol):
    async def realtime_summary(self) -> dict[str, Any]: ...


class SnapshotBroadcaster:
    """Owns the only background task of the realtime layer.

    Every ``interval`` seconds:
    - ``dashboard_update`` goes to ``admin_dashboard``
    - ``real_time_analytics`` goes to ``admins``
    - ``active_users_count`` goes to every connection

    The analytics fetch is bounded by ``fetch_timeout``. When it fails the last
    known summary is pushed instead; with nothing known yet that push is
    skipped for the tick.
    """

    def __init__(
        self,
        router: BroadcastRouter,
        analytics: AnalyticsSummarySource,
        *,
        interval: float = 10.0,
        fetch_timeout: float = 2.0,
    ):
        self.router = router
        self.analytics = analytics
        self.interval = interval
        self.fetch_timeout = fetch_timeout
        self._last_summary: dict[str, Any] | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(),
            name="realtime-snapshots",
        )
        logger.info("Realtime snapshots every %ss", self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Realtime snapshots stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except Exception:  # noqa: BLE001 - keep the loop alive
                logger.exception("Error broadcasting real-time data")

    async def dashboard_data(self) -> dict[str, Any]:
        return await self.router.registry.dashboard_snapshot()

    async def analytics_summary(self) -> dict[str, Any] | None:
        try:
            summary = await asyncio.wait_for(
                self.analytics.realtime_summary(),
                timeout=self.fetch_timeout,
            )
        except Exception:  # noqa: BLE001 - fall back to the previous summary
            logger.warning("Analytics summary unavailable; reusing last value")
            return self._last_summary
        self._last_summary = summary
        return summary

    async def tick(self) -> dict[str, int]:
        """Run one snapshot round and return per-event delivery counts."""

        dashboard = await self.dashboard_data()
        delivered = {
            "dashboard_update": await self.router.send_to_room(
                ADMIN_DASHBOARD_ROOM,
                "dashboard_update",
                dashboard,
            ),
        }

        summary = await self.analytics_summary()
        if summary is not None:
            delivered["real_time_analytics"] = await self.router.send_to_room(
                ADMINS_ROOM,
                "real_time_analytics",
                summary,
            )

        delivered["active_users_count"] = await self.router.broadcast_all(
            "active_users_count",
            {"count": dashboard["activeConnections"]},
        )
        return delivered
