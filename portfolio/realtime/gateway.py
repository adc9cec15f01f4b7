"""Process-wide realtime services, wired once at startup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import socketio
from django.apps import apps
from django.conf import settings

from portfolio.analytics.service import AnalyticsService

from .auth import JWTTokenVerifier
from .geo import get_geo_resolver
from .registry import ConnectionRegistry
from .router import BroadcastRouter
from .snapshots import SnapshotBroadcaster
from .socketio import create_server
from .socketio import register_handlers

logger = logging.getLogger(__name__)


@dataclass
class RealtimeGateway:
    sio: socketio.AsyncServer
    registry: ConnectionRegistry
    router: BroadcastRouter
    snapshots: SnapshotBroadcaster
    analytics: Any
    geo_resolver: Any = None

    async def startup(self) -> None:
        self.snapshots.start()

    async def shutdown(self) -> None:
        await self.snapshots.stop()

    def asgi_app(self, other_asgi_app: Any = None, socketio_path: str | None = None):
        return socketio.ASGIApp(
            self.sio,
            other_asgi_app=other_asgi_app,
            socketio_path=socketio_path or settings.REALTIME_SOCKETIO_PATH,
            on_startup=self.startup,
            on_shutdown=self.shutdown,
        )


def build_gateway(
    *,
    verifier: Any = None,
    analytics: Any = None,
    geo_resolver: Any = None,
    sio: socketio.AsyncServer | None = None,
) -> RealtimeGateway:
    analytics = analytics if analytics is not None else AnalyticsService()
    sio = sio or create_server(settings.REALTIME_CORS_ALLOWED_ORIGINS)
    registry = ConnectionRegistry(
        verifier if verifier is not None else JWTTokenVerifier(),
        analytics,
        analytics_timeout=settings.REALTIME_ANALYTICS_TIMEOUT,
    )
    router = BroadcastRouter(registry, sio.emit)
    snapshots = SnapshotBroadcaster(
        router,
        analytics,
        interval=settings.REALTIME_SNAPSHOT_INTERVAL,
        fetch_timeout=settings.REALTIME_ANALYTICS_TIMEOUT,
    )
    gateway = RealtimeGateway(
        sio=sio,
        registry=registry,
        router=router,
        snapshots=snapshots,
        analytics=analytics,
        geo_resolver=geo_resolver if geo_resolver is not None else get_geo_resolver(),
    )
    register_handlers(gateway)
    return gateway


def get_gateway() -> RealtimeGateway:
    """Return the gateway built by the realtime app at startup."""

    return apps.get_app_config("realtime").gateway
