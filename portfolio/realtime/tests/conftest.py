from __future__ import annotations

import asyncio
from typing import Any

import pytest
import socketio

from portfolio.realtime.gateway import build_gateway
from portfolio.realtime.geo import UnknownLocationResolver
from portfolio.realtime.registry import ConnectionRegistry
from portfolio.realtime.registry import VerifiedUser
from portfolio.realtime.router import BroadcastRouter
from portfolio.realtime.snapshots import SnapshotBroadcaster

ADMIN = VerifiedUser(user_id="1", display_name="Ada Admin", role="admin")
VISITOR = VerifiedUser(user_id="u1", display_name="Vic Visitor", role="visitor")
U42 = VerifiedUser(user_id="u42", display_name="Forty Two", role="visitor")


class FakeVerifier:
    def __init__(self, users: dict[str, VerifiedUser] | None = None):
        self.users = users if users is not None else {}
        self.calls: list[str] = []

    async def verify(self, token: str) -> VerifiedUser | None:
        self.calls.append(token)
        if token == "explode":  # noqa: S105
            msg = "verifier unreachable"
            raise ConnectionError(msg)
        return self.users.get(token)


class FakeAnalytics:
    def __init__(self):
        self.events: list[tuple[str, dict[str, Any], str | None, str | None]] = []
        self.summary: dict[str, Any] = {"todayPageViews": 7, "todayUniqueVisitors": 3}
        self.fail_track = False
        self.fail_summary = False
        self.summary_delay = 0.0

    async def track(
        self,
        event_type: str,
        attributes: dict[str, Any],
        *,
        session_id: str | None = None,
        user_id: str | None = None,
    ) -> None:
        if self.fail_track:
            msg = "analytics down"
            raise ConnectionError(msg)
        self.events.append((event_type, attributes, session_id, user_id))

    async def realtime_summary(self) -> dict[str, Any]:
        if self.summary_delay:
            await asyncio.sleep(self.summary_delay)
        if self.fail_summary:
            msg = "analytics down"
            raise ConnectionError(msg)
        return dict(self.summary)

    def types(self) -> list[str]:
        return [event[0] for event in self.events]


class EmitRecorder:
    """Stands in for ``AsyncServer.emit``."""

    def __init__(self):
        self.sent: list[tuple[str, Any, str | None]] = []
        self.dead: set[str] = set()

    async def __call__(self, event: str, data: Any = None, to: str | None = None, **kwargs):
        if to in self.dead:
            msg = f"socket {to} is gone"
            raise ConnectionError(msg)
        self.sent.append((event, data, to))

    def events_for(self, sid: str) -> list[tuple[str, Any]]:
        return [(event, data) for event, data, to in self.sent if to == sid]

    def names_for(self, sid: str) -> list[str]:
        return [event for event, _ in self.events_for(sid)]

    def recipients_of(self, event_name: str) -> set[str]:
        return {to for event, _, to in self.sent if event == event_name}


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier(
        {
            "admin-token": ADMIN,
            "visitor-token": VISITOR,
            "u42-token": U42,
        },
    )


@pytest.fixture
def analytics() -> FakeAnalytics:
    return FakeAnalytics()


@pytest.fixture
def emitter() -> EmitRecorder:
    return EmitRecorder()


@pytest.fixture
def registry(verifier, analytics) -> ConnectionRegistry:
    return ConnectionRegistry(verifier, analytics, analytics_timeout=0.5)


@pytest.fixture
def router(registry, emitter) -> BroadcastRouter:
    return BroadcastRouter(registry, emitter)


@pytest.fixture
def snapshots(router, analytics) -> SnapshotBroadcaster:
    return SnapshotBroadcaster(router, analytics, interval=0.01, fetch_timeout=0.05)


@pytest.fixture
def gateway(verifier, analytics, emitter):
    sio = socketio.AsyncServer(async_mode="asgi", always_connect=True)
    sio.emit = emitter
    return build_gateway(
        verifier=verifier,
        analytics=analytics,
        geo_resolver=UnknownLocationResolver(),
        sio=sio,
    )
