"""In-memory registry of live realtime connections.

The registry owns three tables for the lifetime of the process:
- connections: sid -> Connection
- rooms: room name -> set of sids
- sessions: user id -> set of sids authenticated as that user

All three are guarded by a single ``asyncio.Lock``. External calls (token
verification, analytics) are never awaited while the lock is held.
Nothing here is persisted; a restart starts from an empty registry.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from typing import Any
from typing import Protocol

from django.utils import timezone

from .rooms import ADMINS_ROOM
from .rooms import can_join_room
from .rooms import is_privileged
from .rooms import room_for_user

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = {"country": "Unknown", "city": "Unknown"}


class RealtimeError(Exception):
    """Base class for realtime registry errors."""


class AuthorizationDenied(RealtimeError):  # noqa: N818
    def __init__(self, room: str):
        self.room = room
        super().__init__(f"Access denied to room {room!r}")


@dataclass(frozen=True)
class VerifiedUser:
    user_id: str
    display_name: str
    role: str

    @property
    def is_privileged(self) -> bool:
        return is_privileged(self.role)

    def profile(self) -> dict[str, Any]:
        return {"id": self.user_id, "name": self.display_name, "role": self.role}


@dataclass(frozen=True)
class AuthResult:
    ok: bool
    user: dict[str, Any] | None = None
    error: str = ""


@dataclass(frozen=True)
class ClientMetadata:
    user_agent: str = ""
    ip_address: str = ""
    location: dict[str, str] = field(default_factory=lambda: dict(UNKNOWN_LOCATION))


@dataclass
class Connection:
    sid: str
    metadata: ClientMetadata
    connected_at: datetime
    last_activity: datetime
    user_id: str | None = None
    display_name: str | None = None
    role: str | None = None
    is_authenticated: bool = False
    rooms: set[str] = field(default_factory=set, repr=False)

    @property
    def is_privileged(self) -> bool:
        return self.is_authenticated and is_privileged(self.role)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.sid,
            "userId": self.user_id,
            "role": self.role,
            "isAuthenticated": self.is_authenticated,
            "connectedAt": self.connected_at.isoformat(),
            "lastActivity": self.last_activity.isoformat(),
            "rooms": sorted(self.rooms),
            "metadata": {
                "userAgent": self.metadata.user_agent,
                "ipAddress": self.metadata.ip_address,
                "location": dict(self.metadata.location),
            },
        }


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> VerifiedUser | None: ...


class AnalyticsSink(Protocol):
    async def track(
        self,
        event_type: str,
        attributes: dict[str, Any],
        *,
        session_id: str | None = None,
        user_id: str | None = None,
    ) -> None: ...


class ConnectionRegistry:
    def __init__(
        self,
        verifier: TokenVerifier,
        analytics: AnalyticsSink,
        *,
        analytics_timeout: float = 2.0,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self._verifier = verifier
        self._analytics = analytics
        self._analytics_timeout = analytics_timeout
        self._clock = clock
        self._lock = asyncio.Lock()
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = {}
        self._sessions: dict[str, set[str]] = {}

    # Lifecycle -------------------------------------------------------------

    async def register(self, sid: str, metadata: ClientMetadata) -> Connection:
        now = self._clock()
        async with self._lock:
            existing = self._connections.get(sid)
            if existing is not None:
                logger.warning("Socket %s registered twice; keeping first record", sid)
                return self._copy(existing)
            connection = Connection(
                sid=sid,
                metadata=metadata,
                connected_at=now,
                last_activity=now,
            )
            self._connections[sid] = connection
            live = len(self._connections)

        await self._track(
            "socket_connection",
            {
                "userAgent": metadata.user_agent,
                "ipAddress": metadata.ip_address,
                "isAuthenticated": False,
            },
            session_id=sid,
        )
        logger.info("Socket connected: %s (live=%s)", sid, live)
        return self._copy(connection)

    async def unregister(self, sid: str) -> Connection | None:
        async with self._lock:
            connection = self._connections.pop(sid, None)
            if connection is None:
                logger.debug("Socket %s already unregistered", sid)
                return None
            for room in connection.rooms:
                self._discard_member(room, sid)
            if connection.user_id is not None:
                self._discard_session(connection.user_id, sid)

        duration = self._clock() - connection.connected_at
        await self._track(
            "socket_disconnection",
            {
                "sessionDuration": int(duration.total_seconds() * 1000),
                "isAuthenticated": connection.is_authenticated,
            },
            session_id=sid,
            user_id=connection.user_id,
        )
        logger.info("Socket disconnected: %s", sid)
        return connection

    # Identity --------------------------------------------------------------

    async def authenticate(self, sid: str, token: Any) -> AuthResult:
        if not isinstance(token, str) or not token.strip():
            return AuthResult(ok=False, error="Invalid token")

        try:
            user = await self._verifier.verify(token)
        except Exception:  # noqa: BLE001 - a broken verifier must not kill the socket
            logger.exception("Token verifier failed for socket %s", sid)
            return AuthResult(ok=False, error="Authentication failed")

        if user is None:
            logger.info("Socket %s presented an invalid token", sid)
            return AuthResult(ok=False, error="Invalid token")

        async with self._lock:
            connection = self._connections.get(sid)
            if connection is None:
                logger.warning("authenticate on unknown socket %s", sid)
                return AuthResult(ok=False, error="Connection closed")

            previous_user_id = connection.user_id
            if previous_user_id is not None:
                self._discard_session(previous_user_id, sid)
                if previous_user_id != user.user_id:
                    self._leave(connection, room_for_user(previous_user_id))

            connection.user_id = user.user_id
            connection.display_name = user.display_name
            connection.role = user.role
            connection.is_authenticated = True

            # Drop rooms the new identity is no longer entitled to.
            for room in list(connection.rooms):
                if not can_join_room(room, user_id=user.user_id, role=user.role):
                    self._leave(connection, room)

            self._sessions.setdefault(user.user_id, set()).add(sid)
            self._join(connection, room_for_user(user.user_id))
            if user.is_privileged:
                self._join(connection, ADMINS_ROOM)

        logger.info("Socket authenticated: %s - User: %s", sid, user.user_id)
        return AuthResult(ok=True, user=user.profile())

    # Rooms -----------------------------------------------------------------

    async def join_room(self, sid: str, room: str) -> bool:
        """Add ``sid`` to ``room``.

        Raises ``AuthorizationDenied`` when the connection's identity does not
        allow it. Returns ``False`` (and changes nothing) when the socket is
        not registered.
        """

        async with self._lock:
            connection = self._connections.get(sid)
            if connection is None:
                logger.warning("join_room on unknown socket %s", sid)
                return False
            if not can_join_room(
                room,
                user_id=connection.user_id,
                role=connection.role if connection.is_authenticated else None,
            ):
                logger.info("Socket %s denied room %r", sid, room)
                raise AuthorizationDenied(room)
            self._join(connection, room)
        logger.info("Socket %s joined room: %s", sid, room)
        return True

    async def leave_room(self, sid: str, room: str) -> bool:
        if not isinstance(room, str):
            return False
        async with self._lock:
            connection = self._connections.get(sid)
            if connection is None:
                logger.warning("leave_room on unknown socket %s", sid)
                return False
            if room not in connection.rooms:
                return False
            self._leave(connection, room)
        return True

    # Activity --------------------------------------------------------------

    async def record_activity(self, sid: str, payload: Any = None) -> None:
        async with self._lock:
            connection = self._connections.get(sid)
            if connection is not None:
                connection.last_activity = self._clock()
                user_id = connection.user_id
        if connection is None:
            logger.warning("user_activity on unknown socket %s", sid)
            return

        attributes = payload if isinstance(payload, dict) else {"data": payload}
        await self._track("user_activity", attributes, session_id=sid, user_id=user_id)

    async def track(self, sid: str, event_type: str, attributes: dict[str, Any]) -> None:
        """Forward an arbitrary event tagged with the socket's user id."""

        async with self._lock:
            connection = self._connections.get(sid)
            user_id = connection.user_id if connection is not None else None
        if connection is None:
            logger.warning("%s on unknown socket %s", event_type, sid)
            return
        await self._track(event_type, attributes, session_id=sid, user_id=user_id)

    # Reads -----------------------------------------------------------------

    async def get(self, sid: str) -> Connection | None:
        async with self._lock:
            connection = self._connections.get(sid)
            return self._copy(connection) if connection is not None else None

    async def count(self) -> int:
        async with self._lock:
            return len(self._connections)

    async def all_sids(self) -> list[str]:
        async with self._lock:
            return list(self._connections)

    async def room_members(self, room: str) -> list[str]:
        async with self._lock:
            return list(self._rooms.get(room, ()))

    async def user_connections(self, user_id: Any) -> list[str]:
        async with self._lock:
            return list(self._sessions.get(str(user_id), ()))

    async def rooms_of(self, sid: str) -> set[str]:
        async with self._lock:
            connection = self._connections.get(sid)
            return set(connection.rooms) if connection is not None else set()

    async def list_connections(self) -> list[Connection]:
        async with self._lock:
            return [self._copy(c) for c in self._connections.values()]

    async def dashboard_snapshot(self) -> dict[str, Any]:
        async with self._lock:
            connections = list(self._connections.values())
            return {
                "activeConnections": len(connections),
                "authenticatedUsers": sum(1 for c in connections if c.is_authenticated),
                "adminConnections": sum(1 for c in connections if c.is_privileged),
                "timestamp": self._clock().isoformat(),
            }

    # Internals (caller holds the lock) --------------------------------------

    def _join(self, connection: Connection, room: str) -> None:
        connection.rooms.add(room)
        self._rooms.setdefault(room, set()).add(connection.sid)

    def _leave(self, connection: Connection, room: str) -> None:
        connection.rooms.discard(room)
        self._discard_member(room, connection.sid)

    def _discard_member(self, room: str, sid: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(sid)
        if not members:
            del self._rooms[room]

    def _discard_session(self, user_id: str, sid: str) -> None:
        sids = self._sessions.get(user_id)
        if sids is None:
            return
        sids.discard(sid)
        if not sids:
            del self._sessions[user_id]

    @staticmethod
    def _copy(connection: Connection) -> Connection:
        return dataclasses.replace(connection, rooms=set(connection.rooms))

    async def _track(
        self,
        event_type: str,
        attributes: dict[str, Any],
        *,
        session_id: str,
        user_id: str | None = None,
    ) -> None:
        try:
            await asyncio.wait_for(
                self._analytics.track(
                    event_type,
                    attributes,
                    session_id=session_id,
                    user_id=user_id,
                ),
                timeout=self._analytics_timeout,
            )
        except Exception:  # noqa: BLE001 - analytics is best effort
            logger.exception("Failed to track %s for socket %s", event_type, session_id)
