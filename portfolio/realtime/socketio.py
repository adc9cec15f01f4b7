"""Socket.IO event surface for the portfolio frontend.

Clients connect anonymously and may authenticate at any time, either in the
handshake (``auth: {token}``, ``?token=`` or an ``Authorization`` header) or
later with an ``authenticate`` event. A bad token never refuses the
connection; the socket just stays anonymous.

Handlers run inline (``async_handlers=False``) so one socket's events are
processed in the order they arrive.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any
from urllib.parse import parse_qs

import socketio
from django.utils import timezone

from .geo import resolve_location
from .registry import AuthorizationDenied
from .registry import ClientMetadata
from .rooms import ADMIN_DASHBOARD_ROOM

if TYPE_CHECKING:  # import for type checking only
    from .gateway import RealtimeGateway

logger = logging.getLogger(__name__)


def create_server(cors_allowed_origins: Any = "*") -> socketio.AsyncServer:
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=cors_allowed_origins,
        # CONNECT is acknowledged before the connect handler runs, so the
        # handler may emit and anonymous sockets are never refused.
        always_connect=True,
        async_handlers=False,
        logger=False,
        engineio_logger=False,
    )


def _scope(environ: dict[str, Any]) -> dict[str, Any]:
    if isinstance(environ, dict) and isinstance(environ.get("asgi.scope"), dict):
        return environ["asgi.scope"]
    return environ if isinstance(environ, dict) else {}


def _header(environ: dict[str, Any], name: str) -> str:
    """Read a request header from a WSGI-style environ or an ASGI scope."""

    if not isinstance(environ, dict):
        return ""
    wsgi_key = "HTTP_" + name.upper().replace("-", "_")
    value = environ.get(wsgi_key)
    if isinstance(value, str) and value:
        return value

    wanted = name.lower().encode()
    for key, raw in _scope(environ).get("headers", []) or []:
        if key.lower() == wanted:
            return raw.decode(errors="ignore")
    return ""


def extract_token(environ: dict[str, Any], auth: Any | None) -> str | None:
    """Extract an access token from the Socket.IO handshake.

    Handles python-socketio environ shapes across ASGI/WSGI servers.
    """

    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token

    scope = _scope(environ)
    query_string: str | bytes = ""
    if "query_string" in scope:
        query_string = scope.get("query_string", b"")
    elif "QUERY_STRING" in scope:
        query_string = scope.get("QUERY_STRING", "")
    elif isinstance(environ, dict):
        query_string = environ.get("QUERY_STRING", "")

    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token

    header = _header(environ, "Authorization")
    return header or None


def client_ip(environ: dict[str, Any]) -> str:
    forwarded = _header(environ, "X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if isinstance(environ, dict) and environ.get("REMOTE_ADDR"):
        return str(environ["REMOTE_ADDR"])
    client = _scope(environ).get("client")
    if client:
        return str(client[0])
    return ""


async def client_metadata(environ: dict[str, Any], geo_resolver: Any) -> ClientMetadata:
    ip_address = client_ip(environ)
    return ClientMetadata(
        user_agent=_header(environ, "User-Agent"),
        ip_address=ip_address,
        location=await resolve_location(geo_resolver, ip_address),
    )


def _field(data: Any, name: str) -> Any:
    return data.get(name) if isinstance(data, dict) else None


def register_handlers(gateway: RealtimeGateway) -> None:  # noqa: C901
    sio = gateway.sio
    registry = gateway.registry
    router = gateway.router

    async def _authenticate(sid: str, token: Any) -> None:
        result = await registry.authenticate(sid, token)
        if result.ok:
            await router.send_to_connection(
                sid,
                "authentication_success",
                {"user": result.user},
            )
        else:
            await router.send_to_connection(
                sid,
                "authentication_error",
                {"message": result.error},
            )

    @sio.event
    async def connect(sid: str, environ: dict[str, Any], auth: Any | None = None):
        metadata = await client_metadata(environ, gateway.geo_resolver)
        await registry.register(sid, metadata)
        await router.send_to_connection(
            sid,
            "connection_established",
            {
                "connectionId": sid,
                "serverTime": timezone.now().isoformat(),
                "liveCount": await registry.count(),
            },
        )

        token = extract_token(environ, auth)
        if token:
            await _authenticate(sid, token)

    @sio.event
    async def disconnect(sid: str, reason: Any = None):
        await registry.unregister(sid)

    @sio.event
    async def authenticate(sid: str, data: Any = None):
        await _authenticate(sid, _field(data, "token"))

    @sio.event
    async def join_room(sid: str, data: Any = None):
        room = _field(data, "room")
        try:
            joined = await registry.join_room(sid, room)
        except AuthorizationDenied:
            await router.send_to_connection(
                sid,
                "room_join_error",
                {"message": "Access denied to room"},
            )
            return
        if joined:
            await router.send_to_connection(sid, "room_joined", {"room": room})

    @sio.event
    async def leave_room(sid: str, data: Any = None):
        room = _field(data, "room")
        await registry.leave_room(sid, room)
        await router.send_to_connection(sid, "room_left", {"room": room})

    @sio.event
    async def admin_dashboard_subscribe(sid: str, data: Any = None):
        connection = await registry.get(sid)
        if connection is None or not connection.is_privileged:
            await router.send_to_connection(
                sid,
                "subscription_error",
                {"message": "Admin access required"},
            )
            return
        try:
            await registry.join_room(sid, ADMIN_DASHBOARD_ROOM)
        except AuthorizationDenied:
            await router.send_to_connection(
                sid,
                "subscription_error",
                {"message": "Admin access required"},
            )
            return
        await router.send_to_connection(
            sid,
            "dashboard_update",
            await gateway.snapshots.dashboard_data(),
        )
        logger.info("Admin subscribed to dashboard: %s", sid)

    @sio.event
    async def user_activity(sid: str, data: Any = None):
        await registry.record_activity(sid, data)

    @sio.event
    async def project_view(sid: str, data: Any = None):
        project_id = _field(data, "projectId")
        slug = _field(data, "slug")
        await registry.track(sid, "project_view", {"projectId": project_id, "slug": slug})

        connection = await registry.get(sid)
        await router.send_to_room(
            ADMIN_DASHBOARD_ROOM,
            "project_view_update",
            {
                "projectId": project_id,
                "slug": slug,
                "timestamp": timezone.now().isoformat(),
                "userId": connection.user_id if connection is not None else None,
            },
        )

    @sio.event
    async def real_time_analytics(sid: str, data: Any = None):
        connection = await registry.get(sid)
        if connection is None or not connection.is_privileged:
            return
        summary = await gateway.snapshots.analytics_summary()
        if summary is not None:
            await router.send_to_connection(sid, "real_time_analytics", summary)
