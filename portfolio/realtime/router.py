"""Deliver events to a connection, a user, a room, or everybody.

Audiences are resolved from the registry first and emitted afterwards, so no
emit ever happens while the registry lock is held. Senders never deal with
transport sids unless they want to.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Iterable
from typing import TYPE_CHECKING
from typing import Any

from .rooms import ADMINS_ROOM

if TYPE_CHECKING:  # import for type checking only
    from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)

Emitter = Callable[..., Awaitable[Any]]


class BroadcastRouter:
    def __init__(self, registry: ConnectionRegistry, emit: Emitter):
        # ``emit`` follows python-socketio: ``await emit(event, data, to=sid)``.
        self.registry = registry
        self._emit = emit

    async def send_to_connection(self, sid: str, event: str, payload: Any) -> int:
        if await self.registry.get(sid) is None:
            return 0
        return await self._deliver([sid], event, payload)

    async def send_to_user(self, user_id: Any, event: str, payload: Any) -> int:
        sids = await self.registry.user_connections(user_id)
        return await self._deliver(sids, event, payload)

    async def send_to_room(self, room: str, event: str, payload: Any) -> int:
        sids = await self.registry.room_members(room)
        return await self._deliver(sids, event, payload)

    async def broadcast_to_admins(self, event: str, payload: Any) -> int:
        return await self.send_to_room(ADMINS_ROOM, event, payload)

    async def broadcast_all(self, event: str, payload: Any) -> int:
        sids = await self.registry.all_sids()
        return await self._deliver(sids, event, payload)

    async def _deliver(self, sids: Iterable[str], event: str, payload: Any) -> int:
        delivered = 0
        for sid in sids:
            try:
                await self._emit(event, payload, to=sid)
            except Exception:  # noqa: BLE001 - dead sockets are cleaned up on disconnect
                logger.debug("Dropping %s for socket %s", event, sid, exc_info=True)
                continue
            delivered += 1
        return delivered
