"""Room names and the rule deciding who may join them.

Rooms are plain strings shared by every feature that pushes realtime events:
- ``user:<id>``: every live connection of one user
- ``admins``: every connection authenticated with the admin role
- ``admin_dashboard``: admins currently looking at the dashboard
- ``public_<anything>``: open channels
"""

from __future__ import annotations

from typing import Any

ADMINS_ROOM = "admins"
ADMIN_DASHBOARD_ROOM = "admin_dashboard"

ADMIN_ROOM_PREFIX = "admin_"
USER_ROOM_PREFIX = "user:"
PUBLIC_ROOM_PREFIX = "public_"

PRIVILEGED_ROLE = "admin"


def room_for_user(user_id: Any) -> str:
    return f"{USER_ROOM_PREFIX}{user_id}"


def is_privileged(role: str | None) -> bool:
    return role == PRIVILEGED_ROLE


def can_join_room(room: str, *, user_id: Any | None, role: str | None) -> bool:
    """Return whether a caller with ``user_id``/``role`` may join ``room``.

    Patterns are checked in order and the first match decides:
    admin rooms, then per-user rooms, then public rooms. Anything else is
    denied.
    """

    if not isinstance(room, str) or not room:
        return False

    if room == ADMINS_ROOM or room.startswith(ADMIN_ROOM_PREFIX):
        return is_privileged(role)

    if room.startswith(USER_ROOM_PREFIX):
        owner = room[len(USER_ROOM_PREFIX) :]
        if is_privileged(role):
            return True
        return user_id is not None and owner == str(user_id)

    return room.startswith(PUBLIC_ROOM_PREFIX)
