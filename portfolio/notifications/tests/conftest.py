from __future__ import annotations

from typing import Any

import pytest
from django.contrib.auth import get_user_model

User = get_user_model()


class RecordingRouter:
    def __init__(self, live_users: dict[str, int] | None = None):
        self.live_users = live_users or {}
        self.sent: list[tuple[str, str, Any]] = []

    async def send_to_user(self, user_id, event, payload):
        self.sent.append((f"user:{user_id}", event, payload))
        return self.live_users.get(str(user_id), 0)

    async def broadcast_to_admins(self, event, payload):
        self.sent.append(("admins", event, payload))
        return 1


@pytest.fixture
def router() -> RecordingRouter:
    return RecordingRouter()


@pytest.fixture
def make_user(db):
    def _make(username: str, **extra):
        return User.objects.create_user(
            username=username,
            email=f"{username}@example.com",
            password="TestPass123!",  # noqa: S106
            **extra,
        )

    return _make
