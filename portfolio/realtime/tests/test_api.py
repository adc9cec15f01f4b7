import pytest
from asgiref.sync import async_to_sync
from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APIClient

from portfolio.realtime.gateway import get_gateway
from portfolio.realtime.registry import ClientMetadata
from portfolio.realtime.registry import VerifiedUser

pytestmark = pytest.mark.django_db
User = get_user_model()


class StaticVerifier:
    def __init__(self, user):
        self.user = user

    async def verify(self, token):
        return self.user


class NullAnalytics:
    async def track(self, event_type, attributes, *, session_id=None, user_id=None):
        return None


@pytest.fixture
def admin_client():
    admin = User.objects.create_user(
        username="admin",
        email="admin@example.com",
        password="TestPass123!",  # noqa: S106
        role=User.Role.ADMIN,
    )
    client = APIClient()
    client.force_authenticate(admin)
    return client


@pytest.fixture
def live_sockets():
    registry = get_gateway().registry
    verifier, analytics = registry._verifier, registry._analytics
    registry._verifier = StaticVerifier(VerifiedUser("77", "Seven", "visitor"))
    registry._analytics = NullAnalytics()
    async_to_sync(registry.register)("s1", ClientMetadata(user_agent="pytest"))
    async_to_sync(registry.register)("s2", ClientMetadata())
    async_to_sync(registry.authenticate)("s1", "token")
    yield registry
    async_to_sync(registry.unregister)("s1")
    async_to_sync(registry.unregister)("s2")
    registry._verifier, registry._analytics = verifier, analytics


def test_connections_requires_admin():
    visitor = User.objects.create_user(
        username="visitor",
        email="visitor@example.com",
        password="TestPass123!",  # noqa: S106
    )
    client = APIClient()
    client.force_authenticate(visitor)

    r = client.get("/api/v1/realtime/connections/")

    assert r.status_code == status.HTTP_403_FORBIDDEN


def test_connections_lists_live_sockets(admin_client, live_sockets):
    r = admin_client.get("/api/v1/realtime/connections/")

    assert r.status_code == status.HTTP_200_OK
    assert r.data["count"] == 2
    ids = {row["id"] for row in r.data["results"]}
    assert ids == {"s1", "s2"}


def test_user_connection_count(admin_client, live_sockets):
    r = admin_client.get("/api/v1/realtime/users/77/connections/")

    assert r.status_code == status.HTTP_200_OK
    assert r.data == {"userId": "77", "connections": 1}
