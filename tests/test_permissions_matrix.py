from __future__ import annotations

from unittest import mock

from rest_framework import status

from tests.mixins import ROLE_ADMIN
from tests.mixins import ROLE_ANONYMOUS
from tests.mixins import ROLE_STAFF
from tests.mixins import ROLE_VISITOR
from tests.mixins import RoleAPITestCase


class FakeAnalytics:
    async def realtime_summary(self):
        return {"todayPageViews": 1, "todayUniqueVisitors": 1, "todayProjectViews": 0}

    async def get_metrics(self, start, end):
        return {"pageViews": 1}


class TestAdminOnlyEndpoints(RoleAPITestCase):
    def setUp(self):
        super().setUp()
        patcher = mock.patch(
            "portfolio.analytics.api.views._analytics",
            return_value=FakeAnalytics(),
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_connection_list(self):
        self.assert_denied(
            self.get("api_v1:realtime:connections", role=ROLE_ANONYMOUS),
            status.HTTP_401_UNAUTHORIZED,
        )
        self.assert_denied(self.get("api_v1:realtime:connections", role=ROLE_VISITOR))
        for role in (ROLE_ADMIN, ROLE_STAFF):
            res = self.get("api_v1:realtime:connections", role=role)
            self.assert_http_status(res, 200)

    def test_user_connection_count(self):
        kwargs = {"user_id": self.users[ROLE_VISITOR].pk}
        self.assert_denied(
            self.get(
                "api_v1:realtime:user-connections",
                role=ROLE_VISITOR,
                reverse_kwargs=kwargs,
            ),
        )
        res = self.get(
            "api_v1:realtime:user-connections",
            role=ROLE_ADMIN,
            reverse_kwargs=kwargs,
        )
        self.assert_http_status(res, 200)

    def test_analytics_reads(self):
        params = {"start": "2026-01-01", "end": "2026-01-07"}
        for name in ("api_v1:analytics:realtime", "api_v1:analytics:metrics"):
            self.assert_denied(self.get(name, role=ROLE_VISITOR, data=params))
            self.assert_allowed(self.get(name, role=ROLE_ADMIN, data=params))

    def test_notification_create(self):
        payload = {"title": "t", "message": "m", "recipient_id": self.users[ROLE_VISITOR].pk}
        with mock.patch(
            "portfolio.notifications.api.views.get_notification_service",
        ) as factory:
            factory.return_value.send.return_value = []
            self.assert_denied(
                self.post("api_v1:notifications-list", role=ROLE_VISITOR, payload=payload),
            )
            factory.return_value.send.assert_not_called()


class TestOpenEndpoints(RoleAPITestCase):
    def test_track_event_is_public(self):
        with mock.patch(
            "portfolio.analytics.api.views._analytics",
        ) as analytics:
            analytics.return_value.track = mock.AsyncMock()
            res = self.post(
                "api_v1:analytics:events",
                role=ROLE_ANONYMOUS,
                payload={"type": "page_view", "session_id": "s1", "data": {"page": "/"}},
            )
        self.assert_allowed(res)

    def test_me(self):
        self.assert_denied(
            self.get("api_v1:users-me", role=ROLE_ANONYMOUS),
            status.HTTP_401_UNAUTHORIZED,
        )
        res = self.get("api_v1:users-me", role=ROLE_ADMIN)
        self.assert_http_status(res, 200)
        assert res.data["username"] == "admin"
        assert res.data["role"] == "admin"

    def test_jwt_create(self):
        res = self.client.post(
            "/api/v1/auth/jwt/create/",
            {"username": "visitor", "password": "TestPass123!"},
            format="json",
        )
        self.assert_http_status(res, 200)
        assert "access" in res.data
        assert "refresh" in res.data
