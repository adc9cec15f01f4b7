from unittest import mock

import pytest
from rest_framework import status
from rest_framework.test import APIClient

from portfolio.notifications.models import Notification
from portfolio.notifications.services import NotificationService

pytestmark = pytest.mark.django_db


@pytest.fixture
def service(router):
    with mock.patch(
        "portfolio.notifications.api.views.get_notification_service",
        return_value=NotificationService(router),
    ):
        yield


def _client(user):
    client = APIClient()
    client.force_authenticate(user)
    return client


def test_list_shows_only_own_notifications(make_user):
    me, other = make_user("me"), make_user("other")
    Notification.objects.create(recipient=me, title="mine", message="m")
    Notification.objects.create(recipient=other, title="theirs", message="m")

    r = _client(me).get("/api/v1/notifications/")

    assert r.status_code == status.HTTP_200_OK
    assert [n["title"] for n in r.data] == ["mine"]
    assert r.data[0]["unread"] is True


def test_visitor_cannot_create(make_user, service):
    me = make_user("me")

    r = _client(me).post(
        "/api/v1/notifications/",
        {"title": "t", "message": "m", "recipient_id": me.pk},
        format="json",
    )

    assert r.status_code == status.HTTP_403_FORBIDDEN


def test_admin_creates_for_single_recipient(
    make_user,
    service,
    router,
    django_capture_on_commit_callbacks,
):
    admin = make_user("boss", role="admin")
    target = make_user("target")

    with django_capture_on_commit_callbacks(execute=True):
        r = _client(admin).post(
            "/api/v1/notifications/",
            {
                "title": "New certificate",
                "message": "AWS SAA added",
                "kind": "success",
                "recipient_id": target.pk,
            },
            format="json",
        )

    assert r.status_code == status.HTTP_201_CREATED, r.content
    assert r.data["recipient"] == target.pk
    assert router.sent[0][0] == f"user:{target.pk}"


def test_admin_broadcast(make_user, service):
    admin = make_user("boss", role="admin")
    make_user("a")
    make_user("b")

    r = _client(admin).post(
        "/api/v1/notifications/",
        {"title": "Maintenance", "message": "Tonight", "broadcast": True},
        format="json",
    )

    assert r.status_code == status.HTTP_201_CREATED
    assert len(r.data) == 3


def test_create_requires_exactly_one_target(make_user, service):
    admin = make_user("boss", role="admin")

    r = _client(admin).post(
        "/api/v1/notifications/",
        {"title": "t", "message": "m", "recipient_id": admin.pk, "broadcast": True},
        format="json",
    )

    assert r.status_code == status.HTTP_400_BAD_REQUEST


def test_unknown_recipients_are_rejected(make_user, service):
    admin = make_user("boss", role="admin")

    r = _client(admin).post(
        "/api/v1/notifications/",
        {"title": "t", "message": "m", "recipients": [424242]},
        format="json",
    )

    assert r.status_code == status.HTTP_400_BAD_REQUEST


def test_mark_read_and_mark_all_read(make_user):
    me = make_user("me")
    first = Notification.objects.create(recipient=me, title="1", message="m")
    Notification.objects.create(recipient=me, title="2", message="m")
    client = _client(me)

    r = client.post(f"/api/v1/notifications/{first.pk}/mark-read/")
    assert r.status_code == status.HTTP_204_NO_CONTENT
    first.refresh_from_db()
    assert first.is_read is True

    r = client.post("/api/v1/notifications/mark-all-read/")
    assert r.status_code == status.HTTP_204_NO_CONTENT
    assert not Notification.objects.filter(recipient=me, is_read=False).exists()


def test_cannot_touch_someone_elses_notification(make_user):
    me, other = make_user("me"), make_user("other")
    theirs = Notification.objects.create(recipient=other, title="x", message="m")

    r = _client(me).delete(f"/api/v1/notifications/{theirs.pk}/")

    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert Notification.objects.filter(pk=theirs.pk).exists()
