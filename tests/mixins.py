from __future__ import annotations

from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

User = get_user_model()

ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"
ROLE_VISITOR = "visitor"
ROLE_ANONYMOUS = "anonymous"


def create_user(username: str, *, role: str = "visitor", is_staff: bool = False):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="TestPass123!",  # noqa: S106
        role=role,
        is_staff=is_staff,
    )


class RoleAPITestCase(APITestCase):
    """Base test case with one user per role and request helpers."""

    def setUp(self):
        super().setUp()
        self.users = {
            ROLE_ADMIN: create_user("admin", role=ROLE_ADMIN),
            ROLE_STAFF: create_user("staff", is_staff=True),
            ROLE_VISITOR: create_user("visitor"),
        }

    def authenticate(self, role: str):
        if role == ROLE_ANONYMOUS:
            self.client.force_authenticate(user=None)
        else:
            self.client.force_authenticate(user=self.users[role])

    def get(self, url_name: str, *, role: str, reverse_kwargs=None, **kwargs):
        self.authenticate(role)
        return self.client.get(reverse(url_name, kwargs=reverse_kwargs), **kwargs)

    def post(self, url_name: str, *, role: str, payload=None, reverse_kwargs=None):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.post(url, data=payload or {}, format="json")

    def assert_http_status(self, response, expected_status: int):
        msg = getattr(response, "data", response)
        assert response.status_code == expected_status, msg

    def assert_allowed(self, response):
        assert response.status_code in (
            status.HTTP_200_OK,
            status.HTTP_201_CREATED,
            status.HTTP_202_ACCEPTED,
            status.HTTP_204_NO_CONTENT,
        ), response.data

    def assert_denied(self, response, code=status.HTTP_403_FORBIDDEN):
        assert response.status_code == code, response.data
