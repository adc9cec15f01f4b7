from django.conf import settings
from django.urls import include
from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework.routers import SimpleRouter

from portfolio.notifications.api.views import NotificationViewSet
from portfolio.users.api.views import MeView

router = DefaultRouter() if settings.DEBUG else SimpleRouter()

router.register("notifications", NotificationViewSet, basename="notifications")


app_name = "api"
urlpatterns = [
    path("users/me/", MeView.as_view(), name="users-me"),
    path(
        "analytics/",
        include(("portfolio.analytics.api.urls", "analytics"), namespace="analytics"),
    ),
    path(
        "realtime/",
        include(("portfolio.realtime.api.urls", "realtime"), namespace="realtime"),
    ),
    *router.urls,
]
