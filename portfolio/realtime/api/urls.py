from django.urls import path

from .views import ConnectionListView
from .views import UserConnectionCountView

app_name = "realtime"
urlpatterns = [
    path("connections/", ConnectionListView.as_view(), name="connections"),
    path(
        "users/<int:user_id>/connections/",
        UserConnectionCountView.as_view(),
        name="user-connections",
    ),
]
