from django.urls import path

from .views import MetricsView
from .views import RealtimeSummaryView
from .views import TrackEventView

app_name = "analytics"
urlpatterns = [
    path("events/", TrackEventView.as_view(), name="events"),
    path("realtime/", RealtimeSummaryView.as_view(), name="realtime"),
    path("metrics/", MetricsView.as_view(), name="metrics"),
]
