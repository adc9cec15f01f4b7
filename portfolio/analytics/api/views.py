from __future__ import annotations

from asgiref.sync import async_to_sync
from drf_spectacular.utils import extend_schema
from redis.exceptions import RedisError
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from portfolio.realtime.gateway import get_gateway
from portfolio.users.api.permissions import IsPortfolioAdmin

from .serializers import MetricsRangeSerializer
from .serializers import TrackEventSerializer


def _analytics():
    return get_gateway().analytics


def _unavailable() -> Response:
    return Response(
        {"detail": "Analytics store unavailable."},
        status=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


@extend_schema(tags=["Analytics"])
class TrackEventView(APIView):
    """Record a public visitor event."""

    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "analytics"

    def post(self, request):
        serializer = TrackEventSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        async_to_sync(_analytics().track)(
            data["type"],
            data.get("data") or {},
            session_id=data.get("session_id") or None,
        )
        return Response(status=status.HTTP_202_ACCEPTED)


@extend_schema(tags=["Analytics"])
class RealtimeSummaryView(APIView):
    permission_classes = [IsAuthenticated, IsPortfolioAdmin]

    def get(self, request):
        try:
            summary = async_to_sync(_analytics().realtime_summary)()
        except RedisError:
            return _unavailable()
        return Response(summary)


@extend_schema(tags=["Analytics"])
class MetricsView(APIView):
    """Aggregated counters over an inclusive ``start``..``end`` date range."""

    permission_classes = [IsAuthenticated, IsPortfolioAdmin]

    def get(self, request):
        serializer = MetricsRangeSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        try:
            metrics = async_to_sync(_analytics().get_metrics)(
                serializer.validated_data["start"],
                serializer.validated_data["end"],
            )
        except RedisError:
            return _unavailable()
        return Response(metrics)
