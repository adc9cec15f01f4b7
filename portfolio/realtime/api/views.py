from __future__ import annotations

from asgiref.sync import async_to_sync
from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from portfolio.realtime.gateway import get_gateway
from portfolio.users.api.permissions import IsPortfolioAdmin


@extend_schema(tags=["Realtime"])
class ConnectionListView(APIView):
    """Live Socket.IO connections, newest first (admin only)."""

    permission_classes = [IsAuthenticated, IsPortfolioAdmin]

    def get(self, request):
        registry = get_gateway().registry
        connections = async_to_sync(registry.list_connections)()
        connections.sort(key=lambda c: c.connected_at, reverse=True)
        return Response(
            {
                "count": len(connections),
                "results": [c.as_dict() for c in connections],
            },
        )


@extend_schema(tags=["Realtime"])
class UserConnectionCountView(APIView):
    permission_classes = [IsAuthenticated, IsPortfolioAdmin]

    def get(self, request, user_id: int):
        registry = get_gateway().registry
        sids = async_to_sync(registry.user_connections)(user_id)
        return Response({"userId": str(user_id), "connections": len(sids)})
