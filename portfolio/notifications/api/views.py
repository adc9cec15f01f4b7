from __future__ import annotations

from django.contrib.auth import get_user_model
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from portfolio.notifications.models import Notification
from portfolio.notifications.services import get_notification_service
from portfolio.users.api.permissions import IsPortfolioAdmin

from .serializers import NotificationCreateSerializer
from .serializers import NotificationSerializer

User = get_user_model()


@extend_schema_view(
    list=extend_schema(tags=["Notifications"]),
    create=extend_schema(tags=["Notifications"], request=NotificationCreateSerializer),
    destroy=extend_schema(tags=["Notifications"]),
    mark_read=extend_schema(tags=["Notifications"]),
    mark_all_read=extend_schema(tags=["Notifications"]),
)
class NotificationViewSet(
    mixins.ListModelMixin,
    mixins.DestroyModelMixin,
    GenericViewSet,
):
    """Notifications for the authenticated user.

    - list: shows request.user's unexpired notifications
    - create: creates notifications for target recipients (admin only)
    - destroy: deletes a notification (recipient only)
    - mark_read / mark_all_read
    """

    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer

    def get_queryset(self):
        return Notification.objects.active().filter(recipient=self.request.user)

    def get_permissions(self):
        if self.action == "create":
            return [IsAuthenticated(), IsPortfolioAdmin()]
        return [p() for p in self.permission_classes]

    def create(self, request, *args, **kwargs):
        serializer = NotificationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data.get("broadcast"):
            recipient_ids = set(
                User.objects.filter(is_active=True).values_list("id", flat=True),
            )
        elif "recipient_id" in data:
            recipient_ids = {data["recipient_id"]}
        else:
            recipient_ids = set(data["recipients"])

        created = get_notification_service().send(
            recipient_ids,
            title=data["title"],
            message=data["message"],
            kind=data["kind"],
            payload=data["payload"],
            channels=data["channels"],
            priority=data["priority"],
            expires_at=data["expires_at"],
        )
        if not created:
            return Response(
                {"detail": "No recipients resolved from payload."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        # Return created notifications (single object for single-recipient payload).
        if len(created) == 1:
            out = NotificationSerializer(created[0], context={"request": request}).data
            return Response(out, status=status.HTTP_201_CREATED)
        out_many = NotificationSerializer(
            created,
            many=True,
            context={"request": request},
        ).data
        return Response(out_many, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="mark-read")
    def mark_read(self, request, pk=None):
        notification = self.get_object()
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read"])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["post"], url_path="mark-all-read")
    def mark_all_read(self, request):
        self.get_queryset().filter(is_read=False).update(is_read=True)
        return Response(status=status.HTTP_204_NO_CONTENT)
