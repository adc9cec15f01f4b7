from __future__ import annotations

from typing import Any

from rest_framework import serializers

from portfolio.notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    """Read serializer for notifications."""

    unread = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = (
            "id",
            "recipient",
            "kind",
            "title",
            "message",
            "payload",
            "priority",
            "channels",
            "is_read",
            "unread",
            "created_at",
            "expires_at",
        )
        read_only_fields = fields

    def get_unread(self, obj: Notification) -> bool:
        return not bool(obj.is_read)


class NotificationCreateSerializer(serializers.Serializer):
    """Create serializer.

    Creates one Notification per recipient. Exactly one targeting form is
    required:
    - recipient_id: int
    - recipients: list[int]
    - broadcast: true (every active user)
    """

    title = serializers.CharField(max_length=255)
    message = serializers.CharField()
    kind = serializers.ChoiceField(
        choices=Notification.Kind.choices,
        required=False,
        default=Notification.Kind.INFO,
    )
    priority = serializers.ChoiceField(
        choices=Notification.Priority.choices,
        required=False,
        default=Notification.Priority.NORMAL,
    )
    channels = serializers.ListField(
        child=serializers.ChoiceField(choices=Notification.Channel.choices),
        required=False,
        allow_empty=False,
        default=[Notification.Channel.SOCKET],
    )
    payload = serializers.DictField(required=False, default=dict)
    expires_at = serializers.DateTimeField(required=False, allow_null=True, default=None)

    recipient_id = serializers.IntegerField(required=False, min_value=1)
    recipients = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
    )
    broadcast = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        recipients = attrs.get("recipients")
        if isinstance(recipients, list) and len(recipients) == 0:
            attrs.pop("recipients", None)

        targets = [
            "recipient_id" in attrs,
            "recipients" in attrs,
            bool(attrs.get("broadcast")),
        ]
        if sum(targets) != 1:
            msg = "Provide exactly one of recipient_id, recipients, broadcast."
            raise serializers.ValidationError(msg)
        return attrs
