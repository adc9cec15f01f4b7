from __future__ import annotations

from typing import Any

from rest_framework import serializers

MAX_RANGE_DAYS = 366


class TrackEventSerializer(serializers.Serializer):
    """Public tracking payload (page views, downloads, contact forms)."""

    type = serializers.ChoiceField(
        choices=["page_view", "project_view", "contact_form", "download"],
    )
    session_id = serializers.CharField(max_length=128, required=False, allow_blank=True)
    data = serializers.DictField(required=False, default=dict)


class MetricsRangeSerializer(serializers.Serializer):
    start = serializers.DateField()
    end = serializers.DateField()

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs["start"] > attrs["end"]:
            msg = "start must be on or before end."
            raise serializers.ValidationError(msg)
        if (attrs["end"] - attrs["start"]).days >= MAX_RANGE_DAYS:
            msg = f"Date range is limited to {MAX_RANGE_DAYS} days."
            raise serializers.ValidationError(msg)
        return attrs
