from django.utils import timezone
from rest_framework import serializers


class MonthlyReportQuerySerializer(serializers.Serializer):
    """``?year=&month=``; both or neither. Only finished months are allowed."""

    year = serializers.IntegerField(required=False, min_value=2000, max_value=9999)
    month = serializers.IntegerField(required=False, min_value=1, max_value=12)

    def validate(self, attrs):
        if ("year" in attrs) != ("month" in attrs):
            raise serializers.ValidationError("Provide both year and month.")
        if "year" in attrs:
            today = timezone.localdate()
            if (attrs["year"], attrs["month"]) >= (today.year, today.month):
                raise serializers.ValidationError("Month has not finished yet.")
        return attrs
