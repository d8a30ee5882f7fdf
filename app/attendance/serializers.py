from rest_framework import serializers

from attendance.exceptions import InvalidEventTime
from attendance.models import CheckIn
from attendance.services.stats import TIME_RANGES
from attendance.services.time_window import parse_time_string
from events.models import Event


def _validate_time_string(value: str) -> str:
    try:
        parse_time_string(value)
    except InvalidEventTime as exc:
        raise serializers.ValidationError(exc.detail) from exc
    return value.strip()


class NfcCheckInSerializer(serializers.Serializer):
    token = serializers.CharField(max_length=255)
    for_user_id = serializers.IntegerField(required=False, allow_null=True)
    team_id = serializers.IntegerField(required=False, allow_null=True)
    confirm_early = serializers.BooleanField(required=False, default=False)


class AdHocCheckInSerializer(serializers.Serializer):
    token = serializers.CharField(max_length=255)
    team_id = serializers.IntegerField()
    start_time = serializers.CharField(max_length=16, validators=[_validate_time_string])
    end_time = serializers.CharField(max_length=16, validators=[_validate_time_string])
    note = serializers.CharField(required=False, allow_blank=True, default="")


class AdminCheckInSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    event_id = serializers.IntegerField()
    status = serializers.ChoiceField(choices=CheckIn.STATUS_CHOICES)
    note = serializers.CharField(required=False, allow_blank=True, default="")
    check_in_time = serializers.DateTimeField(required=False, allow_null=True)
    check_out_time = serializers.DateTimeField(required=False, allow_null=True)


class CheckInTimesSerializer(serializers.Serializer):
    check_in_time = serializers.DateTimeField(required=False, allow_null=True)
    check_out_time = serializers.DateTimeField(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide check_in_time or check_out_time")
        return attrs


class AthleteSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField(source="get_username")


class EventSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Event
        fields = ["id", "title", "event_type", "date", "start_time", "end_time", "team", "is_ad_hoc"]


class CheckInSerializer(serializers.ModelSerializer):
    event = EventSummarySerializer(read_only=True)

    class Meta:
        model = CheckIn
        fields = [
            "id",
            "user",
            "event",
            "status",
            "check_in_time",
            "check_out_time",
            "hours_logged",
            "note",
            "is_ad_hoc",
            "approved",
            "created_at",
        ]
        read_only_fields = fields


class StatsQuerySerializer(serializers.Serializer):
    organization = serializers.IntegerField()
    team = serializers.IntegerField(required=False, allow_null=True)
    user = serializers.IntegerField(required=False, allow_null=True)
    time_range = serializers.ChoiceField(choices=TIME_RANGES, required=False, default="ALL")
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100, default=10)


class LeaderboardEntrySerializer(serializers.Serializer):
    rank = serializers.IntegerField()
    user_id = serializers.IntegerField(source="user.pk")
    username = serializers.CharField(source="user.get_username")
    hours_required = serializers.FloatField()
    hours_logged = serializers.FloatField()
    attendance_percent = serializers.FloatField()

    def to_representation(self, instance):
        data = super().to_representation(instance)
        for key in ("hours_required", "hours_logged", "attendance_percent"):
            data[key] = round(data[key], 2)
        return data
