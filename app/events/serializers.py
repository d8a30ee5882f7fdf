from rest_framework import serializers

from attendance.exceptions import InvalidEventTime
from attendance.services.time_window import ALL_DAY, parse_time_string
from .models import Event


class EventSerializer(serializers.ModelSerializer):
    class Meta:
        model = Event
        fields = [
            'id',
            'organization',
            'team',
            'participating_teams',
            'title',
            'event_type',
            'date',
            'start_time',
            'end_time',
            'location',
            'is_ad_hoc',
            'created_at',
        ]
        read_only_fields = ['is_ad_hoc', 'created_at']

    def _minutes(self, field, value):
        try:
            hours, minutes = parse_time_string(value)
        except InvalidEventTime as exc:
            raise serializers.ValidationError({field: exc.detail}) from exc
        return hours * 60 + minutes

    def validate(self, attrs):
        organization = attrs.get('organization', getattr(self.instance, 'organization', None))
        team = attrs.get('team', getattr(self.instance, 'team', None))
        if team is not None and team.organization_id != organization.id:
            raise serializers.ValidationError({'team': 'Team does not belong to this organization.'})
        for participating in attrs.get('participating_teams', []):
            if participating.organization_id != organization.id:
                raise serializers.ValidationError({'participating_teams': 'Team does not belong to this organization.'})

        start_time = attrs.get('start_time', getattr(self.instance, 'start_time', ''))
        end_time = attrs.get('end_time', getattr(self.instance, 'end_time', ''))
        if ALL_DAY in (start_time, end_time):
            return attrs
        if self._minutes('start_time', start_time) >= self._minutes('end_time', end_time):
            raise serializers.ValidationError({'end_time': 'End time must be after start time.'})
        return attrs
