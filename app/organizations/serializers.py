from rest_framework import serializers
from .models import Organization, Team

class TeamSerializer(serializers.ModelSerializer):
    class Meta:
        model = Team
        fields = ['id', 'name', 'archived_at']

class OrganizationSerializer(serializers.ModelSerializer):
    teams = TeamSerializer(many=True, read_only=True)

    class Meta:
        model = Organization
        fields = ['id', 'name', 'code', 'teams', 'created_at']
