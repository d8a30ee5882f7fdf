from rest_framework import serializers
from .models import NfcTag


class NfcTagSerializer(serializers.ModelSerializer):
    created_by = serializers.HiddenField(default=serializers.CurrentUserDefault())
    token = serializers.CharField(required=True, max_length=255)

    class Meta:
        model = NfcTag
        fields = [
            'id',
            'organization',
            'token',
            'name',
            'is_active',
            'created_by',
            'created_at',
        ]
        read_only_fields = ['is_active', 'created_at']

    def validate_token(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Token must not be blank.')
        if NfcTag.objects.filter(token=value).exists():
            raise serializers.ValidationError('This tag is already registered.')
        return value
