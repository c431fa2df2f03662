from rest_framework import serializers
from .models import User


class UserSummarySerializer(serializers.ModelSerializer):
    """Resolved actor reference embedded in project/task payloads."""
    name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'name', 'email', 'avatar']
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = User
        fields = [
            'id',
            'username',
            'name',
            'email',
            'first_name',
            'last_name',
            'avatar',
            'date_joined',
        ]
        read_only_fields = ['id', 'username', 'date_joined']
