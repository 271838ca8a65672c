from rest_framework import serializers
from django.contrib.auth import get_user_model
from .models import Notification

User = get_user_model()


class NotificationSerializer(serializers.ModelSerializer):
    """Notification as shown in the user's inbox."""

    sender_username = serializers.CharField(source='sender.username', read_only=True, default=None)
    notification_type_display = serializers.CharField(source='get_notification_type_display', read_only=True)
    level_display = serializers.CharField(source='get_level_display', read_only=True)
    is_actionable = serializers.BooleanField(read_only=True)

    class Meta:
        model = Notification
        fields = [
            'id', 'sender_username',
            'title', 'message',
            'notification_type', 'notification_type_display',
            'level', 'level_display', 'status',
            'isRead', 'read_at',
            'action_text', 'action_url', 'icon', 'color', 'is_actionable',
            'extra_data', 'created_at',
        ]
        read_only_fields = fields


class NotificationBulkUpdateSerializer(serializers.Serializer):
    notification_ids = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=False,
        help_text="List of notification IDs to update"
    )
