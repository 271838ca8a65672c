from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('title', 'recipient', 'notification_type', 'level', 'status', 'isRead', 'created_at')
    list_filter = ('notification_type', 'level', 'status', 'isRead', 'created_at')
    search_fields = ('title', 'message', 'recipient__username', 'recipient__email')
    ordering = ('-created_at',)
    readonly_fields = ('created_at', 'updated_at', 'read_at')
