import logging
from rest_framework import viewsets, filters
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django_filters.rest_framework import DjangoFilterBackend
from django.utils import timezone

from .models import Notification, NotificationStatus
from .serializers import NotificationSerializer, NotificationBulkUpdateSerializer

logger = logging.getLogger(__name__)


class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    """
    The authenticated user's notification inbox.

    Notifications are created by the system (see ``NotificationService``);
    users can only list them and change their read state.
    """

    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['notification_type', 'level', 'isRead']
    search_fields = ['title', 'message']
    ordering_fields = ['created_at', 'read_at', 'notification_type']
    ordering = ['-created_at']

    def get_queryset(self):
        return Notification.objects.filter(recipient=self.request.user).select_related('sender')

    @action(detail=True, methods=['patch'])
    def mark_as_read(self, request, pk=None):
        notification = self.get_object()
        notification.mark_as_read()
        logger.info(f"Notification marked as read: {notification.id}")
        return Response(self.get_serializer(notification).data)

    @action(detail=True, methods=['patch'])
    def mark_as_unread(self, request, pk=None):
        notification = self.get_object()
        notification.mark_as_unread()
        logger.info(f"Notification marked as unread: {notification.id}")
        return Response(self.get_serializer(notification).data)

    @action(detail=False, methods=['get'])
    def unread_count(self, request):
        return Response({'unread_count': self.get_queryset().filter(isRead=False).count()})

    @action(detail=False, methods=['post'])
    def bulk_mark_read(self, request):
        serializer = NotificationBulkUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = self.get_queryset().filter(
            id__in=serializer.validated_data['notification_ids'], isRead=False
        ).update(isRead=True, read_at=timezone.now(), status=NotificationStatus.READ)
        logger.info(f"Bulk marked {updated} notifications as read for user {request.user.pk}")
        return Response({'updated_count': updated})
