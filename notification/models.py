import uuid
from django.db import models
from django.conf import settings
from django.utils.translation import gettext_lazy as _
from django.utils import timezone
from django.core.exceptions import ValidationError
from django.db.models import JSONField


class NotificationType(models.TextChoices):
    # Identity verification events
    ID_VERIFICATION_APPROVED = 'id_verification_approved', _('ID Verification Approved')
    ID_VERIFICATION_REJECTED = 'id_verification_rejected', _('ID Verification Rejected')
    # Account and system events
    ACCOUNT_UPDATE = 'account_update', _('Account Update')
    SECURITY_ALERT = 'security_alert', _('Security Alert')
    SYSTEM_ALERT = 'system_alert', _('System Alert')
    OTHER = 'other', _('Other')


class NotificationLevel(models.TextChoices):
    LOW = 'low', _('Low')
    INFO = 'info', _('Info')
    SUCCESS = 'success', _('Success')
    WARNING = 'warning', _('Warning')
    ERROR = 'error', _('Error')
    CRITICAL = 'critical', _('Critical')


class NotificationStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    SENT = 'sent', _('Sent')
    DELIVERED = 'delivered', _('Delivered')
    READ = 'read', _('Read')
    FAILED = 'failed', _('Failed')


class Notification(models.Model):
    """
    In-app notification delivered to a marketplace user.
    Supports notification types, levels, read status tracking and
    actionable notifications with an icon and color for the frontend.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        verbose_name=_('ID'),
        help_text=_('Unique identifier for the notification')
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
        verbose_name=_('Recipient'),
        help_text=_('The user who receives this notification'),
        db_index=True
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sent_notifications',
        verbose_name=_('Sender'),
        help_text=_('The user or system sending the notification')
    )
    title = models.CharField(
        max_length=255,
        verbose_name=_('Title'),
        help_text=_('The title of the notification'),
        db_index=True
    )
    message = models.TextField(
        verbose_name=_('Message'),
        help_text=_('The main content of the notification')
    )
    notification_type = models.CharField(
        max_length=35,
        choices=NotificationType.choices,
        default=NotificationType.OTHER,
        verbose_name=_('Notification Type'),
        help_text=_('The category of the notification'),
        db_index=True
    )
    level = models.CharField(
        max_length=10,
        choices=NotificationLevel.choices,
        default=NotificationLevel.INFO,
        verbose_name=_('Level'),
        help_text=_('The importance level of the notification'),
        db_index=True
    )
    status = models.CharField(
        max_length=20,
        choices=NotificationStatus.choices,
        default=NotificationStatus.PENDING,
        verbose_name=_('Status'),
        help_text=_('Current status of the notification')
    )
    isRead = models.BooleanField(
        default=False,
        verbose_name=_('Is Read'),
        help_text=_('Whether the user has read the notification'),
        db_index=True
    )
    read_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Read At'),
        help_text=_('Timestamp when the notification was read')
    )
    action_text = models.CharField(
        max_length=64,
        blank=True,
        verbose_name=_('Action Text'),
        help_text=_('Text for the action button')
    )
    action_url = models.URLField(
        max_length=500,
        blank=True,
        null=True,
        verbose_name=_('Action URL'),
        help_text=_('URL for the action button')
    )
    icon = models.CharField(
        max_length=50,
        blank=True,
        verbose_name=_('Icon'),
        help_text=_('Frontend icon name, e.g. check-circle')
    )
    color = models.CharField(
        max_length=20,
        blank=True,
        verbose_name=_('Color'),
        help_text=_('Frontend color name, e.g. green')
    )
    source = models.CharField(
        max_length=64,
        blank=True,
        verbose_name=_('Source'),
        help_text=_('Source app or module that generated this notification')
    )
    extra_data = JSONField(
        blank=True,
        null=True,
        verbose_name=_('Extra Data'),
        help_text=_('Additional data for this notification (JSON format)')
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_('Created At'),
        help_text=_('Timestamp when the notification was created'),
        db_index=True
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name=_('Updated At'),
        help_text=_('Timestamp when the notification was last updated')
    )

    class Meta:
        verbose_name = _('Notification')
        verbose_name_plural = _('Notifications')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'isRead'], name='notificatio_recipie_4c1f0a_idx'),
            models.Index(fields=['recipient', 'notification_type'], name='notificatio_recipie_9e2b7c_idx'),
            models.Index(fields=['recipient', 'created_at'], name='notificatio_recipie_d3a58e_idx'),
        ]

    def __str__(self):
        return f"Notification for {self.recipient.username}: {self.title}"

    def clean(self):
        super().clean()
        if bool(self.action_text) != bool(self.action_url):
            raise ValidationError({
                'action_text': 'Action text and action URL must be provided together.',
                'action_url': 'Action text and action URL must be provided together.'
            })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def mark_as_read(self):
        if not self.isRead:
            self.isRead = True
            self.read_at = timezone.now()
            self.status = NotificationStatus.READ
            self.save(update_fields=['isRead', 'read_at', 'status', 'updated_at'])

    def mark_as_unread(self):
        if self.isRead:
            self.isRead = False
            self.read_at = None
            self.status = NotificationStatus.DELIVERED
            self.save(update_fields=['isRead', 'read_at', 'status', 'updated_at'])

    @property
    def is_actionable(self):
        return bool(self.action_text and self.action_url)

    def to_payload(self):
        """Structured payload consumed by the frontend and external dispatchers."""
        return {
            'type': self.notification_type,
            'title': self.title,
            'message': self.message,
            'action_url': self.action_url or '',
            'action_text': self.action_text,
            'icon': self.icon,
            'color': self.color,
        }
