import logging
from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction

from .exceptions import NotificationDeliveryFailed
from .models import Notification, NotificationType, NotificationLevel, NotificationStatus

logger = logging.getLogger(__name__)


def _absolute_url(path):
    site_url = getattr(settings, 'SITE_URL', 'http://localhost:8000').rstrip('/')
    return f"{site_url}/{path.lstrip('/')}"


def id_verification_approved_payload():
    return {
        'type': NotificationType.ID_VERIFICATION_APPROVED.value,
        'title': 'Identity Verified!',
        'message': 'Your identity has been verified!',
        'action_url': _absolute_url(getattr(settings, 'ID_VERIFICATION_PROFILE_PATH', '/profile')),
        'action_text': 'View Profile',
        'icon': 'check-circle',
        'color': 'green',
    }


def id_verification_rejected_payload(reason):
    return {
        'type': NotificationType.ID_VERIFICATION_REJECTED.value,
        'title': 'ID Verification Rejected',
        'message': (
            f"Your ID verification was not approved. Reason: {reason}. "
            "Please re-upload your documents."
        ),
        'action_url': _absolute_url(getattr(settings, 'ID_VERIFICATION_UPLOAD_PATH', '/id-verification')),
        'action_text': 'Re-upload ID',
        'icon': 'x-circle',
        'color': 'red',
    }


PAYLOAD_LEVELS = {
    NotificationType.ID_VERIFICATION_APPROVED: NotificationLevel.SUCCESS,
    NotificationType.ID_VERIFICATION_REJECTED: NotificationLevel.WARNING,
}


class NotificationService:
    """Delivers structured notification payloads to users (in-app and email)."""

    @staticmethod
    def send(recipient, payload, sender=None, source='accounts', extra_data=None):
        """
        Store an in-app notification and email the recipient according to
        their profile preferences. Returns the stored ``Notification`` (or
        ``None`` when in-app delivery is disabled). Any failure is raised as
        ``NotificationDeliveryFailed``.
        """
        notification_type = payload['type']
        profile = getattr(recipient, 'profile', None)
        notify_in_app = getattr(profile, 'notify_in_app', True)
        notify_email = getattr(profile, 'notify_email', True)

        notification = None
        try:
            if notify_in_app:
                with transaction.atomic():
                    notification = Notification.objects.create(
                        recipient=recipient,
                        sender=sender,
                        title=payload['title'],
                        message=payload['message'],
                        notification_type=notification_type,
                        level=PAYLOAD_LEVELS.get(notification_type, NotificationLevel.INFO),
                        status=NotificationStatus.SENT,
                        action_text=payload.get('action_text', ''),
                        action_url=payload.get('action_url') or None,
                        icon=payload.get('icon', ''),
                        color=payload.get('color', ''),
                        source=source,
                        extra_data=extra_data,
                    )
            if notify_email and recipient.email:
                body = payload['message']
                if payload.get('action_url'):
                    body = f"{body}\n\n{payload.get('action_text') or 'Open'}: {payload['action_url']}"
                send_mail(
                    payload['title'],
                    body,
                    getattr(settings, 'DEFAULT_FROM_EMAIL', 'no-reply@example.com'),
                    [recipient.email],
                    fail_silently=False,
                )
        except Exception as e:
            raise NotificationDeliveryFailed(notification_type, recipient.pk, e) from e

        logger.info(f"Notification {notification_type} delivered to user {recipient.pk}")
        return notification
