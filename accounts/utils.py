import logging
from django.db import transaction
from django.contrib.contenttypes.models import ContentType

from .models import AuditLog

logger = logging.getLogger(__name__)


# Security and Audit Utilities
def log_audit_event(user, action, description, severity='low', ip_address=None, user_agent=None, content_object=None, metadata=None):
    """Log an audit event for security tracking. Failures are logged and swallowed."""
    try:
        with transaction.atomic():
            return AuditLog.objects.create(
                user=user,
                action=action,
                description=description,
                severity=severity,
                ip_address=ip_address,
                user_agent=user_agent or '',
                content_type=ContentType.objects.get_for_model(content_object) if content_object else None,
                object_id=str(content_object.pk) if content_object else None,
                metadata=metadata or {}
            )
    except Exception as e:
        logger.error(f"Failed to log audit event {action} for user {getattr(user, 'pk', None)}: {e}")
        return None


def get_client_ip(request):
    """Get client IP address from request."""
    if request is None:
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def get_user_agent(request):
    """Get user agent from request."""
    if request is None:
        return ''
    return request.META.get('HTTP_USER_AGENT', '')
