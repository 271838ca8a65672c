import logging
from dataclasses import dataclass, field
from typing import List, Optional

from django.db import transaction

from notification.exceptions import NotificationDeliveryFailed
from notification.services import (
    NotificationService, id_verification_approved_payload, id_verification_rejected_payload,
)
from .exceptions import FrontImageRequired, IdVerificationError, ValidationFailed
from .models import IdVerification
from .storage import IdDocumentStorage
from .utils import log_audit_event
from .validators import validate_id_image, validate_id_type

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    url: Optional[str]
    status: Optional[str]
    verification: IdVerification


@dataclass
class BulkReviewResult:
    count: int = 0
    failed_user_ids: List[int] = field(default_factory=list)


def get_verification(user, lock=False):
    """Return the user's verification record, creating it for legacy accounts."""
    if lock:
        IdVerification.objects.get_or_create(user=user)
        return IdVerification.objects.select_for_update().get(user=user)
    verification, _ = IdVerification.objects.get_or_create(user=user)
    return verification


class IdVerificationService:
    """
    Owner and admin operations on a user's ID verification record.

    Guards and validation run before any storage call. Storage happens
    outside the database transaction; the record is then locked, the guards
    re-checked and the transition written in one atomic step. Notification
    delivery runs after the commit and never undoes a transition.
    """

    def __init__(self, storage=None, notifier=None):
        self.storage = storage or IdDocumentStorage()
        self.notifier = notifier or NotificationService

    # --- owner operations ---
    def upload_front(self, user, file, id_type=None):
        logger.info(f"ID front upload started for user {user.pk}")
        try:
            get_verification(user).ensure_can_upload()
            validate_id_image(file, 'front_image')
            id_type = validate_id_type(id_type)
            url = self.storage.upload(file, user.pk, 'front', field='front_image')
            try:
                with transaction.atomic():
                    verification = get_verification(user, lock=True)
                    verification.attach_front_image(url, id_type=id_type)
            except IdVerificationError:
                self.storage.delete_url(url)
                raise
        except IdVerificationError as e:
            logger.warning(f"ID front upload failed for user {user.pk}: {e.message}")
            raise

        logger.info(f"ID front upload succeeded for user {user.pk}")
        log_audit_event(
            user=user, action='id_front_uploaded',
            description=f"User {user.pk} uploaded the front of their ID",
            content_object=verification, metadata={'url': url},
        )
        return UploadResult(url=url, status=verification.status, verification=verification)

    def upload_back(self, user, file):
        logger.info(f"ID back upload started for user {user.pk}")
        try:
            verification = get_verification(user)
            if not verification.front_image:
                raise FrontImageRequired()
            verification.ensure_can_upload()
            validate_id_image(file, 'back_image')
            url = self.storage.upload(file, user.pk, 'back', field='back_image')
            try:
                with transaction.atomic():
                    verification = get_verification(user, lock=True)
                    verification.submit_back_image(url)
            except IdVerificationError:
                self.storage.delete_url(url)
                raise
        except IdVerificationError as e:
            logger.warning(f"ID back upload failed for user {user.pk}: {e.message}")
            raise

        logger.info(f"ID back upload succeeded for user {user.pk}, status now {verification.status}")
        log_audit_event(
            user=user, action='id_back_uploaded',
            description=f"User {user.pk} uploaded the back of their ID and submitted it for review",
            content_object=verification, metadata={'url': url, 'status': verification.status},
        )
        return UploadResult(url=url, status=verification.status, verification=verification)

    def resubmit(self, user, front_file, back_file, id_type=None):
        logger.info(f"ID resubmission started for user {user.pk}")
        uploaded = []
        try:
            get_verification(user).ensure_can_resubmit()
            validate_id_image(front_file, 'front_image')
            validate_id_image(back_file, 'back_image')
            id_type = validate_id_type(id_type)
            front_url = self.storage.upload(front_file, user.pk, 'front', field='front_image')
            uploaded.append(front_url)
            back_url = self.storage.upload(back_file, user.pk, 'back', field='back_image')
            uploaded.append(back_url)
            with transaction.atomic():
                verification = get_verification(user, lock=True)
                verification.resubmit(front_url, back_url, id_type=id_type)
        except IdVerificationError as e:
            for url in uploaded:
                self.storage.delete_url(url)
            logger.warning(f"ID resubmission failed for user {user.pk}: {e.message}")
            raise

        logger.info(f"ID resubmission succeeded for user {user.pk}")
        log_audit_event(
            user=user, action='id_resubmitted',
            description=f"User {user.pk} resubmitted their ID after a rejection",
            content_object=verification,
        )
        return UploadResult(url=None, status=verification.status, verification=verification)

    # --- admin operations ---
    def approve(self, admin, user):
        logger.info(f"ID approval started by admin {admin.pk} for user {user.pk}")
        try:
            with transaction.atomic():
                verification = get_verification(user, lock=True)
                verification.approve(admin)
        except Exception as e:
            logger.error(f"ID approval failed by admin {admin.pk} for user {user.pk}: {e}")
            raise

        logger.info(f"ID approved by admin {admin.pk} for user {user.pk}")
        log_audit_event(
            user=admin, action='id_approved', severity='medium',
            description=f"Admin {admin.pk} approved ID verification for user {user.pk}",
            content_object=verification,
        )
        self._notify(user, id_verification_approved_payload(), sender=admin)
        return verification

    def reject(self, admin, user, reason):
        logger.info(f"ID rejection started by admin {admin.pk} for user {user.pk}")
        if not (reason or '').strip():
            logger.warning(f"ID rejection for user {user.pk} refused: missing reason")
            raise ValidationFailed('reason', 'Please provide a reason for rejection.')
        try:
            with transaction.atomic():
                verification = get_verification(user, lock=True)
                verification.reject(admin, reason)
        except Exception as e:
            logger.error(f"ID rejection failed by admin {admin.pk} for user {user.pk}: {e}")
            raise

        reason = reason.strip()
        logger.info(f"ID rejected by admin {admin.pk} for user {user.pk}: {reason}")
        log_audit_event(
            user=admin, action='id_rejected', severity='medium',
            description=f"Admin {admin.pk} rejected ID verification for user {user.pk}",
            content_object=verification, metadata={'reason': reason},
        )
        self._notify(user, id_verification_rejected_payload(reason), sender=admin, extra_data={'reason': reason})
        return verification

    def bulk_approve(self, admin, user_ids):
        return self._bulk(admin, user_ids, lambda user: self.approve(admin, user))

    def bulk_reject(self, admin, user_ids, reason):
        if not (reason or '').strip():
            raise ValidationFailed('reason', 'Please provide a reason for rejection.')
        return self._bulk(admin, user_ids, lambda user: self.reject(admin, user, reason))

    def _bulk(self, admin, user_ids, operation):
        verifications = IdVerification.objects.with_both_images() \
            .filter(user_id__in=user_ids).select_related('user')
        result = BulkReviewResult()
        for verification in verifications:
            try:
                operation(verification.user)
            except Exception as e:
                logger.exception(
                    f"Bulk review by admin {admin.pk} failed for user {verification.user_id}: {e}"
                )
                result.failed_user_ids.append(verification.user_id)
                continue
            result.count += 1
        logger.info(
            f"Bulk review by admin {admin.pk} transitioned {result.count} of {len(user_ids)} records "
            f"({len(result.failed_user_ids)} failed)"
        )
        return result

    def _notify(self, user, payload, sender=None, extra_data=None):
        try:
            self.notifier.send(user, payload, sender=sender, extra_data=extra_data)
        except NotificationDeliveryFailed as e:
            logger.error(
                f"Failed to send {payload['type']} notification to user {user.pk}: {e.cause}"
            )
        except Exception as e:
            # Custom notifiers may raise anything.
            logger.exception(
                f"Failed to send {payload['type']} notification to user {user.pk}: {e}"
            )
