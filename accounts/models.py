import uuid
from django.db import models
from django.conf import settings
from django.utils.translation import gettext_lazy as _
from django.core.exceptions import ValidationError
from django.utils import timezone

from django.contrib.contenttypes.models import ContentType
from django.contrib.contenttypes.fields import GenericForeignKey
from phonenumber_field.modelfields import PhoneNumberField

from .exceptions import (
    AlreadyUnderReview, AlreadyVerified, FrontImageRequired,
    ResubmissionNotAllowed, ValidationFailed,
)


class UserTypeChoices(models.TextChoices):
    EMPLOYER = 'employer', _('Employer')
    GIG_WORKER = 'gig_worker', _('Gig Worker')
    ADMIN = 'admin', _('Admin')


class UserProfile(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, verbose_name=_('ID'))
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='profile')
    user_type = models.CharField(max_length=20, choices=UserTypeChoices.choices, blank=True, null=True)
    phone = PhoneNumberField(unique=True, null=True, blank=True)
    notify_email = models.BooleanField(default=True, help_text='Receive notifications via email')
    notify_in_app = models.BooleanField(default=True, help_text='Receive notifications in-app')
    id_verification_required_by_admin = models.BooleanField(
        default=False,
        help_text='Block sensitive actions until the user completes ID verification'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.username} - {self.get_user_type_display() or 'unassigned'}"


class AuditLog(models.Model):
    """Audit log for tracking admin actions and ID verification events."""
    ACTION_TYPES = [
        ('id_front_uploaded', 'ID Front Uploaded'),
        ('id_back_uploaded', 'ID Back Uploaded'),
        ('id_resubmitted', 'ID Resubmitted'),
        ('id_approved', 'ID Approved'),
        ('id_rejected', 'ID Rejected'),
        ('id_verification_required', 'ID Verification Required'),
        ('admin_action', 'Admin Action'),
        ('security_alert', 'Security Alert'),
    ]

    SEVERITY_LEVELS = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('critical', 'Critical'),
    ]

    timestamp = models.DateTimeField(auto_now_add=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=50, choices=ACTION_TYPES)
    description = models.TextField()
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    severity = models.CharField(max_length=20, choices=SEVERITY_LEVELS, default='low')

    # For tracking specific objects
    content_type = models.ForeignKey(ContentType, on_delete=models.CASCADE, null=True, blank=True)
    object_id = models.CharField(max_length=64, null=True, blank=True)
    content_object = GenericForeignKey('content_type', 'object_id')

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['timestamp'], name='accounts_au_timesta_2f3c1e_idx'),
            models.Index(fields=['user', 'action'], name='accounts_au_user_id_8a1b4d_idx'),
            models.Index(fields=['severity'], name='accounts_au_severit_5d6e2a_idx'),
        ]

    def __str__(self):
        return f"{self.timestamp} - {self.user} - {self.action}"


# --- ID verification constants and choices ---
class VerificationStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    VERIFIED = 'verified', _('Verified')
    REJECTED = 'rejected', _('Rejected')


class IdTypeChoices(models.TextChoices):
    NATIONAL_ID = 'national_id', _('National ID')
    DRIVERS_LICENSE = 'drivers_license', _("Driver's License")
    PASSPORT = 'passport', _('Passport')
    PHILHEALTH_ID = 'philhealth_id', _('PhilHealth')
    SSS_ID = 'sss_id', _('SSS')
    UMID = 'umid', _('UMID')
    VOTERS_ID = 'voters_id', _("Voter's ID")
    PRC_ID = 'prc_id', _('PRC')


NOTE_TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'


def admin_display_name(admin):
    return admin.get_full_name() or admin.get_username()


class IdVerificationQuerySet(models.QuerySet):
    def with_both_images(self):
        return self.exclude(front_image__isnull=True).exclude(front_image='') \
            .exclude(back_image__isnull=True).exclude(back_image='')

    def incomplete_pending(self):
        """Pending records missing one or both images."""
        return self.filter(status=VerificationStatus.PENDING).filter(
            models.Q(front_image__isnull=True) | models.Q(front_image='') |
            models.Q(back_image__isnull=True) | models.Q(back_image='')
        )


class IdVerification(models.Model):
    """
    Government ID verification record owned by a user account.

    ``status`` is ``None`` until the user has submitted both sides of their
    ID. State changes go through the transition methods below; ``save()``
    runs ``full_clean()`` so the invariants in ``clean()`` hold for every
    persisted row:

    - pending => both images present
    - verified => ``verified_at`` present
    - rejected => ``review_notes`` present
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='id_verification'
    )
    status = models.CharField(
        max_length=10,
        choices=VerificationStatus.choices,
        null=True,
        blank=True,
        default=None,
        db_index=True,
        verbose_name=_('Verification Status'),
    )
    id_type = models.CharField(max_length=20, choices=IdTypeChoices.choices, blank=True, null=True)
    front_image = models.CharField(max_length=500, blank=True, null=True, help_text=_('Storage URL of the front of the ID'))
    back_image = models.CharField(max_length=500, blank=True, null=True, help_text=_('Storage URL of the back of the ID'))
    verified_at = models.DateTimeField(null=True, blank=True)
    review_notes = models.TextField(blank=True, null=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='reviewed_id_verifications'
    )
    submitted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = IdVerificationQuerySet.as_manager()

    class Meta:
        verbose_name = _('ID Verification')
        verbose_name_plural = _('ID Verifications')
        ordering = ['-submitted_at', '-created_at']

    def __str__(self):
        return f"ID verification - {self.user.username} ({self.status or 'unset'})"

    def clean(self):
        super().clean()
        errors = {}
        if self.status == VerificationStatus.PENDING and not (self.front_image and self.back_image):
            errors['status'] = 'A pending verification requires both front and back ID images.'
        if self.status == VerificationStatus.VERIFIED and not self.verified_at:
            errors['verified_at'] = 'A verified record requires a verification timestamp.'
        if self.status == VerificationStatus.REJECTED and not self.review_notes:
            errors['review_notes'] = 'A rejected record requires review notes.'
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def has_both_images(self):
        return bool(self.front_image and self.back_image)

    @property
    def is_verified(self):
        return self.status == VerificationStatus.VERIFIED

    @property
    def can_upload(self):
        return self.status not in (VerificationStatus.PENDING, VerificationStatus.VERIFIED)

    @property
    def id_type_label(self):
        if not self.id_type:
            return 'Unknown'
        return self.get_id_type_display()

    def ensure_can_upload(self):
        if self.status == VerificationStatus.PENDING:
            raise AlreadyUnderReview()
        if self.status == VerificationStatus.VERIFIED:
            raise AlreadyVerified()

    # --- owner transitions ---
    def attach_front_image(self, url, id_type=None):
        """Store the front image. Never changes ``status``."""
        self.ensure_can_upload()
        self.front_image = url
        if id_type:
            self.id_type = id_type
        self.save(update_fields=['front_image', 'id_type', 'updated_at'])

    def submit_back_image(self, url):
        """Store the back image and move to pending in a single write."""
        if not self.front_image:
            raise FrontImageRequired()
        self.ensure_can_upload()
        self.back_image = url
        self.status = VerificationStatus.PENDING
        self.review_notes = None
        self.verified_at = None
        self.submitted_at = timezone.now()
        self.save(update_fields=[
            'back_image', 'status', 'review_notes', 'verified_at', 'submitted_at', 'updated_at',
        ])

    def ensure_can_resubmit(self):
        if self.status != VerificationStatus.REJECTED:
            self.ensure_can_upload()
            raise ResubmissionNotAllowed()

    def resubmit(self, front_url, back_url, id_type=None):
        self.ensure_can_resubmit()
        self.front_image = front_url
        self.back_image = back_url
        if id_type:
            self.id_type = id_type
        self.status = VerificationStatus.PENDING
        self.review_notes = None
        self.verified_at = None
        self.submitted_at = timezone.now()
        self.save()

    # --- admin transitions ---
    def approve(self, admin, at=None):
        at = at or timezone.now()
        self.status = VerificationStatus.VERIFIED
        self.verified_at = at
        self.reviewed_by = admin
        self.review_notes = (
            f"Approved by admin {admin.pk} {admin_display_name(admin)} "
            f"at {timezone.localtime(at).strftime(NOTE_TIMESTAMP_FORMAT)}"
        )
        self.save()

    def reject(self, admin, reason, at=None):
        reason = (reason or '').strip()
        if not reason:
            raise ValidationFailed('reason', 'Please provide a reason for rejection.')
        max_length = settings.ID_VERIFICATION['REJECTION_REASON_MAX_LENGTH']
        if len(reason) > max_length:
            raise ValidationFailed('reason', f'Rejection notes cannot exceed {max_length} characters.')
        at = at or timezone.now()
        self.status = VerificationStatus.REJECTED
        self.verified_at = None
        self.reviewed_by = admin
        self.review_notes = (
            f"{reason} — Rejected by admin {admin.pk} {admin_display_name(admin)} "
            f"at {timezone.localtime(at).strftime(NOTE_TIMESTAMP_FORMAT)}"
        )
        self.save()
