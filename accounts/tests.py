import csv
import importlib
import io
from unittest import mock

from django.apps import apps as django_apps
from django.contrib.auth import get_user_model
from django.core import mail
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from PIL import Image
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APITestCase

from notification.exceptions import NotificationDeliveryFailed
from notification.models import Notification, NotificationType
from notification.services import NotificationService
from utils import with_retry
from .exceptions import (
    AlreadyUnderReview, AlreadyVerified, FrontImageRequired,
    ResubmissionNotAllowed, UploadFailed, ValidationFailed,
)
from .models import AuditLog, IdVerification, UserProfile, VerificationStatus
from . import services
from .services import IdVerificationService
from .storage import IdDocumentStorage
from .tasks import repair_incomplete_pending_verifications
from .validators import validate_id_image

User = get_user_model()


def make_image(name='id.png', image_format='PNG', content_type='image/png', size=(40, 25)):
    buffer = io.BytesIO()
    Image.new('RGB', size, color=(200, 180, 120)).save(buffer, format=image_format)
    return SimpleUploadedFile(name, buffer.getvalue(), content_type=content_type)


def make_pending(user, front='http://cdn.example.com/front.png', back='http://cdn.example.com/back.png'):
    verification = IdVerification.objects.get(user=user)
    verification.attach_front_image(front)
    verification.submit_back_image(back)
    return verification


def force_pending_without_images(user):
    # Simulates legacy rows written before the invariant existed.
    IdVerification.objects.filter(user=user).update(status=VerificationStatus.PENDING)


class FakeStorage:
    """Minimal storage backend that fails a configurable number of times."""

    def __init__(self, failures=0):
        self.failures = failures
        self.save_calls = 0
        self.saved = {}
        self.deleted = []

    def save(self, name, content):
        self.save_calls += 1
        if self.save_calls <= self.failures:
            raise OSError('storage unavailable')
        self.saved[name] = content.read()
        return name

    def url(self, name):
        return f"https://cdn.example.com/{name}"

    def delete(self, name):
        self.deleted.append(name)


class FailingNotifier:
    calls = 0

    @classmethod
    def send(cls, recipient, payload, **kwargs):
        cls.calls += 1
        raise NotificationDeliveryFailed(payload['type'], recipient.pk, RuntimeError('dispatcher down'))


class IdVerificationModelTest(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='worker', email='worker@example.com', password='testpass123')
        self.admin = User.objects.create_user(
            username='reviewer', password='testpass123', first_name='Ada', last_name='Admin', is_staff=True
        )

    def test_new_account_gets_profile_and_unset_verification(self):
        self.assertTrue(UserProfile.objects.filter(user=self.user).exists())
        verification = IdVerification.objects.get(user=self.user)
        self.assertIsNone(verification.status)
        self.assertIsNone(verification.front_image)
        self.assertIsNone(verification.back_image)
        self.assertTrue(verification.can_upload)
        self.assertEqual(verification.id_type_label, 'Unknown')

    def test_pending_requires_both_images(self):
        verification = IdVerification.objects.get(user=self.user)
        verification.front_image = 'http://cdn.example.com/front.png'
        verification.status = VerificationStatus.PENDING
        with self.assertRaises(ValidationError):
            verification.save()

    def test_verified_requires_timestamp(self):
        verification = IdVerification.objects.get(user=self.user)
        verification.status = VerificationStatus.VERIFIED
        with self.assertRaises(ValidationError):
            verification.save()

    def test_rejected_requires_notes(self):
        verification = IdVerification.objects.get(user=self.user)
        verification.status = VerificationStatus.REJECTED
        with self.assertRaises(ValidationError):
            verification.save()

    def test_front_image_never_changes_status(self):
        verification = IdVerification.objects.get(user=self.user)
        verification.back_image = 'http://cdn.example.com/old-back.png'
        verification.save()
        verification.attach_front_image('http://cdn.example.com/front.png', id_type='passport')
        verification.refresh_from_db()
        self.assertIsNone(verification.status)
        self.assertEqual(verification.id_type, 'passport')
        self.assertEqual(verification.id_type_label, 'Passport')

    def test_back_image_before_front_fails(self):
        verification = IdVerification.objects.get(user=self.user)
        with self.assertRaises(FrontImageRequired):
            verification.submit_back_image('http://cdn.example.com/back.png')

    def test_back_image_moves_to_pending(self):
        verification = make_pending(self.user)
        verification.refresh_from_db()
        self.assertEqual(verification.status, VerificationStatus.PENDING)
        self.assertIsNotNone(verification.submitted_at)
        self.assertFalse(verification.can_upload)

    def test_approve_overwrites_rejection_notes(self):
        verification = make_pending(self.user)
        verification.reject(self.admin, 'blurry')
        verification.approve(self.admin)
        verification.refresh_from_db()
        self.assertEqual(verification.status, VerificationStatus.VERIFIED)
        self.assertIsNotNone(verification.verified_at)
        self.assertTrue(verification.review_notes.startswith(f"Approved by admin {self.admin.pk} Ada Admin at "))
        self.assertNotIn('blurry', verification.review_notes)
        self.assertEqual(verification.reviewed_by, self.admin)

    def test_reject_records_reason_and_clears_verified_at(self):
        verification = make_pending(self.user)
        verification.approve(self.admin)
        verification.reject(self.admin, '  blurry  ')
        verification.refresh_from_db()
        self.assertEqual(verification.status, VerificationStatus.REJECTED)
        self.assertIsNone(verification.verified_at)
        self.assertTrue(verification.review_notes.startswith(f"blurry — Rejected by admin {self.admin.pk} Ada Admin at "))

    def test_reject_requires_reason(self):
        verification = make_pending(self.user)
        with self.assertRaises(ValidationFailed) as ctx:
            verification.reject(self.admin, '   ')
        self.assertEqual(ctx.exception.field, 'reason')
        verification.refresh_from_db()
        self.assertEqual(verification.status, VerificationStatus.PENDING)

    def test_reject_reason_length_limit(self):
        verification = make_pending(self.user)
        with self.assertRaises(ValidationFailed):
            verification.reject(self.admin, 'x' * 501)

    def test_resubmit_only_after_rejection(self):
        verification = IdVerification.objects.get(user=self.user)
        with self.assertRaises(ResubmissionNotAllowed):
            verification.resubmit('http://cdn.example.com/f.png', 'http://cdn.example.com/b.png')
        verification = make_pending(self.user)
        with self.assertRaises(AlreadyUnderReview):
            verification.resubmit('http://cdn.example.com/f.png', 'http://cdn.example.com/b.png')

    def test_with_both_images_and_incomplete_pending(self):
        other = User.objects.create_user(username='other', password='testpass123')
        make_pending(self.user)
        force_pending_without_images(other)
        self.assertEqual(list(IdVerification.objects.with_both_images().values_list('user_id', flat=True)), [self.user.pk])
        self.assertEqual(list(IdVerification.objects.incomplete_pending().values_list('user_id', flat=True)), [other.pk])


class IdImageValidationTest(TestCase):
    def test_accepts_png_and_rewinds(self):
        image = make_image()
        self.assertIs(validate_id_image(image, 'front_image'), image)
        self.assertEqual(image.tell(), 0)

    def test_missing_file(self):
        with self.assertRaisesMessage(ValidationFailed, 'Back side of ID is required.'):
            validate_id_image(None, 'back_image')

    def test_oversized_file(self):
        big = SimpleUploadedFile('big.png', b'\x00' * (6 * 1024 * 1024), content_type='image/png')
        with self.assertRaisesMessage(ValidationFailed, 'Front side image must not exceed 5MB.'):
            validate_id_image(big, 'front_image')

    def test_wrong_extension(self):
        document = SimpleUploadedFile('id.pdf', b'%PDF-1.4', content_type='application/pdf')
        with self.assertRaisesMessage(ValidationFailed, 'Front side must be an image file.'):
            validate_id_image(document, 'front_image')

    def test_image_extension_with_garbage_content(self):
        fake = SimpleUploadedFile('id.jpg', b'not really an image', content_type='image/jpeg')
        with self.assertRaises(ValidationFailed) as ctx:
            validate_id_image(fake, 'back_image')
        self.assertEqual(ctx.exception.errors, {'back_image': ['Back side must be an image file.']})


class IdDocumentStorageTest(TestCase):
    def test_upload_retries_then_succeeds(self):
        backend = FakeStorage(failures=2)
        storage = IdDocumentStorage(storage=backend, max_retries=2, retry_delay=0)
        url = storage.upload(make_image('Front Side.PNG'), 7, 'front')
        self.assertEqual(backend.save_calls, 3)
        self.assertTrue(url.startswith('https://cdn.example.com/id_verification/7/front_front-side_'))
        self.assertTrue(url.endswith('.png'))

    def test_upload_gives_up_after_bounded_retries(self):
        backend = FakeStorage(failures=10)
        storage = IdDocumentStorage(storage=backend, max_retries=2, retry_delay=0)
        with self.assertRaises(UploadFailed) as ctx:
            storage.upload(make_image(), 7, 'back', field='back_image')
        self.assertEqual(backend.save_calls, 3)
        self.assertEqual(ctx.exception.field, 'back_image')
        self.assertEqual(ctx.exception.message, 'Failed to upload image. Please try again.')
        self.assertIsInstance(ctx.exception.__cause__, OSError)

    def test_delete_url_strips_host(self):
        backend = FakeStorage()
        storage = IdDocumentStorage(storage=backend)
        self.assertTrue(storage.delete_url('https://cdn.example.com/id_verification/7/front_x.png'))
        self.assertEqual(backend.deleted, ['id_verification/7/front_x.png'])


class WithRetryTest(TestCase):
    def test_linear_backoff_waits(self):
        calls = []

        @with_retry(max_retries=2, delay=0.1)
        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ValueError('boom')
            return 'ok'

        with mock.patch('utils.time.sleep') as sleep:
            self.assertEqual(flaky(), 'ok')
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [0.1, 0.2])

    def test_only_retries_listed_exceptions(self):
        calls = []

        @with_retry(max_retries=3, delay=0, retry_on=(OSError,))
        def broken():
            calls.append(1)
            raise KeyError('nope')

        with self.assertRaises(KeyError):
            broken()
        self.assertEqual(len(calls), 1)


class IdVerificationServiceTest(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='worker', email='worker@example.com', password='testpass123')
        self.admin = User.objects.create_user(username='reviewer', password='testpass123', is_staff=True)
        self.backend = FakeStorage()
        self.service = IdVerificationService(storage=IdDocumentStorage(storage=self.backend, retry_delay=0))

    def test_upload_flow_reaches_pending(self):
        front = self.service.upload_front(self.user, make_image(), id_type='national_id')
        self.assertIsNone(front.status)
        back = self.service.upload_back(self.user, make_image())
        self.assertEqual(back.status, VerificationStatus.PENDING)
        persisted = IdVerification.objects.get(user=self.user)
        self.assertEqual(persisted.status, back.status)
        self.assertEqual(persisted.front_image, front.url)
        self.assertEqual(persisted.back_image, back.url)
        self.assertEqual(
            list(AuditLog.objects.filter(user=self.user).order_by('id').values_list('action', flat=True)),
            ['id_front_uploaded', 'id_back_uploaded']
        )

    def test_upload_back_before_front_fails_without_storage_call(self):
        with self.assertRaises(FrontImageRequired):
            self.service.upload_back(self.user, make_image())
        self.assertEqual(self.backend.save_calls, 0)

    def test_repeated_front_upload_while_pending_never_mutates(self):
        verification = make_pending(self.user)
        for _ in range(3):
            with self.assertRaises(AlreadyUnderReview):
                self.service.upload_front(self.user, make_image())
        verification.refresh_from_db()
        self.assertEqual(verification.front_image, 'http://cdn.example.com/front.png')
        self.assertEqual(self.backend.save_calls, 0)

    def test_upload_after_verification_fails(self):
        make_pending(self.user)
        self.service.approve(self.admin, self.user)
        with self.assertRaises(AlreadyVerified):
            self.service.upload_front(self.user, make_image())

    def test_storage_failure_leaves_record_unchanged(self):
        service = IdVerificationService(
            storage=IdDocumentStorage(storage=FakeStorage(failures=10), retry_delay=0)
        )
        with self.assertRaises(UploadFailed):
            service.upload_front(self.user, make_image())
        verification = IdVerification.objects.get(user=self.user)
        self.assertIsNone(verification.front_image)
        self.assertIsNone(verification.status)

    def test_resubmit_clears_notes(self):
        make_pending(self.user)
        self.service.reject(self.admin, self.user, 'blurry')
        result = self.service.resubmit(self.user, make_image('front.jpg', 'JPEG', 'image/jpeg'), make_image())
        self.assertEqual(result.status, VerificationStatus.PENDING)
        verification = IdVerification.objects.get(user=self.user)
        self.assertIsNone(verification.review_notes)
        self.assertIsNone(verification.verified_at)
        self.assertEqual(verification.status, VerificationStatus.PENDING)

    def test_resubmit_with_invalid_second_file_changes_nothing(self):
        make_pending(self.user)
        self.service.reject(self.admin, self.user, 'blurry')
        bad = SimpleUploadedFile('back.txt', b'text', content_type='text/plain')
        with self.assertRaises(ValidationFailed):
            self.service.resubmit(self.user, make_image(), bad)
        verification = IdVerification.objects.get(user=self.user)
        self.assertEqual(verification.status, VerificationStatus.REJECTED)
        self.assertIn('blurry', verification.review_notes)
        self.assertEqual(self.backend.save_calls, 0)

    def test_approve_notifies_user(self):
        make_pending(self.user)
        self.service.approve(self.admin, self.user)
        notification = Notification.objects.get(recipient=self.user)
        self.assertEqual(notification.notification_type, NotificationType.ID_VERIFICATION_APPROVED)
        self.assertEqual(notification.title, 'Identity Verified!')
        self.assertEqual(notification.action_url, 'http://localhost:8000/profile')
        self.assertEqual(len(mail.outbox), 1)

    def test_reject_notification_carries_reason(self):
        make_pending(self.user)
        self.service.reject(self.admin, self.user, 'blurry')
        notification = Notification.objects.get(recipient=self.user)
        self.assertEqual(notification.notification_type, NotificationType.ID_VERIFICATION_REJECTED)
        self.assertIn('Reason: blurry.', notification.message)
        self.assertEqual(notification.action_url, 'http://localhost:8000/id-verification')
        self.assertEqual(notification.extra_data, {'reason': 'blurry'})

    def test_notification_failure_does_not_undo_approval(self):
        make_pending(self.user)
        service = IdVerificationService(storage=IdDocumentStorage(storage=self.backend), notifier=FailingNotifier)
        with self.assertLogs('accounts.services', level='ERROR') as logs:
            service.approve(self.admin, self.user)
        self.assertEqual(IdVerification.objects.get(user=self.user).status, VerificationStatus.VERIFIED)
        self.assertIn('id_verification_approved', logs.output[0])

    def test_notification_failure_does_not_undo_rejection(self):
        make_pending(self.user)
        with mock.patch.object(NotificationService, 'send', side_effect=RuntimeError('smtp down')):
            self.service.reject(self.admin, self.user, 'blurry')
        self.assertEqual(IdVerification.objects.get(user=self.user).status, VerificationStatus.REJECTED)

    def test_bulk_approve_skips_incomplete_records(self):
        second = User.objects.create_user(username='second', password='testpass123')
        third = User.objects.create_user(username='third', password='testpass123')
        make_pending(self.user)
        make_pending(second)
        result = self.service.bulk_approve(self.admin, [self.user.pk, second.pk, third.pk])
        self.assertEqual(result.count, 2)
        self.assertEqual(result.failed_user_ids, [])
        self.assertEqual(
            IdVerification.objects.filter(status=VerificationStatus.VERIFIED).count(), 2
        )
        self.assertIsNone(IdVerification.objects.get(user=third).status)

    def test_bulk_reject_requires_reason(self):
        make_pending(self.user)
        with self.assertRaises(ValidationFailed):
            self.service.bulk_reject(self.admin, [self.user.pk], '')
        self.assertEqual(IdVerification.objects.get(user=self.user).status, VerificationStatus.PENDING)

    def test_bulk_continues_past_a_failing_record(self):
        second = User.objects.create_user(username='second', password='testpass123')
        make_pending(self.user)
        make_pending(second)
        approve = self.service.approve

        def approve_or_fail(admin, user):
            if user.pk == second.pk:
                raise RuntimeError('database unavailable')
            return approve(admin, user)

        with mock.patch.object(self.service, 'approve', side_effect=approve_or_fail):
            with self.assertLogs('accounts.services', level='ERROR'):
                result = self.service.bulk_approve(self.admin, [self.user.pk, second.pk])
        self.assertEqual(result.count, 1)
        self.assertEqual(result.failed_user_ids, [second.pk])
        self.assertEqual(IdVerification.objects.get(user=self.user).status, VerificationStatus.VERIFIED)
        self.assertEqual(IdVerification.objects.get(user=second).status, VerificationStatus.PENDING)

    def test_rejected_then_front_and_back_clears_rejection_notes(self):
        make_pending(self.user)
        self.service.reject(self.admin, self.user, 'blurry')
        self.service.upload_front(self.user, make_image())
        self.assertIn('blurry', IdVerification.objects.get(user=self.user).review_notes)
        result = self.service.upload_back(self.user, make_image())
        self.assertEqual(result.status, VerificationStatus.PENDING)
        verification = IdVerification.objects.get(user=self.user)
        self.assertEqual(verification.status, VerificationStatus.PENDING)
        self.assertIsNone(verification.review_notes)
        self.assertIsNone(verification.verified_at)

    def test_front_upload_losing_race_deletes_orphan(self):
        make_pending(self.user)
        real_get_verification = services.get_verification

        def stale_precheck(user, lock=False):
            if lock:
                return real_get_verification(user, lock=True)
            # Read taken before a concurrent submission landed.
            return IdVerification(user=user)

        with mock.patch('accounts.services.get_verification', side_effect=stale_precheck):
            with self.assertRaises(AlreadyUnderReview):
                self.service.upload_front(self.user, make_image())
        self.assertEqual(self.backend.save_calls, 1)
        self.assertEqual(self.backend.deleted, list(self.backend.saved))
        verification = IdVerification.objects.get(user=self.user)
        self.assertEqual(verification.status, VerificationStatus.PENDING)
        self.assertEqual(verification.front_image, 'http://cdn.example.com/front.png')
        self.assertEqual(verification.back_image, 'http://cdn.example.com/back.png')

    def test_back_upload_losing_race_deletes_orphan(self):
        make_pending(self.user)
        real_get_verification = services.get_verification

        def stale_precheck(user, lock=False):
            if lock:
                return real_get_verification(user, lock=True)
            return IdVerification(user=user, front_image='http://cdn.example.com/front.png')

        with mock.patch('accounts.services.get_verification', side_effect=stale_precheck):
            with self.assertRaises(AlreadyUnderReview):
                self.service.upload_back(self.user, make_image())
        self.assertEqual(self.backend.deleted, list(self.backend.saved))
        verification = IdVerification.objects.get(user=self.user)
        self.assertEqual(verification.status, VerificationStatus.PENDING)
        self.assertEqual(verification.back_image, 'http://cdn.example.com/back.png')
        self.assertFalse(AuditLog.objects.filter(action='id_back_uploaded').exists())


class IdVerificationAPITest(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='worker', email='worker@example.com', password='testpass123')
        self.client.force_authenticate(user=self.user)

    def test_status_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse('id-verification-show'))
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_scenario_front_then_back_moves_to_pending(self):
        response = self.client.post(
            reverse('id-verification-upload-front'),
            {'front_image': make_image(), 'id_type': 'drivers_license'},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['message'], 'Front ID uploaded successfully')
        self.assertIsNone(IdVerification.objects.get(user=self.user).status)

        response = self.client.post(
            reverse('id-verification-upload-back'), {'back_image': make_image()}, format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['message'], 'ID verification submitted successfully')
        self.assertEqual(IdVerification.objects.get(user=self.user).status, response.data['status'])

        response = self.client.get(reverse('id-verification-show'))
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['id_type_label'], "Driver's License")

    def test_scenario_upload_while_pending_is_refused(self):
        make_pending(self.user)
        response = self.client.post(
            reverse('id-verification-upload-front'), {'front_image': make_image()}, format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(
            response.data['message'],
            'Your ID is currently under review. Please wait for admin verification.'
        )

    def test_decompression_bomb_is_rejected(self):
        buffer = io.BytesIO()
        Image.new('1', (20000, 20000)).save(buffer, format='PNG')
        bomb = SimpleUploadedFile('huge.png', buffer.getvalue(), content_type='image/png')
        response = self.client.post(
            reverse('id-verification-upload-front'), {'front_image': bomb}, format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['errors'], {'front_image': ['Front side must be an image file.']})
        self.assertIsNone(IdVerification.objects.get(user=self.user).front_image)

    def test_back_before_front_is_refused(self):
        response = self.client.post(
            reverse('id-verification-upload-back'), {'back_image': make_image()}, format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Please upload front ID first')

    def test_scenario_oversized_front_is_rejected(self):
        big = SimpleUploadedFile('big.png', b'\x00' * (6 * 1024 * 1024), content_type='image/png')
        response = self.client.post(
            reverse('id-verification-upload-front'), {'front_image': big}, format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('front_image', response.data['errors'])
        verification = IdVerification.objects.get(user=self.user)
        self.assertIsNone(verification.front_image)
        self.assertIsNone(verification.status)

    def test_missing_file_is_validation_error(self):
        response = self.client.post(reverse('id-verification-upload-front'), {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['message'], 'Front side of ID is required.')

    def test_invalid_id_type(self):
        response = self.client.post(
            reverse('id-verification-upload-front'),
            {'front_image': make_image(), 'id_type': 'library_card'},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('id_type', response.data['errors'])

    def test_storage_failure_returns_500_without_detail(self):
        with mock.patch.object(IdDocumentStorage, 'upload', side_effect=UploadFailed(field='front_image')):
            response = self.client.post(
                reverse('id-verification-upload-front'), {'front_image': make_image()}, format='multipart'
            )
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['message'], 'Failed to upload image. Please try again.')
        self.assertIsNone(IdVerification.objects.get(user=self.user).front_image)

    def test_resubmit_after_rejection(self):
        admin = User.objects.create_user(username='reviewer', password='testpass123', is_staff=True)
        make_pending(self.user).reject(admin, 'blurry')
        response = self.client.post(
            reverse('id-verification-resubmit'),
            {'front_image': make_image(), 'back_image': make_image(), 'id_type': 'umid'},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'ID resubmitted successfully')
        verification = IdVerification.objects.get(user=self.user)
        self.assertEqual(verification.status, VerificationStatus.PENDING)
        self.assertIsNone(verification.review_notes)
        self.assertEqual(verification.id_type, 'umid')

    def test_resubmit_without_rejection_is_refused(self):
        response = self.client.post(
            reverse('id-verification-resubmit'),
            {'front_image': make_image(), 'back_image': make_image()},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'ID resubmission is only allowed after a rejection.')


class ProfileAPITest(APITestCase):
    def setUp(self):
        self.owner = User.objects.create_user(username='owner', password='testpass123')
        self.viewer = User.objects.create_user(username='viewer', password='testpass123')
        make_pending(self.owner)

    def test_owner_sees_verification_details(self):
        self.client.force_authenticate(user=self.owner)
        response = self.client.get(reverse('user-profile'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id_verification_status'], 'pending')
        self.assertEqual(response.data['id_verification']['front_image'], 'http://cdn.example.com/front.png')

    def test_other_users_only_see_status(self):
        self.client.force_authenticate(user=self.viewer)
        response = self.client.get(reverse('user-profile-detail', args=[self.owner.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id_verification_status'], 'pending')
        self.assertNotIn('id_verification', response.data)
        self.assertNotIn('id_verification_required_by_admin', response.data)


class AdminIdVerificationAPITest(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            username='reviewer', password='testpass123', first_name='Ada', last_name='Admin', is_staff=True
        )
        self.alice = User.objects.create_user(
            username='alice', email='alice@example.com', password='testpass123', first_name='Alice', last_name='Cruz'
        )
        self.bob = User.objects.create_user(
            username='bob', email='bob@example.com', password='testpass123', first_name='Bob', last_name='Reyes'
        )
        self.carol = User.objects.create_user(username='carol', password='testpass123')
        make_pending(self.alice)
        make_pending(self.bob)
        self.client.force_authenticate(user=self.admin)

    def test_non_admin_is_forbidden(self):
        self.client.force_authenticate(user=self.alice)
        response = self.client.get(reverse('admin-id-verifications'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_only_submitted_records_with_stats(self):
        response = self.client.get(reverse('admin-id-verifications'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['stats'], {'pending': 2, 'verified': 0, 'rejected': 0, 'total': 2})

    def test_list_search_and_filter(self):
        response = self.client.get(reverse('admin-id-verifications'), {'search': 'alice'})
        self.assertEqual([row['username'] for row in response.data['results']], ['alice'])
        self.client.post(reverse('admin-id-verifications-approve', args=[self.bob.pk]))
        response = self.client.get(reverse('admin-id-verifications'), {'status': 'verified'})
        self.assertEqual([row['username'] for row in response.data['results']], ['bob'])

    def test_detail(self):
        response = self.client.get(reverse('admin-id-verifications-show', args=[self.alice.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['email'], 'alice@example.com')

    def test_detail_without_images(self):
        response = self.client.get(reverse('admin-id-verifications-show', args=[self.carol.pk]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'This user has not uploaded ID images yet.')

    def test_detail_unknown_user(self):
        response = self.client.get(reverse('admin-id-verifications-show', args=[99999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_approve(self):
        response = self.client.post(reverse('admin-id-verifications-approve', args=[self.alice.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'ID verified successfully. User has been notified.')
        verification = IdVerification.objects.get(user=self.alice)
        self.assertEqual(verification.status, VerificationStatus.VERIFIED)
        self.assertIsNotNone(verification.verified_at)
        self.assertTrue(AuditLog.objects.filter(user=self.admin, action='id_approved').exists())

    def test_scenario_approved_user_cannot_upload_again(self):
        self.client.post(reverse('admin-id-verifications-approve', args=[self.alice.pk]))
        self.client.force_authenticate(user=self.alice)
        response = self.client.post(
            reverse('id-verification-upload-front'), {'front_image': make_image()}, format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Your ID is already verified.')

    def test_approve_unknown_user(self):
        response = self.client.post(reverse('admin-id-verifications-approve', args=[99999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_approve_survives_notification_failure(self):
        failure = NotificationDeliveryFailed('id_verification_approved', self.alice.pk, RuntimeError('down'))
        with mock.patch.object(NotificationService, 'send', side_effect=failure):
            response = self.client.post(reverse('admin-id-verifications-approve', args=[self.alice.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(IdVerification.objects.get(user=self.alice).status, VerificationStatus.VERIFIED)

    def test_scenario_reject_then_resubmit(self):
        response = self.client.post(
            reverse('admin-id-verifications-reject', args=[self.alice.pk]), {'reason': 'blurry'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'ID verification rejected. User has been notified.')
        verification = IdVerification.objects.get(user=self.alice)
        self.assertEqual(verification.status, VerificationStatus.REJECTED)
        self.assertIn('blurry', verification.review_notes)

        self.client.force_authenticate(user=self.alice)
        response = self.client.post(
            reverse('id-verification-resubmit'),
            {'front_image': make_image(), 'back_image': make_image()},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        verification.refresh_from_db()
        self.assertEqual(verification.status, VerificationStatus.PENDING)
        self.assertFalse(verification.review_notes)

    def test_reject_requires_reason(self):
        response = self.client.post(
            reverse('admin-id-verifications-reject', args=[self.alice.pk]), {'reason': ''}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['message'], 'Please provide a reason for rejection.')
        self.assertEqual(IdVerification.objects.get(user=self.alice).status, VerificationStatus.PENDING)

    def test_reject_unknown_user(self):
        response = self.client.post(
            reverse('admin-id-verifications-reject', args=[99999]), {'reason': 'blurry'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_statistics(self):
        self.client.post(
            reverse('admin-id-verifications-reject', args=[self.bob.pk]), {'reason': 'expired'}, format='json'
        )
        response = self.client.get(reverse('admin-id-verifications-statistics'))
        self.assertEqual(response.data, {'pending': 1, 'verified': 0, 'rejected': 1, 'total': 2})

    def test_bulk_approve(self):
        response = self.client.post(
            reverse('admin-id-verifications-bulk-approve'),
            {'user_ids': [self.alice.pk, self.bob.pk, self.carol.pk]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['failed_user_ids'], [])
        self.assertEqual(Notification.objects.filter(notification_type='id_verification_approved').count(), 2)

    def test_bulk_reject(self):
        response = self.client.post(
            reverse('admin-id-verifications-bulk-reject'),
            {'user_ids': [self.alice.pk, self.bob.pk], 'reason': 'unreadable'},
            format='json'
        )
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(IdVerification.objects.filter(status=VerificationStatus.REJECTED).count(), 2)

    def test_bulk_requires_ids(self):
        response = self.client.post(reverse('admin-id-verifications-bulk-approve'), {'user_ids': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_export_csv(self):
        self.client.post(reverse('admin-id-verifications-approve', args=[self.bob.pk]))
        response = self.client.get(reverse('admin-id-verifications-export-csv'), {'status': 'verified'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        rows = list(csv.reader(io.StringIO(response.content.decode())))
        self.assertEqual(rows[0], ['ID', 'Name', 'Email', 'ID Type', 'Status', 'Submitted Date'])
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1][:5], [str(self.bob.pk), 'Bob Reyes', 'bob@example.com', '', 'Verified'])

    def test_export_csv_rejects_malformed_dates(self):
        for params in ({'from_date': 'notadate'}, {'to_date': '2024-02-30'}):
            response = self.client.get(reverse('admin-id-verifications-export-csv'), params)
            self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
            self.assertFalse(response.data['success'])
            self.assertIn(next(iter(params)), response.data['errors'])

    def test_export_csv_date_range(self):
        today = timezone.localdate().isoformat()
        response = self.client.get(
            reverse('admin-id-verifications-export-csv'), {'from_date': today, 'to_date': today}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = list(csv.reader(io.StringIO(response.content.decode())))
        self.assertEqual(len(rows), 3)

    def test_export_csv_escapes_formula_cells(self):
        User.objects.filter(pk=self.alice.pk).update(first_name='=HYPERLINK("http://evil")', last_name='')
        response = self.client.get(reverse('admin-id-verifications-export-csv'))
        rows = list(csv.reader(io.StringIO(response.content.decode())))
        names = {row[0]: row[1] for row in rows[1:]}
        self.assertEqual(names[str(self.alice.pk)], '\'=HYPERLINK("http://evil")')
        self.assertEqual(names[str(self.bob.pk)], 'Bob Reyes')

    def test_require_verification_flag(self):
        response = self.client.post(
            reverse('admin-id-verifications-require', args=[self.carol.pk]), {'required': True}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(UserProfile.objects.get(user=self.carol).id_verification_required_by_admin)
        self.assertTrue(AuditLog.objects.filter(action='id_verification_required').exists())


class RequireIdVerificationMiddlewareTest(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='flagged', password='testpass123')
        UserProfile.objects.filter(user=self.user).update(id_verification_required_by_admin=True)
        self.client.force_login(self.user)

    def test_blocks_other_endpoints(self):
        response = self.client.get('/notification/notifications/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(
            response.json(),
            {
                'message': 'ID verification required. Please complete identity verification to continue.',
                'redirect': reverse('id-verification-show'),
            }
        )

    def test_allows_verification_endpoints(self):
        self.assertEqual(self.client.get(reverse('id-verification-show')).status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get(reverse('user-profile')).status_code, status.HTTP_200_OK)

    def test_verified_user_passes(self):
        admin = User.objects.create_user(username='reviewer', password='testpass123', is_staff=True)
        make_pending(self.user).approve(admin)
        response = self.client.get('/notification/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_unflagged_user_passes(self):
        UserProfile.objects.filter(user=self.user).update(id_verification_required_by_admin=False)
        response = self.client.get('/notification/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_blocks_token_authenticated_requests(self):
        self.client.logout()
        token = Token.objects.create(user=self.user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token.key}")
        response = self.client.get('/notification/notifications/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()['redirect'], reverse('id-verification-show'))
        self.assertEqual(self.client.get(reverse('id-verification-show')).status_code, status.HTTP_200_OK)

    def test_invalid_token_is_left_to_the_view(self):
        self.client.logout()
        self.client.credentials(HTTP_AUTHORIZATION='Token not-a-real-key')
        response = self.client.get('/notification/notifications/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertNotIn('redirect', response.json())


class RepairIncompletePendingTest(TestCase):
    def setUp(self):
        self.broken = User.objects.create_user(username='broken', password='testpass123')
        self.healthy = User.objects.create_user(username='healthy', password='testpass123')
        force_pending_without_images(self.broken)
        make_pending(self.healthy)

    def test_dry_run_changes_nothing(self):
        self.assertEqual(repair_incomplete_pending_verifications(dry_run=True), 1)
        self.assertEqual(IdVerification.objects.get(user=self.broken).status, VerificationStatus.PENDING)

    def test_resets_only_incomplete_records(self):
        self.assertEqual(repair_incomplete_pending_verifications(), 1)
        self.assertIsNone(IdVerification.objects.get(user=self.broken).status)
        self.assertEqual(IdVerification.objects.get(user=self.healthy).status, VerificationStatus.PENDING)

    def test_management_command(self):
        out = io.StringIO()
        call_command('repair_id_verifications', stdout=out)
        self.assertIn('Reset 1 incomplete pending ID verifications', out.getvalue())
        self.assertIsNone(IdVerification.objects.get(user=self.broken).status)

    def test_data_migration(self):
        migration = importlib.import_module('accounts.migrations.0002_repair_incomplete_pending')
        migration.reset_incomplete_pending(django_apps, None)
        self.assertIsNone(IdVerification.objects.get(user=self.broken).status)
        self.assertEqual(IdVerification.objects.get(user=self.healthy).status, VerificationStatus.PENDING)


@override_settings(ID_VERIFICATION_PROFILE_PATH='/me')
class NotificationLinkSettingsTest(TestCase):
    def test_profile_path_is_configurable(self):
        user = User.objects.create_user(username='worker', password='testpass123')
        admin = User.objects.create_user(username='reviewer', password='testpass123', is_staff=True)
        make_pending(user)
        IdVerificationService(storage=IdDocumentStorage(storage=FakeStorage())).approve(admin, user)
        self.assertEqual(Notification.objects.get(recipient=user).action_url, 'http://localhost:8000/me')
