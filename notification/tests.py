from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.exceptions import ValidationError
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import UserProfile
from .exceptions import NotificationDeliveryFailed
from .models import Notification, NotificationLevel, NotificationStatus, NotificationType
from .services import (
    NotificationService, id_verification_approved_payload, id_verification_rejected_payload,
)

User = get_user_model()


class NotificationPayloadTest(TestCase):
    def test_approved_payload(self):
        self.assertEqual(id_verification_approved_payload(), {
            'type': 'id_verification_approved',
            'title': 'Identity Verified!',
            'message': 'Your identity has been verified!',
            'action_url': 'http://localhost:8000/profile',
            'action_text': 'View Profile',
            'icon': 'check-circle',
            'color': 'green',
        })

    def test_rejected_payload_carries_reason(self):
        payload = id_verification_rejected_payload('photo is blurry')
        self.assertEqual(payload['type'], 'id_verification_rejected')
        self.assertEqual(payload['title'], 'ID Verification Rejected')
        self.assertEqual(
            payload['message'],
            'Your ID verification was not approved. Reason: photo is blurry. Please re-upload your documents.'
        )
        self.assertEqual(payload['action_url'], 'http://localhost:8000/id-verification')
        self.assertEqual(payload['action_text'], 'Re-upload ID')
        self.assertEqual((payload['icon'], payload['color']), ('x-circle', 'red'))


class NotificationServiceTest(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='worker', email='worker@example.com', password='testpass123')
        self.admin = User.objects.create_user(username='reviewer', password='testpass123', is_staff=True)

    def test_send_stores_and_emails(self):
        notification = NotificationService.send(self.user, id_verification_approved_payload(), sender=self.admin)
        self.assertEqual(notification.recipient, self.user)
        self.assertEqual(notification.sender, self.admin)
        self.assertEqual(notification.level, NotificationLevel.SUCCESS)
        self.assertEqual(notification.status, NotificationStatus.SENT)
        self.assertEqual(notification.to_payload(), id_verification_approved_payload())
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, 'Identity Verified!')
        self.assertIn('View Profile: http://localhost:8000/profile', mail.outbox[0].body)

    def test_respects_profile_preferences(self):
        UserProfile.objects.filter(user=self.user).update(notify_in_app=False)
        self.user = User.objects.get(pk=self.user.pk)
        self.assertIsNone(NotificationService.send(self.user, id_verification_rejected_payload('blurry')))
        self.assertFalse(Notification.objects.exists())
        self.assertEqual(len(mail.outbox), 1)

    def test_no_email_without_address(self):
        NotificationService.send(self.admin, id_verification_approved_payload())
        self.assertEqual(len(mail.outbox), 0)
        self.assertEqual(Notification.objects.filter(recipient=self.admin).count(), 1)

    def test_failures_are_wrapped(self):
        with mock.patch('notification.services.send_mail', side_effect=OSError('smtp down')):
            with self.assertRaises(NotificationDeliveryFailed) as ctx:
                NotificationService.send(self.user, id_verification_approved_payload())
        self.assertEqual(ctx.exception.notification_type, 'id_verification_approved')
        self.assertEqual(ctx.exception.recipient_id, self.user.pk)
        self.assertIsInstance(ctx.exception.cause, OSError)

    def test_action_text_requires_url(self):
        notification = Notification(recipient=self.user, title='Hello', message='Hi', action_text='Open')
        with self.assertRaises(ValidationError):
            notification.save()


class NotificationInboxAPITest(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='worker', password='testpass123')
        self.other = User.objects.create_user(username='other', password='testpass123')
        self.mine = NotificationService.send(self.user, id_verification_approved_payload())
        NotificationService.send(self.other, id_verification_rejected_payload('blurry'))
        self.client.force_authenticate(user=self.user)

    def test_list_only_own_notifications(self):
        response = self.client.get(reverse('notification-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        results = response.data['results'] if isinstance(response.data, dict) else response.data
        self.assertEqual([item['id'] for item in results], [str(self.mine.id)])
        self.assertEqual(results[0]['notification_type'], NotificationType.ID_VERIFICATION_APPROVED)

    def test_mark_as_read_and_unread(self):
        response = self.client.patch(reverse('notification-mark-as-read', args=[self.mine.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['isRead'])
        self.assertEqual(self.client.get(reverse('notification-unread-count')).data, {'unread_count': 0})

        response = self.client.patch(reverse('notification-mark-as-unread', args=[self.mine.id]))
        self.assertFalse(response.data['isRead'])
        self.assertEqual(self.client.get(reverse('notification-unread-count')).data, {'unread_count': 1})

    def test_cannot_touch_other_users_notifications(self):
        theirs = Notification.objects.get(recipient=self.other)
        response = self.client.patch(reverse('notification-mark-as-read', args=[theirs.id]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_bulk_mark_read(self):
        NotificationService.send(self.user, id_verification_rejected_payload('expired'))
        ids = [str(pk) for pk in Notification.objects.filter(recipient=self.user).values_list('id', flat=True)]
        response = self.client.post(reverse('notification-bulk-mark-read'), {'notification_ids': ids}, format='json')
        self.assertEqual(response.data, {'updated_count': 2})
        self.assertFalse(Notification.objects.filter(recipient=self.user, isRead=False).exists())
