from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier for the notification', primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(db_index=True, help_text='The title of the notification', max_length=255, verbose_name='Title')),
                ('message', models.TextField(help_text='The main content of the notification', verbose_name='Message')),
                ('notification_type', models.CharField(choices=[('id_verification_approved', 'ID Verification Approved'), ('id_verification_rejected', 'ID Verification Rejected'), ('account_update', 'Account Update'), ('security_alert', 'Security Alert'), ('system_alert', 'System Alert'), ('other', 'Other')], db_index=True, default='other', help_text='The category of the notification', max_length=35, verbose_name='Notification Type')),
                ('level', models.CharField(choices=[('low', 'Low'), ('info', 'Info'), ('success', 'Success'), ('warning', 'Warning'), ('error', 'Error'), ('critical', 'Critical')], db_index=True, default='info', help_text='The importance level of the notification', max_length=10, verbose_name='Level')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('sent', 'Sent'), ('delivered', 'Delivered'), ('read', 'Read'), ('failed', 'Failed')], default='pending', help_text='Current status of the notification', max_length=20, verbose_name='Status')),
                ('isRead', models.BooleanField(db_index=True, default=False, help_text='Whether the user has read the notification', verbose_name='Is Read')),
                ('read_at', models.DateTimeField(blank=True, help_text='Timestamp when the notification was read', null=True, verbose_name='Read At')),
                ('action_text', models.CharField(blank=True, help_text='Text for the action button', max_length=64, verbose_name='Action Text')),
                ('action_url', models.URLField(blank=True, help_text='URL for the action button', max_length=500, null=True, verbose_name='Action URL')),
                ('icon', models.CharField(blank=True, help_text='Frontend icon name, e.g. check-circle', max_length=50, verbose_name='Icon')),
                ('color', models.CharField(blank=True, help_text='Frontend color name, e.g. green', max_length=20, verbose_name='Color')),
                ('source', models.CharField(blank=True, help_text='Source app or module that generated this notification', max_length=64, verbose_name='Source')),
                ('extra_data', models.JSONField(blank=True, help_text='Additional data for this notification (JSON format)', null=True, verbose_name='Extra Data')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the notification was created', verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the notification was last updated', verbose_name='Updated At')),
                ('recipient', models.ForeignKey(help_text='The user who receives this notification', on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL, verbose_name='Recipient')),
                ('sender', models.ForeignKey(blank=True, help_text='The user or system sending the notification', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sent_notifications', to=settings.AUTH_USER_MODEL, verbose_name='Sender')),
            ],
            options={
                'verbose_name': 'Notification',
                'verbose_name_plural': 'Notifications',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['recipient', 'isRead'], name='notificatio_recipie_4c1f0a_idx'),
                    models.Index(fields=['recipient', 'notification_type'], name='notificatio_recipie_9e2b7c_idx'),
                    models.Index(fields=['recipient', 'created_at'], name='notificatio_recipie_d3a58e_idx'),
                ],
            },
        ),
    ]
