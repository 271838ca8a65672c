from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import phonenumber_field.modelfields
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('contenttypes', '0002_remove_content_type_name'),
    ]

    operations = [
        migrations.CreateModel(
            name='UserProfile',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_type', models.CharField(blank=True, choices=[('employer', 'Employer'), ('gig_worker', 'Gig Worker'), ('admin', 'Admin')], max_length=20, null=True)),
                ('phone', phonenumber_field.modelfields.PhoneNumberField(blank=True, max_length=128, null=True, region=None, unique=True)),
                ('notify_email', models.BooleanField(default=True, help_text='Receive notifications via email')),
                ('notify_in_app', models.BooleanField(default=True, help_text='Receive notifications in-app')),
                ('id_verification_required_by_admin', models.BooleanField(default=False, help_text='Block sensitive actions until the user completes ID verification')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='profile', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
                ('action', models.CharField(choices=[('id_front_uploaded', 'ID Front Uploaded'), ('id_back_uploaded', 'ID Back Uploaded'), ('id_resubmitted', 'ID Resubmitted'), ('id_approved', 'ID Approved'), ('id_rejected', 'ID Rejected'), ('id_verification_required', 'ID Verification Required'), ('admin_action', 'Admin Action'), ('security_alert', 'Security Alert')], max_length=50)),
                ('description', models.TextField()),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.TextField(blank=True)),
                ('severity', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('critical', 'Critical')], default='low', max_length=20)),
                ('object_id', models.CharField(blank=True, max_length=64, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('content_type', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, to='contenttypes.contenttype')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-timestamp'],
                'indexes': [
                    models.Index(fields=['timestamp'], name='accounts_au_timesta_2f3c1e_idx'),
                    models.Index(fields=['user', 'action'], name='accounts_au_user_id_8a1b4d_idx'),
                    models.Index(fields=['severity'], name='accounts_au_severit_5d6e2a_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='IdVerification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(blank=True, choices=[('pending', 'Pending'), ('verified', 'Verified'), ('rejected', 'Rejected')], db_index=True, default=None, max_length=10, null=True, verbose_name='Verification Status')),
                ('id_type', models.CharField(blank=True, choices=[('national_id', 'National ID'), ('drivers_license', "Driver's License"), ('passport', 'Passport'), ('philhealth_id', 'PhilHealth'), ('sss_id', 'SSS'), ('umid', 'UMID'), ('voters_id', "Voter's ID"), ('prc_id', 'PRC')], max_length=20, null=True)),
                ('front_image', models.CharField(blank=True, help_text='Storage URL of the front of the ID', max_length=500, null=True)),
                ('back_image', models.CharField(blank=True, help_text='Storage URL of the back of the ID', max_length=500, null=True)),
                ('verified_at', models.DateTimeField(blank=True, null=True)),
                ('review_notes', models.TextField(blank=True, null=True)),
                ('submitted_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('reviewed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviewed_id_verifications', to=settings.AUTH_USER_MODEL)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='id_verification', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'ID Verification',
                'verbose_name_plural': 'ID Verifications',
                'ordering': ['-submitted_at', '-created_at'],
            },
        ),
    ]
