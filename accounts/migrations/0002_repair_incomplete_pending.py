from django.db import migrations
from django.db.models import Q


def reset_incomplete_pending(apps, schema_editor):
    """Pending verifications missing an image go back to not submitted."""
    IdVerification = apps.get_model('accounts', 'IdVerification')
    IdVerification.objects.filter(status='pending').filter(
        Q(front_image__isnull=True) | Q(front_image='') |
        Q(back_image__isnull=True) | Q(back_image='')
    ).update(status=None, submitted_at=None)


class Migration(migrations.Migration):

    dependencies = [
        ('accounts', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(reset_incomplete_pending, migrations.RunPython.noop),
    ]
