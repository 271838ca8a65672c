from django.core.management.base import BaseCommand
from accounts.tasks import repair_incomplete_pending_verifications


class Command(BaseCommand):
    help = 'Reset pending ID verifications that are missing a front or back image'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show how many records would be reset without changing them'
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']

        if dry_run:
            self.stdout.write(
                self.style.WARNING('DRY RUN MODE - No records will be changed')
            )

        count = repair_incomplete_pending_verifications(dry_run=dry_run)

        if count == 0:
            self.stdout.write(self.style.SUCCESS('No incomplete pending ID verifications found'))
        elif dry_run:
            self.stdout.write(self.style.WARNING(f'{count} incomplete pending ID verifications would be reset'))
        else:
            self.stdout.write(self.style.SUCCESS(f'Reset {count} incomplete pending ID verifications'))
