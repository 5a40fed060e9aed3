from django.core.management.base import BaseCommand, CommandError

from analyses.exceptions import ValidationError
from analyses.services.archival import MIN_RETENTION_DAYS, cleanup_archives


class Command(BaseCommand):
    help = "Delete archived analyses older than a retention period (at least one year)."

    def add_arguments(self, parser):
        parser.add_argument('--older-than', type=int, default=MIN_RETENTION_DAYS,
                            help=f'Retention in days; minimum and default {MIN_RETENTION_DAYS}.')

    def handle(self, *args, **options):
        try:
            deleted = cleanup_archives(options['older_than'])
        except ValidationError as e:
            raise CommandError(e.message) from e
        self.stdout.write(self.style.SUCCESS(
            f"Deleted {deleted} archived analyses older than {options['older_than']} days"
        ))
