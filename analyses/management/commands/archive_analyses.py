from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from django.utils.dateparse import parse_date

from analyses.services.archival import run_archival
from analyses.services.org_settings import load_snapshot


class Command(BaseCommand):
    help = "Move completed and cancelled analyses to the archive."

    def add_arguments(self, parser):
        parser.add_argument('--force', action='store_true', help='Run even if auto_archive_enabled is off.')
        parser.add_argument('--date', help='Archive as of this date (YYYY-MM-DD); defaults to today.')

    def handle(self, *args, **options):
        today = timezone.localdate()
        if options.get('date'):
            today = parse_date(options['date'])
            if today is None:
                raise CommandError(f"invalid --date {options['date']!r}")

        report = run_archival(today, load_snapshot(), force=options['force'])
        if report.skipped:
            self.stdout.write(self.style.WARNING("auto archive is disabled; use --force to run anyway"))
            return
        for failure in report.failures:
            self.stderr.write(self.style.ERROR(failure.message))
        self.stdout.write(self.style.SUCCESS(
            f"Archived {report.archived} analyses ({report.archived_completed} completed, "
            f"{report.archived_cancelled} cancelled), {len(report.failures)} failed"
        ))
