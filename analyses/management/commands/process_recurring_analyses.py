from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from django.utils.dateparse import parse_date

from analyses.services.org_settings import load_snapshot
from analyses.services.scheduler import run_due_series


class Command(BaseCommand):
    help = "Materialize due occurrences of recurring analyses (run from cron)."

    def add_arguments(self, parser):
        parser.add_argument('--date', help='Process as of this date (YYYY-MM-DD); defaults to today.')

    def handle(self, *args, **options):
        today = timezone.localdate()
        if options.get('date'):
            today = parse_date(options['date'])
            if today is None:
                raise CommandError(f"invalid --date {options['date']!r}")

        report = run_due_series(today, load_snapshot())
        summary = report.as_dict()
        for failure in report.failures:
            self.stderr.write(self.style.WARNING(f"series {failure['seriesId']}: {failure['error']}"))
        self.stdout.write(self.style.SUCCESS(
            f"{today}: {summary['scheduled']} scheduled, {summary['pending']} pending prescription, "
            f"{summary['failed']} failed"
        ))
