from django.core.management.base import BaseCommand
from django.utils import timezone

from analyses.services.org_settings import load_snapshot
from analyses.services.prescriptions import expire_stale
from analyses.services.scheduler import notify_upcoming


class Command(BaseCommand):
    help = "Refresh prescription statuses and warn about upcoming uncovered analyses."

    def handle(self, *args, **options):
        today = timezone.localdate()
        snapshot = load_snapshot()
        counts = expire_stale(today)
        notified = notify_upcoming(today, snapshot)
        self.stdout.write(self.style.SUCCESS(
            f"{counts['expired']} expired, {counts['exhausted']} exhausted, {notified} reminders raised "
            f"(next check in {snapshot.prescription_check_interval})"
        ))
