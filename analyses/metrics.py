"""Prometheus counters for the scheduled jobs (exported at ``/metrics``)."""
from prometheus_client import Counter

occurrences_scheduled = Counter(
    'clinic_recurring_occurrences_scheduled_total',
    'Analyses materialized from recurring series',
)
series_pending_prescription = Counter(
    'clinic_recurring_series_pending_prescription_total',
    'Due series left pending because no prescription authorized them',
)
prescription_conflicts = Counter(
    'clinic_prescription_consume_conflicts_total',
    'Prescription consumptions that lost a concurrent race',
)
analyses_archived = Counter(
    'clinic_analyses_archived_total',
    'Analyses moved to the archive',
    ['reason'],
)
archive_failures = Counter(
    'clinic_analyses_archive_failures_total',
    'Analyses that failed to archive',
)
