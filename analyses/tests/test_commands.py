from datetime import date, timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from analyses.models import Analysis, ArchivedAnalysis, OrganizationSetting, Prescription
from analyses.services import org_settings

from .helpers import aware

pytestmark = pytest.mark.django_db


def run(*args):
    out = StringIO()
    call_command(*args, stdout=out, stderr=StringIO())
    return out.getvalue()


def test_seed_settings():
    assert f'Seeded {len(org_settings.DEFAULTS)} settings' in run('seed_settings')
    assert OrganizationSetting.objects.count() == len(org_settings.DEFAULTS)


def test_process_recurring_analyses_for_a_given_date(make_series, make_prescription):
    series = make_series(next_due_date=date(2024, 3, 1))
    make_prescription(series)

    out = run('process_recurring_analyses', '--date', '2024-03-01')

    assert '1 scheduled' in out
    assert Analysis.objects.filter(recurring_analysis=series).count() == 1


def test_process_recurring_analyses_rejects_bad_date():
    with pytest.raises(CommandError):
        run('process_recurring_analyses', '--date', 'yesterday')


def test_archive_analyses_honours_the_switch(patient):
    a = Analysis.objects.create(analysis_date=aware(date(2024, 3, 1)), patient=patient, analysis_type='HG',
                                status=Analysis.STATUS_COMPLETED)
    org_settings.update_setting('auto_archive_enabled', False)

    out = run('archive_analyses', '--date', '2024-03-05')
    assert 'disabled' in out
    assert Analysis.objects.filter(pk=a.pk).exists()

    out = run('archive_analyses', '--date', '2024-03-05', '--force')
    assert 'Archived 1 analyses' in out
    assert ArchivedAnalysis.objects.filter(original_analysis_id=a.pk).exists()


def test_check_prescriptions_expires_stale(make_series, make_prescription):
    p = make_prescription(make_series(), valid_until=timezone.localdate() - timedelta(days=1),
                          valid_from=timezone.localdate() - timedelta(days=30))
    out = run('check_prescriptions')
    assert '1 expired' in out
    p.refresh_from_db()
    assert p.status == Prescription.STATUS_EXPIRED


def test_cleanup_archives_enforces_retention():
    with pytest.raises(CommandError):
        run('cleanup_archives', '--older-than', '30')
    assert 'Deleted 0 archived analyses older than 365 days' in run('cleanup_archives')
