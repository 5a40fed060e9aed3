from datetime import date

import pytest

from analyses.exceptions import ConcurrencyConflict, InvalidTransition, NotFoundError, ValidationError
from analyses.models import AuditEvent, Notification, Prescription
from analyses.services import prescriptions, scheduler

pytestmark = pytest.mark.django_db


def _submit(series, **kwargs):
    fields = {
        'series_id': series.pk,
        'prescription_number': 'RX-2024-001',
        'valid_from': date(2024, 1, 1),
        'valid_until': date(2024, 6, 30),
        'total_analyses_prescribed': 4,
    }
    fields.update(kwargs)
    return prescriptions.submit(**fields)


class TestSubmit:
    def test_valid_submission(self, make_series, agent):
        series = make_series()
        p = _submit(series, actor=agent)
        assert p.status == Prescription.STATUS_ACTIVE
        assert p.remaining_analyses == 4
        assert p.verified_at is not None
        assert p.patient_id == series.patient_id
        assert p.doctor_id == series.doctor_id
        assert p.prescribed_by == agent
        assert AuditEvent.objects.filter(action='prescription_verified', object_id=p.pk, user=agent).exists()

    def test_inverted_dates_rejected(self, make_series):
        with pytest.raises(ValidationError):
            _submit(make_series(), valid_from=date(2024, 6, 30), valid_until=date(2024, 1, 1))

    def test_zero_analyses_rejected(self, make_series):
        with pytest.raises(ValidationError):
            _submit(make_series(), total_analyses_prescribed=0)

    def test_unknown_series(self, make_series):
        series = make_series()
        with pytest.raises(NotFoundError):
            _submit(series, series_id=series.pk + 1000)

    def test_inactive_series_rejected(self, make_series):
        with pytest.raises(ValidationError):
            _submit(make_series(is_active=False))

    def test_duplicate_number_rejected(self, make_series):
        series = make_series()
        _submit(series)
        with pytest.raises(ValidationError):
            _submit(series)
        assert Prescription.objects.count() == 1

    def test_submission_dismisses_pending_verification(self, make_series):
        series = make_series(next_due_date=date(2024, 3, 1))
        scheduler.schedule_series(series, date(2024, 3, 1))
        assert Notification.objects.filter(is_dismissed=False).count() == 1

        _submit(series)

        assert Notification.objects.filter(is_dismissed=False).count() == 0


@pytest.mark.parametrize('remaining,valid_until,today,expected', [
    (3, date(2024, 6, 30), date(2024, 3, 1), Prescription.STATUS_ACTIVE),
    (3, date(2024, 6, 30), date(2024, 6, 30), Prescription.STATUS_ACTIVE),
    (3, date(2024, 6, 30), date(2024, 7, 1), Prescription.STATUS_EXPIRED),
    (0, date(2024, 6, 30), date(2024, 3, 1), Prescription.STATUS_EXHAUSTED),
    (0, date(2024, 6, 30), date(2024, 7, 1), Prescription.STATUS_EXPIRED),
])
def test_refresh_status(make_series, make_prescription, remaining, valid_until, today, expected):
    p = make_prescription(make_series(), remaining_analyses=remaining, valid_until=valid_until)
    prescriptions.refresh_status(p, today)
    p.refresh_from_db()
    assert p.status == expected


def test_refresh_never_touches_cancelled(make_series, make_prescription):
    p = make_prescription(make_series(), status=Prescription.STATUS_CANCELLED, valid_until=date(2024, 1, 31))
    prescriptions.refresh_status(p, date(2024, 6, 1))
    p.refresh_from_db()
    assert p.status == Prescription.STATUS_CANCELLED


def test_expired_stays_expired_on_an_earlier_run(make_series, make_prescription):
    series = make_series(next_due_date=date(2024, 1, 5))
    p = make_prescription(series, status=Prescription.STATUS_EXPIRED, valid_until=date(2024, 1, 10))

    report = scheduler.run_due_series(date(2024, 1, 5))

    assert report.count(scheduler.PENDING) == 1
    assert report.count(scheduler.SCHEDULED) == 0
    p.refresh_from_db()
    assert p.status == Prescription.STATUS_EXPIRED
    assert p.remaining_analyses == 3
    assert prescriptions.compute_status(p, date(2024, 1, 5)) == Prescription.STATUS_EXPIRED


def test_refresh_only_saves_on_change(make_series, make_prescription):
    p = make_prescription(make_series())
    before = p.updated_at
    prescriptions.refresh_status(p, date(2024, 3, 1))
    p.refresh_from_db()
    assert p.updated_at == before


def test_consume_decrements_and_exhausts(make_series, make_prescription):
    p = make_prescription(make_series(), total=2)
    prescriptions.consume(p)
    assert p.remaining_analyses == 1
    assert p.status == Prescription.STATUS_ACTIVE
    prescriptions.consume(p)
    assert p.remaining_analyses == 0
    assert p.status == Prescription.STATUS_EXHAUSTED


def test_consume_never_goes_negative(make_series, make_prescription):
    p = make_prescription(make_series(), total=1)
    stale = Prescription.objects.get(pk=p.pk)
    prescriptions.consume(p)
    with pytest.raises(ConcurrencyConflict):
        prescriptions.consume(stale)
    p.refresh_from_db()
    assert p.remaining_analyses == 0


def test_find_authorizing_skips_exhausted(make_series, make_prescription):
    series = make_series()
    make_prescription(series, remaining_analyses=0)
    assert prescriptions.find_authorizing(series, date(2024, 3, 1)) is None


def test_cancel(make_series, make_prescription, agent):
    p = make_prescription(make_series())
    prescriptions.cancel(p, reason='wrong patient', actor=agent)
    p.refresh_from_db()
    assert p.status == Prescription.STATUS_CANCELLED
    assert 'wrong patient' in p.notes
    with pytest.raises(InvalidTransition):
        prescriptions.cancel(p)


def test_expire_stale(make_series, make_prescription):
    series = make_series()
    expired = make_prescription(series, valid_until=date(2024, 2, 1))
    exhausted = make_prescription(series, remaining_analyses=0)
    active = make_prescription(series)

    counts = prescriptions.expire_stale(date(2024, 3, 1))

    assert counts == {'expired': 1, 'exhausted': 1}
    assert Prescription.objects.get(pk=expired.pk).status == Prescription.STATUS_EXPIRED
    assert Prescription.objects.get(pk=exhausted.pk).status == Prescription.STATUS_EXHAUSTED
    assert Prescription.objects.get(pk=active.pk).status == Prescription.STATUS_ACTIVE
