from datetime import date

import pytest
from django.core.cache import cache
from django.utils import timezone

from analyses.models import Doctor, Patient, Prescription, RecurringAnalysis, Room, User


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttle counters live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def patient(db):
    return Patient.objects.create(name='Jeanne Martin', national_id='FR-123')


@pytest.fixture
def doctor(db):
    return Doctor.objects.create(name='Dr. Bernard', specialization='Hematology')


@pytest.fixture
def room(db):
    return Room.objects.create(room_number='B12', service='Lab')


@pytest.fixture
def agent(db):
    return User.objects.create_user(username='agent1', password='P@ssw0rd1', role='agent')


@pytest.fixture
def make_series(patient, doctor, room):
    def factory(**kwargs):
        fields = {
            'patient': patient,
            'doctor': doctor,
            'room': room,
            'analysis_type': 'XY',
            'recurrence_pattern': RecurringAnalysis.PATTERN_DAILY,
            'interval_days': 1,
            'total_occurrences': 5,
            'next_due_date': date(2024, 1, 1),
        }
        fields.update(kwargs)
        return RecurringAnalysis.objects.create(**fields)
    return factory


@pytest.fixture
def make_prescription(db):
    counter = {'n': 0}

    def factory(series, **kwargs):
        counter['n'] += 1
        total = kwargs.pop('total', 3)
        fields = {
            'recurring_analysis': series,
            'patient': series.patient,
            'doctor': series.doctor,
            'prescription_number': f'RX-{counter["n"]:04d}',
            'valid_from': date(2024, 1, 1),
            'valid_until': date(2024, 12, 31),
            'total_analyses_prescribed': total,
            'remaining_analyses': total,
            'status': Prescription.STATUS_ACTIVE,
            'verified_at': timezone.now(),
        }
        fields.update(kwargs)
        return Prescription.objects.create(**fields)
    return factory
