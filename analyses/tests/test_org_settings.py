from datetime import timedelta
from decimal import Decimal

import pytest

from analyses.exceptions import NotFoundError, ValidationError
from analyses.models import AuditEvent, OrganizationSetting
from analyses.services import org_settings
from analyses.services.org_settings import SettingsSnapshot

pytestmark = pytest.mark.django_db


@pytest.mark.parametrize('raw,data_type,expected', [
    ('42', 'integer', 42),
    ('1.50', 'decimal', Decimal('1.50')),
    ('true', 'boolean', True),
    ('0', 'boolean', False),
    ('{"a": [1, 2]}', 'json', {'a': [1, 2]}),
    ('hours', 'string', 'hours'),
])
def test_parse_value(raw, data_type, expected):
    assert org_settings.parse_value(raw, data_type) == expected


def test_parse_value_rejects_garbage():
    with pytest.raises(ValidationError):
        org_settings.parse_value('twelve', 'integer')


def test_snapshot_defaults_on_empty_table():
    assert org_settings.load_snapshot() == SettingsSnapshot()


def test_snapshot_reads_stored_values_and_ignores_malformed():
    OrganizationSetting.objects.create(setting_key='cancelled_analysis_archive_delay', setting_value='3',
                                       data_type='integer')
    OrganizationSetting.objects.create(setting_key='auto_archive_enabled', setting_value='false',
                                       data_type='boolean')
    OrganizationSetting.objects.create(setting_key='prescription_validation_notification_hours',
                                       setting_value='soon', data_type='integer')

    snap = org_settings.load_snapshot()

    assert snap.cancelled_analysis_archive_delay == 3
    assert snap.auto_archive_enabled is False
    assert snap.prescription_validation_notification_hours == 72


def test_snapshot_is_immutable():
    snap = SettingsSnapshot()
    with pytest.raises(AttributeError):
        snap.auto_archive_enabled = False


def test_snapshot_intervals():
    snap = SettingsSnapshot(archiving_check_interval_value=30, archiving_check_interval_unit='minutes',
                            prescription_check_interval_value=2, prescription_check_interval_unit='days')
    assert snap.archiving_interval == timedelta(minutes=30)
    assert snap.prescription_check_interval == timedelta(days=2)
    assert snap.notification_lead_time == timedelta(hours=72)


def test_seed_defaults_is_idempotent():
    assert org_settings.seed_defaults() == len(org_settings.DEFAULTS)
    assert org_settings.seed_defaults() == 0
    assert OrganizationSetting.objects.get(setting_key='auto_archive_enabled').setting_value == 'true'


def test_seed_keeps_existing_values():
    OrganizationSetting.objects.create(setting_key='cancelled_analysis_archive_delay', setting_value='5',
                                       data_type='integer')
    org_settings.seed_defaults()
    assert OrganizationSetting.objects.get(setting_key='cancelled_analysis_archive_delay').setting_value == '5'


def test_update_setting_is_audited(agent):
    data = org_settings.update_setting('cancelled_analysis_archive_delay', 4, user=agent)

    assert data['value'] == 4
    assert org_settings.load_snapshot().cancelled_analysis_archive_delay == 4
    event = AuditEvent.objects.get(action='setting_updated')
    assert event.user == agent
    assert event.detail == {'key': 'cancelled_analysis_archive_delay', 'old': None, 'new': '4'}


@pytest.mark.parametrize('key,value', [
    ('cancelled_analysis_archive_delay', -1),
    ('cancelled_analysis_archive_delay', 'abc'),
    ('archiving_check_interval_unit', 'weeks'),
    ('prescription_check_interval_value', 0),
    ('auto_archive_enabled', 'banana'),
    ('max_analyses_per_day', 0),
    ('max_analyses_per_day', 1001),
    ('working_days', []),
    ('working_days', ['Monday', 'Funday']),
    ('working_days', '"Monday"'),
])
def test_update_setting_validation(key, value):
    with pytest.raises(ValidationError):
        org_settings.update_setting(key, value)


def test_unknown_setting_needs_a_type():
    with pytest.raises(NotFoundError):
        org_settings.update_setting('ui_theme', 'dark')
    assert org_settings.update_setting('ui_theme', 'dark', data_type='string')['value'] == 'dark'


def test_list_settings_merges_defaults():
    org_settings.update_setting('auto_archive_enabled', False)
    rows = {r['key']: r for r in org_settings.list_settings()}
    assert rows['auto_archive_enabled']['value'] is False
    assert rows['auto_archive_enabled']['isDefault'] is False
    assert rows['prescription_validation_notification_hours']['isDefault'] is True


@pytest.mark.parametrize('value,stored', [(True, 'true'), ('off', 'false'), (' Yes ', 'true'), (0, 'false')])
def test_boolean_settings_accept_common_spellings(value, stored):
    org_settings.update_setting('auto_archive_enabled', value)
    assert OrganizationSetting.objects.get(setting_key='auto_archive_enabled').setting_value == stored


def test_non_boolean_string_is_rejected_and_nothing_stored():
    with pytest.raises(ValidationError):
        org_settings.update_setting('prescription_notification_enabled', 'banana')
    assert not OrganizationSetting.objects.filter(setting_key='prescription_notification_enabled').exists()
    assert not AuditEvent.objects.filter(action='setting_updated').exists()


def test_working_days_round_trip_into_the_snapshot():
    org_settings.update_setting('working_days', ['Saturday', 'Sunday'])
    org_settings.update_setting('max_analyses_per_day', 8)

    snap = org_settings.load_snapshot()

    assert snap.working_days == ('Saturday', 'Sunday')
    assert snap.max_analyses_per_day == 8


def test_snapshot_ignores_invalid_working_days():
    OrganizationSetting.objects.create(setting_key='working_days', setting_value='["Funday"]', data_type='json')
    assert org_settings.load_snapshot().working_days == SettingsSnapshot().working_days
