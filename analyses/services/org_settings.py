"""
Organization settings: typed key/value store and the per-job snapshot.

Jobs never read settings lazily while they run.  They call
:func:`load_snapshot` once and pass the resulting immutable
:class:`SettingsSnapshot` down to the scheduler, validator and archival
functions, which keeps those functions testable with a hand-built snapshot.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from django.db import transaction

from analyses.exceptions import NotFoundError, ValidationError
from analyses.models import OrganizationSetting
from analyses.services.audit import log_action

logger = logging.getLogger(__name__)

INTERVAL_UNITS = ('minutes', 'hours', 'days')
WEEKDAYS = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')
MAX_ANALYSES_PER_DAY_LIMIT = 1000
TRUE_VALUES = {'1', 'true', 'yes', 'on'}
FALSE_VALUES = {'0', 'false', 'no', 'off'}

# key -> (data_type, default value, description)
DEFAULTS: dict[str, tuple[str, Any, str]] = {
    'auto_archive_enabled': ('boolean', True, 'Automatically archive terminal analyses'),
    'cancelled_analysis_archive_delay': ('integer', 1, 'Days to keep cancelled analyses before archiving'),
    'archiving_check_interval_value': ('integer', 1, 'How often to run archiving jobs (number)'),
    'archiving_check_interval_unit': ('string', 'hours', 'Unit for archiving check interval (minutes, hours, days)'),
    'prescription_notification_enabled': ('boolean', True, 'Notify staff ahead of analyses lacking a prescription'),
    'prescription_validation_notification_hours': ('integer', 72, 'Lead time in hours for prescription reminders'),
    'prescription_check_interval_value': ('integer', 4, 'How often to run the prescription check (number)'),
    'prescription_check_interval_unit': ('string', 'hours', 'Unit for prescription check interval (minutes, hours, days)'),
    'max_analyses_per_day': ('integer', 50, 'Maximum number of analyses that can be scheduled per day'),
    'working_days': ('json', list(WEEKDAYS[:5]), 'Working days of the week'),
}


def parse_value(raw: str, data_type: str) -> Any:
    try:
        if data_type == 'integer':
            return int(raw)
        if data_type == 'decimal':
            return Decimal(raw)
        if data_type == 'boolean':
            return _to_bool(raw)
        if data_type == 'json':
            return json.loads(raw)
    except (ValueError, TypeError, InvalidOperation) as e:
        raise ValidationError(f'value {raw!r} is not a valid {data_type}') from e
    return raw


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValueError(f'not a boolean: {value!r}')


def serialize_value(value: Any, data_type: str) -> str:
    if data_type == 'boolean':
        try:
            return 'true' if _to_bool(value) else 'false'
        except ValueError as e:
            raise ValidationError(f'value {value!r} is not a valid boolean') from e
    if data_type == 'json':
        return value if isinstance(value, str) else json.dumps(value)
    raw = str(value)
    parse_value(raw, data_type)
    return raw


@dataclass(frozen=True)
class SettingsSnapshot:
    auto_archive_enabled: bool = True
    cancelled_analysis_archive_delay: int = 1
    archiving_check_interval_value: int = 1
    archiving_check_interval_unit: str = 'hours'
    prescription_notification_enabled: bool = True
    prescription_validation_notification_hours: int = 72
    prescription_check_interval_value: int = 4
    prescription_check_interval_unit: str = 'hours'
    max_analyses_per_day: int = 50
    working_days: tuple[str, ...] = WEEKDAYS[:5]

    @property
    def notification_lead_time(self) -> timedelta:
        return timedelta(hours=max(0, self.prescription_validation_notification_hours))

    @property
    def archiving_interval(self) -> timedelta:
        return _interval(self.archiving_check_interval_value, self.archiving_check_interval_unit)

    @property
    def prescription_check_interval(self) -> timedelta:
        return _interval(self.prescription_check_interval_value, self.prescription_check_interval_unit)


def _interval(value: int, unit: str) -> timedelta:
    value = max(1, value)
    if unit == 'minutes':
        return timedelta(minutes=min(value, 1440))
    if unit == 'days':
        return timedelta(days=value)
    return timedelta(hours=value)


def load_snapshot() -> SettingsSnapshot:
    """Read every known setting once; missing or malformed rows fall back to defaults."""
    values: dict[str, Any] = {}
    rows = OrganizationSetting.objects.filter(setting_key__in=DEFAULTS.keys())
    for row in rows:
        data_type = DEFAULTS[row.setting_key][0]
        try:
            value = parse_value(row.setting_value, data_type)
            _validate_known(row.setting_key, value)
        except (ValidationError, TypeError):
            logger.warning('ignoring malformed setting %s=%r', row.setting_key, row.setting_value)
            continue
        values[row.setting_key] = tuple(value) if row.setting_key == 'working_days' else value
    return SettingsSnapshot(**values)


def get_setting(key: str) -> dict:
    row = OrganizationSetting.objects.filter(setting_key=key).first()
    if row is None:
        if key not in DEFAULTS:
            raise NotFoundError(f'setting {key} not found')
        data_type, default, description = DEFAULTS[key]
        return {'key': key, 'value': default, 'dataType': data_type, 'description': description, 'isDefault': True}
    return _format(row)


def list_settings() -> list[dict]:
    stored = {row.setting_key: row for row in OrganizationSetting.objects.order_by('setting_key')}
    keys = sorted(set(stored) | set(DEFAULTS))
    return [_format(stored[k]) if k in stored else get_setting(k) for k in keys]


def _format(row: OrganizationSetting) -> dict:
    return {
        'key': row.setting_key,
        'value': parse_value(row.setting_value, row.data_type),
        'dataType': row.data_type,
        'description': row.description,
        'isDefault': False,
        'updatedAt': row.updated_at.isoformat() if row.updated_at else None,
    }


def _validate_known(key: str, value: Any) -> None:
    if key in ('cancelled_analysis_archive_delay', 'prescription_validation_notification_hours') and value < 0:
        raise ValidationError(f'{key} must be >= 0')
    if key.endswith('_interval_value') and value < 1:
        raise ValidationError(f'{key} must be >= 1')
    if key.endswith('_interval_unit') and value not in INTERVAL_UNITS:
        raise ValidationError(f'{key} must be one of {", ".join(INTERVAL_UNITS)}')
    if key == 'max_analyses_per_day' and not 1 <= value <= MAX_ANALYSES_PER_DAY_LIMIT:
        raise ValidationError(f'{key} must be between 1 and {MAX_ANALYSES_PER_DAY_LIMIT}')
    if key == 'working_days':
        if not isinstance(value, list) or not value:
            raise ValidationError('working_days must be a non-empty list of weekday names')
        invalid = [d for d in value if d not in WEEKDAYS]
        if invalid:
            raise ValidationError(f'invalid working day(s): {", ".join(map(str, invalid))}')


@transaction.atomic
def update_setting(key: str, value: Any, *, user=None, data_type: Optional[str] = None) -> dict:
    row = OrganizationSetting.objects.select_for_update().filter(setting_key=key).first()
    if row is None:
        if key in DEFAULTS:
            data_type = DEFAULTS[key][0]
            description = DEFAULTS[key][2]
        elif data_type:
            description = ''
        else:
            raise NotFoundError(f'setting {key} not found')
        row = OrganizationSetting(setting_key=key, data_type=data_type, description=description)
    raw = serialize_value(value, row.data_type)
    parsed = parse_value(raw, row.data_type)
    if key in DEFAULTS:
        _validate_known(key, parsed)
    old = row.setting_value if row.pk else None
    row.setting_value = raw
    row.save()
    log_action(user=user, action='setting_updated', object_type='organization_setting', object_id=row.pk,
               detail={'key': key, 'old': old, 'new': raw})
    logger.info('setting %s changed from %r to %r', key, old, raw)
    return _format(row)


def seed_defaults() -> int:
    """Create missing default settings; existing values are left alone."""
    created = 0
    for key, (data_type, default, description) in DEFAULTS.items():
        _, was_created = OrganizationSetting.objects.get_or_create(
            setting_key=key,
            defaults={
                'setting_value': serialize_value(default, data_type),
                'data_type': data_type,
                'description': description,
            },
        )
        created += int(was_created)
    return created
