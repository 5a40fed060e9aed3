"""
Database models for the clinic analyses backend.

These models capture the blood-analysis workflow: directories (patients,
doctors, rooms), recurring analysis series, the prescriptions that
authorize their occurrences, the concrete analyses themselves and their
archive, plus the supporting organization settings, notifications and
audit trail.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import F, Q


ANALYSIS_TYPE_CHOICES = [
    ('XY', 'XY Analysis'),
    ('YZ', 'YZ Analysis'),
    ('ZG', 'ZG Analysis'),
    ('HG', 'HG Analysis'),
]


class User(AbstractUser):
    """Custom user model with a role.

    Roles: 'agent' (service agents who validate prescriptions), 'doctor',
    'admin' and 'super'.
    """
    ROLE_CHOICES = [
        ('agent', 'Service agent'),
        ('doctor', 'Doctor'),
        ('admin', 'Administrator'),
        ('super', 'Super Administrator'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='agent')

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Patient(models.Model):
    name = models.CharField(max_length=255)
    national_id = models.CharField(max_length=50, blank=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name


class Doctor(models.Model):
    name = models.CharField(max_length=255)
    specialization = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return self.name


class Room(models.Model):
    room_number = models.CharField(max_length=20, unique=True)
    service = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return self.room_number


class RecurringAnalysis(models.Model):
    """A series of analyses repeated on a fixed pattern for one patient.

    ``next_due_date`` always points at the earliest occurrence that has not
    been materialized yet; it is cleared once every planned occurrence has
    been scheduled, at which point the series becomes inactive.
    """
    PATTERN_DAILY = 'daily'
    PATTERN_WEEKLY = 'weekly'
    PATTERN_MONTHLY = 'monthly'
    PATTERN_CUSTOM = 'custom'
    PATTERN_CHOICES = (
        (PATTERN_DAILY, 'daily'),
        (PATTERN_WEEKLY, 'weekly'),
        (PATTERN_MONTHLY, 'monthly'),
        (PATTERN_CUSTOM, 'custom'),
    )
    DEFAULT_INTERVALS = {PATTERN_DAILY: 1, PATTERN_WEEKLY: 7, PATTERN_MONTHLY: 30, PATTERN_CUSTOM: 1}

    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='recurring_analyses')
    doctor = models.ForeignKey(Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='recurring_analyses')
    room = models.ForeignKey(Room, null=True, blank=True, on_delete=models.SET_NULL, related_name='recurring_analyses')
    analysis_type = models.CharField(max_length=20, choices=ANALYSIS_TYPE_CHOICES)
    recurrence_pattern = models.CharField(max_length=20, choices=PATTERN_CHOICES)
    interval_days = models.PositiveIntegerField(default=1, help_text="Days between occurrences (custom pattern)")
    total_occurrences = models.PositiveIntegerField()
    completed_occurrences = models.PositiveIntegerField(default=0, help_text="Occurrences already scheduled")
    next_due_date = models.DateField(null=True, blank=True, db_index=True)
    last_scheduled_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='recurring_analyses_created')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(completed_occurrences__lte=F('total_occurrences')),
                name='recurring_completed_lte_total',
            ),
        ]
        indexes = [
            models.Index(fields=['is_active', 'next_due_date'], name='recurring_active_due_idx'),
        ]

    def __str__(self) -> str:
        return f"Series #{self.pk} {self.analysis_type}/{self.recurrence_pattern} ({self.completed_occurrences}/{self.total_occurrences})"

    @property
    def is_complete(self) -> bool:
        return self.completed_occurrences >= self.total_occurrences


class Prescription(models.Model):
    """A verified prescription authorizing a number of analyses of a series."""
    STATUS_ACTIVE = 'Active'
    STATUS_EXPIRED = 'Expired'
    STATUS_EXHAUSTED = 'Exhausted'
    STATUS_CANCELLED = 'Cancelled'
    STATUS_CHOICES = (
        (STATUS_ACTIVE, 'Active'),
        (STATUS_EXPIRED, 'Expired'),
        (STATUS_EXHAUSTED, 'Exhausted'),
        (STATUS_CANCELLED, 'Cancelled'),
    )

    recurring_analysis = models.ForeignKey(RecurringAnalysis, on_delete=models.CASCADE, related_name='prescriptions')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='prescriptions')
    doctor = models.ForeignKey(Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='prescriptions')
    prescribed_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='prescriptions_verified')
    prescription_number = models.CharField(max_length=50, unique=True)
    valid_from = models.DateField()
    valid_until = models.DateField()
    total_analyses_prescribed = models.PositiveIntegerField()
    remaining_analyses = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    notes = models.TextField(blank=True)
    verified_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(remaining_analyses__gte=0), name='prescription_remaining_non_negative'),
            models.CheckConstraint(condition=Q(valid_from__lte=F('valid_until')), name='prescription_dates_ordered'),
        ]
        indexes = [
            models.Index(fields=['recurring_analysis', 'status'], name='rx_series_status_idx'),
            models.Index(fields=['status', 'valid_until'], name='rx_status_valid_until_idx'),
        ]

    def __str__(self) -> str:
        return f"Prescription {self.prescription_number} ({self.status}, {self.remaining_analyses} left)"


class Analysis(models.Model):
    """A concrete scheduled analysis.

    Lifecycle: Scheduled -> Completed | Cancelled.  Terminal analyses are
    later moved to :class:`ArchivedAnalysis` by the archival job only.
    """
    STATUS_SCHEDULED = 'Scheduled'
    STATUS_COMPLETED = 'Completed'
    STATUS_CANCELLED = 'Cancelled'
    STATUS_CHOICES = (
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    )
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

    analysis_date = models.DateTimeField(db_index=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='analyses')
    doctor = models.ForeignKey(Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='analyses')
    room = models.ForeignKey(Room, null=True, blank=True, on_delete=models.SET_NULL, related_name='analyses')
    analysis_type = models.CharField(max_length=20, choices=ANALYSIS_TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED)
    notes = models.TextField(blank=True)
    # the series owns its occurrences
    recurring_analysis = models.ForeignKey(
        RecurringAnalysis, null=True, blank=True, on_delete=models.CASCADE, related_name='analyses'
    )
    occurrence_number = models.PositiveIntegerField(null=True, blank=True)
    prescription = models.ForeignKey(
        Prescription, null=True, blank=True, on_delete=models.SET_NULL, related_name='analyses'
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='analyses_completed')
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='analyses_created')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['recurring_analysis', 'occurrence_number'],
                name='unique_occurrence_per_series',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'analysis_date'], name='analysis_status_date_idx'),
            models.Index(fields=['status', 'updated_at'], name='analysis_status_updated_idx'),
        ]

    def __str__(self) -> str:
        return f"Analysis #{self.pk} {self.analysis_type} {self.status} @ {self.analysis_date:%F}"


class ArchivedAnalysis(models.Model):
    """Snapshot of a terminal analysis moved out of the live table.

    Display names are denormalized at archival time so the archive stays
    readable even if the directories change later.
    """
    REASON_COMPLETED = 'completed'
    REASON_CANCELLED = 'cancelled'
    REASON_CHOICES = ((REASON_COMPLETED, 'completed'), (REASON_CANCELLED, 'cancelled'))

    original_analysis_id = models.BigIntegerField(unique=True)
    analysis_date = models.DateTimeField()
    patient = models.ForeignKey(Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='archived_analyses')
    patient_name = models.CharField(max_length=255)
    doctor = models.ForeignKey(Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='archived_analyses')
    doctor_name = models.CharField(max_length=255, blank=True)
    room = models.ForeignKey(Room, null=True, blank=True, on_delete=models.SET_NULL, related_name='archived_analyses')
    room_number = models.CharField(max_length=20, blank=True)
    analysis_type = models.CharField(max_length=20)
    status = models.CharField(max_length=20)
    notes = models.TextField(blank=True)
    recurring_analysis_id = models.BigIntegerField(null=True, blank=True)
    occurrence_number = models.PositiveIntegerField(null=True, blank=True)
    prescription_id = models.BigIntegerField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    original_created_at = models.DateTimeField()
    original_updated_at = models.DateTimeField()
    archive_reason = models.CharField(max_length=16, choices=REASON_CHOICES)
    archived_at = models.DateTimeField(auto_now_add=True)
    archived_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='archived_analyses')

    class Meta:
        indexes = [
            models.Index(fields=['archived_at'], name='archived_at_idx'),
            models.Index(fields=['patient', 'analysis_date'], name='archived_patient_date_idx'),
        ]

    def __str__(self) -> str:
        return f"Archived #{self.original_analysis_id} ({self.status}) {self.patient_name}"


class OrganizationSetting(models.Model):
    """Key/value configuration store with a declared value type."""
    TYPE_CHOICES = (
        ('string', 'string'),
        ('integer', 'integer'),
        ('decimal', 'decimal'),
        ('boolean', 'boolean'),
        ('json', 'json'),
    )
    setting_key = models.CharField(max_length=100, unique=True)
    setting_value = models.TextField()
    data_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='string')
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.setting_key}={self.setting_value} ({self.data_type})"


class Notification(models.Model):
    TYPE_PRESCRIPTION_VERIFICATION = 'prescription_verification'
    TYPE_RECURRING_DUE = 'recurring_analysis_due'
    TYPE_ANALYSIS_CANCELLED = 'analysis_cancelled'
    TYPE_CHOICES = (
        (TYPE_PRESCRIPTION_VERIFICATION, 'prescription_verification'),
        (TYPE_RECURRING_DUE, 'recurring_analysis_due'),
        (TYPE_ANALYSIS_CANCELLED, 'analysis_cancelled'),
    )
    PRIORITY_CHOICES = (
        ('low', 'low'),
        ('normal', 'normal'),
        ('high', 'high'),
        ('urgent', 'urgent'),
    )

    # NULL recipient: visible to every staff member
    recipient = models.ForeignKey(User, null=True, blank=True, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=50, choices=TYPE_CHOICES)
    title = models.CharField(max_length=200)
    message = models.TextField()
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='normal')
    is_read = models.BooleanField(default=False)
    is_dismissed = models.BooleanField(default=False, db_index=True)
    action_required = models.BooleanField(default=False)
    related_type = models.CharField(max_length=50, blank=True)
    related_id = models.BigIntegerField(null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['type', 'related_type', 'related_id'], name='notif_type_related_idx'),
            models.Index(fields=['recipient', 'is_dismissed', 'created_at'], name='notif_recipient_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.type}: {self.title}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.BigIntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.object_type}#{self.object_id}@{self.created_at:%F %T}"
