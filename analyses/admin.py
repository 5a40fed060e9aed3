"""
Django admin registrations.

Series progress and prescription balances are read-only here: they are
owned by the scheduler and must not be edited by hand.
"""
from django.contrib import admin

from .models import (
    User,
    Patient,
    Doctor,
    Room,
    RecurringAnalysis,
    Prescription,
    Analysis,
    ArchivedAnalysis,
    OrganizationSetting,
    Notification,
    AuditEvent,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'first_name', 'last_name')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'national_id', 'created_at')
    search_fields = ('name', 'national_id')


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'specialization')
    search_fields = ('name',)


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ('room_number', 'service')


@admin.register(RecurringAnalysis)
class RecurringAnalysisAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'analysis_type', 'recurrence_pattern', 'completed_occurrences',
                    'total_occurrences', 'next_due_date', 'is_active')
    list_filter = ('is_active', 'recurrence_pattern', 'analysis_type')
    readonly_fields = ('completed_occurrences', 'last_scheduled_date')


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ('prescription_number', 'recurring_analysis', 'status', 'remaining_analyses',
                    'valid_from', 'valid_until')
    list_filter = ('status',)
    search_fields = ('prescription_number',)
    readonly_fields = ('remaining_analyses', 'verified_at')


@admin.register(Analysis)
class AnalysisAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'analysis_type', 'status', 'analysis_date', 'occurrence_number')
    list_filter = ('status', 'analysis_type')


@admin.register(ArchivedAnalysis)
class ArchivedAnalysisAdmin(admin.ModelAdmin):
    list_display = ('original_analysis_id', 'patient_name', 'status', 'analysis_date', 'archived_at')
    list_filter = ('archive_reason',)
    search_fields = ('patient_name', 'doctor_name')


@admin.register(OrganizationSetting)
class OrganizationSettingAdmin(admin.ModelAdmin):
    list_display = ('setting_key', 'setting_value', 'data_type', 'updated_at')


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'type', 'title', 'priority', 'is_read', 'is_dismissed', 'due_date')
    list_filter = ('type', 'is_dismissed')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'action', 'object_type', 'object_id', 'user')
    list_filter = ('action',)
