"""
URL mappings for the analyses API.

Trailing slashes are deliberately omitted (``APPEND_SLASH = False``).
"""
from django.urls import path, include

from .auth_views import login_view
from .views import analyses, archive, health, jobs, notifications, org_settings, prescriptions, recurring


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    # Recurring series
    path('api/recurring-analyses', recurring.recurring_list, name='recurring_list'),
    path('api/recurring-analyses/<int:pk>', recurring.recurring_detail, name='recurring_detail'),
    path('api/recurring-analyses/<int:pk>/deactivate', recurring.recurring_deactivate, name='recurring_deactivate'),
    path('api/recurring-analyses/<int:pk>/analyses', recurring.recurring_occurrences, name='recurring_occurrences'),
    # Prescriptions
    path('api/prescriptions', prescriptions.prescription_list, name='prescription_list'),
    path('api/prescriptions/<int:pk>', prescriptions.prescription_detail, name='prescription_detail'),
    path('api/prescriptions/<int:pk>/cancel', prescriptions.prescription_cancel, name='prescription_cancel'),
    # Live analyses
    path('api/analyses/<int:pk>', analyses.analysis_detail, name='analysis_detail'),
    path('api/analyses/<int:pk>/complete', analyses.analysis_complete, name='analysis_complete'),
    path('api/analyses/<int:pk>/cancel', analyses.analysis_cancel, name='analysis_cancel'),
    # Archive
    path('api/archive', archive.archive_list, name='archive_list'),
    path('api/archive/search', archive.archive_search, name='archive_search'),
    path('api/archive/doctors/<int:doctor_id>', archive.archive_doctor_history, name='archive_doctor_history'),
    path('api/archive/<int:pk>', archive.archive_detail, name='archive_detail'),
    # Organization settings
    path('api/settings', org_settings.settings_list, name='settings_list'),
    path('api/settings/update', org_settings.settings_update, name='settings_update'),
    # Notifications
    path('api/notifications', notifications.notification_list, name='notification_list'),
    path('api/notifications/<int:pk>/read', notifications.notification_read, name='notification_read'),
    path('api/notifications/<int:pk>/dismiss', notifications.notification_dismiss, name='notification_dismiss'),
    # Manual job triggers
    path('api/admin/jobs/recurring', jobs.run_recurring, name='job_recurring'),
    path('api/admin/jobs/archive', jobs.run_archive, name='job_archive'),
    path('api/admin/jobs/prescriptions', jobs.run_prescription_check, name='job_prescriptions'),
    path('api/admin/archive/cleanup', archive.archive_cleanup, name='archive_cleanup'),
]
