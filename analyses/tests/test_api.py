"""
Integration tests for the analyses API.

These exercise authentication, role checks and the main workflow through
HTTP: series creation, prescription submission, the scheduling and archive
job triggers, notifications and settings.
"""
from datetime import date, timedelta

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from ..models import Analysis, ArchivedAnalysis, AuditEvent, Doctor, Notification, Patient, Prescription, RecurringAnalysis, User
from ..services import org_settings


class AnalysesAPITests(APITestCase):
    def setUp(self) -> None:
        self.agent = User.objects.create_user(username='agent1', password='P@ssw0rd1', role='agent')
        self.doctor_user = User.objects.create_user(username='doc1', password='P@ssw0rd1', role='doctor')
        self.admin = User.objects.create_user(username='admin1', password='P@ssw0rd1', role='admin')
        self.patient = Patient.objects.create(name='Louis Petit')
        self.today = timezone.localdate()
        # series start on the run date, which may fall on a weekend
        org_settings.update_setting('working_days', list(org_settings.WEEKDAYS))

    def authenticate(self, user: User) -> APIClient:
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    def create_series(self, client=None, **overrides):
        payload = {
            'patientId': self.patient.id,
            'analysisType': 'XY',
            'recurrencePattern': 'weekly',
            'totalOccurrences': 3,
            'startDate': self.today.isoformat(),
        }
        payload.update(overrides)
        return (client or self.authenticate(self.agent)).post('/api/recurring-analyses', payload, format='json')

    def submit_prescription(self, series_id, client=None, **overrides):
        payload = {
            'recurringAnalysisId': series_id,
            'prescriptionNumber': 'RX-100',
            'validFrom': (self.today - timedelta(days=1)).isoformat(),
            'validUntil': (self.today + timedelta(days=60)).isoformat(),
            'totalAnalysesPrescribed': 3,
        }
        payload.update(overrides)
        return (client or self.authenticate(self.agent)).post('/api/prescriptions', payload, format='json')

    # -----------------------------------------------------------------
    # Auth
    # -----------------------------------------------------------------
    def test_login_returns_token_and_jwt(self):
        r = self.client.post(reverse('login_view'), {'username': 'agent1', 'password': 'P@ssw0rd1'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertTrue(r.data['token'])
        self.assertTrue(r.data['jwt_access'])
        self.assertEqual(r.data['user']['role'], 'agent')

    def test_login_rejects_bad_password(self):
        r = self.client.post(reverse('login_view'), {'username': 'agent1', 'password': 'nope'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(r.data['ok'])

    def test_token_header_authenticates(self):
        r = self.client.post(reverse('login_view'), {'username': 'agent1', 'password': 'P@ssw0rd1'}, format='json')
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
        self.assertEqual(client.get('/api/recurring-analyses').status_code, status.HTTP_200_OK)

    def test_anonymous_is_rejected(self):
        r = APIClient().get('/api/recurring-analyses')
        self.assertIn(r.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))
        self.assertFalse(r.data['ok'])

    # -----------------------------------------------------------------
    # Series and prescriptions
    # -----------------------------------------------------------------
    def test_create_and_read_series(self):
        r = self.create_series()
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        series_id = r.data['data']['id']
        self.assertEqual(r.data['data']['nextDueDate'], self.today.isoformat())
        self.assertEqual(r.data['data']['intervalDays'], 7)

        detail = self.authenticate(self.doctor_user).get(f'/api/recurring-analyses/{series_id}')
        self.assertEqual(detail.status_code, status.HTTP_200_OK)
        self.assertEqual(detail.data['data']['prescriptions'], [])

    def test_custom_series_requires_interval(self):
        r = self.create_series(recurrencePattern='custom')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_series_outside_working_days_is_rejected(self):
        org_settings.update_setting('working_days', ['Monday'])
        r = self.create_series(recurrencePattern='daily', totalOccurrences=3)
        self.assertEqual(r.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertGreaterEqual(len(r.data['error']['detail']['issues']), 2)
        self.assertEqual(RecurringAnalysis.objects.count(), 0)

    def test_unknown_series_is_404(self):
        r = self.authenticate(self.agent).get('/api/recurring-analyses/9999')
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(r.data['error']['code'], 'not_found')

    def test_prescription_submission_errors(self):
        series_id = self.create_series().data['data']['id']
        inverted = self.submit_prescription(series_id, validFrom=self.today.isoformat(),
                                            validUntil=(self.today - timedelta(days=3)).isoformat())
        self.assertEqual(inverted.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(inverted.data['error']['code'], 'validation_error')

        zero = self.submit_prescription(series_id, totalAnalysesPrescribed=0)
        self.assertEqual(zero.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

        missing = self.submit_prescription(9999)
        self.assertEqual(missing.status_code, status.HTTP_404_NOT_FOUND)

        self.assertEqual(self.submit_prescription(series_id).status_code, status.HTTP_201_CREATED)
        duplicate = self.submit_prescription(series_id)
        self.assertEqual(duplicate.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_doctor_cannot_submit_prescription(self):
        series_id = self.create_series().data['data']['id']
        r = self.submit_prescription(series_id, client=self.authenticate(self.doctor_user))
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(Prescription.objects.count(), 0)

    def test_prescription_notes_are_sanitized(self):
        series_id = self.create_series().data['data']['id']
        r = self.submit_prescription(series_id, notes='<script>alert(1)</script>ok')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('<script>', r.data['data']['notes'])

    def test_expired_prescription_is_reported_on_read(self):
        series_id = self.create_series().data['data']['id']
        p_id = self.submit_prescription(series_id).data['data']['id']
        Prescription.objects.filter(pk=p_id).update(valid_from=date(2020, 1, 1), valid_until=date(2020, 2, 1))
        r = self.authenticate(self.agent).get(f'/api/prescriptions/{p_id}')
        self.assertEqual(r.data['data']['status'], Prescription.STATUS_EXPIRED)

    def test_cancel_prescription(self):
        series_id = self.create_series().data['data']['id']
        p_id = self.submit_prescription(series_id).data['data']['id']
        client = self.authenticate(self.agent)
        r = client.post(f'/api/prescriptions/{p_id}/cancel', {'reason': 'duplicate'}, format='json')
        self.assertEqual(r.data['data']['status'], Prescription.STATUS_CANCELLED)
        again = client.post(f'/api/prescriptions/{p_id}/cancel', {}, format='json')
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)

    # -----------------------------------------------------------------
    # Scheduling workflow
    # -----------------------------------------------------------------
    def test_scheduling_workflow(self):
        admin = self.authenticate(self.admin)
        series_id = self.create_series().data['data']['id']

        # no prescription yet: pending plus one verification notification
        run = admin.post('/api/admin/jobs/recurring', {}, format='json')
        self.assertEqual(run.status_code, status.HTTP_200_OK)
        self.assertEqual(run.data['data']['pending'], 1)
        admin.post('/api/admin/jobs/recurring', {}, format='json')
        notes = self.authenticate(self.agent).get('/api/notifications').data['data']
        self.assertEqual(len([n for n in notes if n['type'] == Notification.TYPE_PRESCRIPTION_VERIFICATION]), 1)

        # verifying the prescription clears it and unblocks the series
        self.assertEqual(self.submit_prescription(series_id).status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.authenticate(self.agent).get('/api/notifications').data['data'], [])
        run = admin.post('/api/admin/jobs/recurring', {}, format='json')
        self.assertEqual(run.data['data']['scheduled'], 1)

        occurrences = self.authenticate(self.agent).get(f'/api/recurring-analyses/{series_id}/analyses').data['data']
        self.assertEqual(len(occurrences), 1)
        self.assertEqual(occurrences[0]['occurrenceNumber'], 1)
        series = RecurringAnalysis.objects.get(pk=series_id)
        self.assertEqual(series.completed_occurrences, 1)
        self.assertEqual(series.next_due_date, self.today + timedelta(days=7))

    def test_complete_then_archive(self):
        admin = self.authenticate(self.admin)
        series_id = self.create_series().data['data']['id']
        self.submit_prescription(series_id)
        admin.post('/api/admin/jobs/recurring', {}, format='json')
        analysis = Analysis.objects.get(recurring_analysis_id=series_id)

        done = self.authenticate(self.agent).post(f'/api/analyses/{analysis.id}/complete', {}, format='json')
        self.assertEqual(done.data['data']['status'], Analysis.STATUS_COMPLETED)
        again = self.authenticate(self.agent).post(f'/api/analyses/{analysis.id}/cancel', {}, format='json')
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)

        tomorrow = (self.today + timedelta(days=1)).isoformat()
        r = admin.post('/api/admin/jobs/archive', {'date': tomorrow}, format='json')
        self.assertEqual(r.data['data']['archived'], 1)
        self.assertFalse(Analysis.objects.filter(pk=analysis.id).exists())

        archive = self.authenticate(self.agent).get('/api/archive').data['data']
        self.assertEqual(archive[0]['originalAnalysisId'], analysis.id)
        self.assertEqual(archive[0]['patientName'], 'Louis Petit')
        detail = self.authenticate(self.agent).get(f"/api/archive/{archive[0]['id']}")
        self.assertEqual(detail.status_code, status.HTTP_200_OK)
        self.assertEqual(ArchivedAnalysis.objects.count(), 1)

    def test_archive_queries_and_cleanup(self):
        doctor = Doctor.objects.create(name='Dr. Moreau')
        admin = self.authenticate(self.admin)
        series_id = self.create_series(doctorId=doctor.id).data['data']['id']
        self.submit_prescription(series_id)
        admin.post('/api/admin/jobs/recurring', {}, format='json')
        analysis = Analysis.objects.get(recurring_analysis_id=series_id)
        self.authenticate(self.agent).post(f'/api/analyses/{analysis.id}/complete', {}, format='json')
        tomorrow = (self.today + timedelta(days=1)).isoformat()
        admin.post('/api/admin/jobs/archive', {'date': tomorrow}, format='json')

        agent = self.authenticate(self.agent)
        listed = agent.get('/api/archive', {'patientName': 'petit', 'doctorName': 'moreau'}).data['data']
        self.assertEqual([a['originalAnalysisId'] for a in listed], [analysis.id])
        self.assertEqual(agent.get('/api/archive', {'roomNumber': 'Z9'}).data['data'], [])
        found = agent.get('/api/archive/search', {'q': 'Moreau'}).data['data']
        self.assertEqual(len(found), 1)
        history = agent.get(f'/api/archive/doctors/{doctor.id}').data['data']
        self.assertEqual(history['doctor']['name'], 'Dr. Moreau')
        self.assertEqual(len(history['analyses']), 1)
        self.assertEqual(agent.get('/api/archive/doctors/9999').status_code, status.HTTP_404_NOT_FOUND)

        denied = agent.post('/api/admin/archive/cleanup', {'olderThanDays': 400}, format='json')
        self.assertEqual(denied.status_code, status.HTTP_403_FORBIDDEN)
        too_soon = admin.post('/api/admin/archive/cleanup', {'olderThanDays': 30}, format='json')
        self.assertEqual(too_soon.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        done = admin.post('/api/admin/archive/cleanup', {'olderThanDays': 400}, format='json')
        self.assertEqual(done.data['data']['deleted'], 0)
        self.assertEqual(ArchivedAnalysis.objects.count(), 1)

    def test_job_triggers_are_audited(self):
        admin = self.authenticate(self.admin)
        for path in ('recurring', 'archive', 'prescriptions'):
            r = admin.post(f'/api/admin/jobs/{path}', {'force': True}, format='json')
            self.assertEqual(r.status_code, status.HTTP_200_OK)
        events = AuditEvent.objects.filter(user=self.admin, action__startswith='job_')
        self.assertEqual(sorted(events.values_list('action', flat=True)),
                         ['job_archive', 'job_prescriptions', 'job_recurring'])
        archive_event = events.get(action='job_archive')
        self.assertEqual(archive_event.detail['archived'], 0)
        self.assertFalse(archive_event.detail['skipped'])

    def test_jobs_require_admin(self):
        r = self.authenticate(self.agent).post('/api/admin/jobs/archive', {}, format='json')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

    def test_deactivate_series(self):
        series_id = self.create_series().data['data']['id']
        client = self.authenticate(self.agent)
        r = client.post(f'/api/recurring-analyses/{series_id}/deactivate', {'reason': 'stopped'}, format='json')
        self.assertFalse(r.data['data']['isActive'])
        again = client.post(f'/api/recurring-analyses/{series_id}/deactivate', {}, format='json')
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)

    # -----------------------------------------------------------------
    # Notifications and settings
    # -----------------------------------------------------------------
    def test_notification_read_and_dismiss(self):
        n = Notification.objects.create(type=Notification.TYPE_RECURRING_DUE, title='t', message='m')
        client = self.authenticate(self.agent)
        self.assertTrue(client.post(f'/api/notifications/{n.id}/read').data['data']['isRead'])
        self.assertTrue(client.post(f'/api/notifications/{n.id}/dismiss').data['data']['isDismissed'])
        self.assertEqual(client.get('/api/notifications').data['data'], [])

    def test_foreign_notification_is_hidden(self):
        n = Notification.objects.create(type=Notification.TYPE_RECURRING_DUE, title='t', message='m',
                                        recipient=self.admin)
        r = self.authenticate(self.agent).post(f'/api/notifications/{n.id}/read')
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)

    def test_settings_update_is_admin_only(self):
        body = {'key': 'cancelled_analysis_archive_delay', 'value': 3}
        denied = self.authenticate(self.agent).post('/api/settings/update', body, format='json')
        self.assertEqual(denied.status_code, status.HTTP_403_FORBIDDEN)

        ok = self.authenticate(self.admin).post('/api/settings/update', body, format='json')
        self.assertEqual(ok.status_code, status.HTTP_200_OK)
        rows = {s['key']: s for s in self.authenticate(self.agent).get('/api/settings').data['data']}
        self.assertEqual(rows['cancelled_analysis_archive_delay']['value'], 3)

    def test_invalid_setting_value(self):
        r = self.authenticate(self.admin).post('/api/settings/update',
                                               {'key': 'archiving_check_interval_unit', 'value': 'weeks'},
                                               format='json')
        self.assertEqual(r.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_healthz(self):
        r = self.client.get('/healthz')
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.json()['db'])
