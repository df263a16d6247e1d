"""
Test suite for the jobs module
Tests: job visibility, claiming, time tracking, versioned submissions and per-asset review
"""
import shutil
import tempfile
from datetime import timedelta

from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from studio.core.models import AuditLog
from studio.core.roles import INTERNAL, FREELANCER, CLIENT
from studio.core.test_utils import TestDataFactory, AuthenticatedAPIClient, uploaded_png
from studio.jobs import services
from studio.jobs.models import Job, JobSubmission, SubmissionAsset

MEDIA_ROOT = tempfile.mkdtemp(prefix='studio-jobs-tests-')


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class JobsTestCase(TestCase):

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(MEDIA_ROOT, ignore_errors=True)
        super().tearDownClass()

    def setUp(self):
        cache.clear()
        self.staff = TestDataFactory.create_user(roles=[INTERNAL])
        self.freelancer = TestDataFactory.create_user(roles=[FREELANCER])
        self.other_freelancer = TestDataFactory.create_user(roles=[FREELANCER])


class JobServiceTests(JobsTestCase):
    """Test the job lifecycle helpers"""

    def test_claim_is_first_come_first_served(self):
        job = TestDataFactory.create_job()
        claimed = services.claim_job(job.id, self.freelancer)
        self.assertEqual(claimed.status, Job.STATUS_IN_PROGRESS)
        self.assertEqual(claimed.assigned_user, self.freelancer)
        self.assertIsNotNone(claimed.started_at)
        with self.assertRaises(services.JobUnavailableError):
            services.claim_job(job.id, self.other_freelancer)

    def test_abandon_credits_active_time(self):
        """Test abandoning adds the elapsed time and reopens the job"""
        job = TestDataFactory.create_job(status=Job.STATUS_IN_PROGRESS, assigned_user=self.freelancer)
        job.started_at = timezone.now() - timedelta(seconds=90)
        job.total_active_ms = 1000
        job.save()

        spent = services.abandon_job(job, self.freelancer)
        job.refresh_from_db()
        self.assertGreaterEqual(spent, 90000)
        self.assertLess(spent, 100000)
        self.assertEqual(job.total_active_ms, 1000 + spent)
        self.assertEqual(job.status, Job.STATUS_OPEN)
        self.assertIsNone(job.assigned_user)
        self.assertIsNone(job.started_at)

    def test_abandon_requires_assignee(self):
        job = TestDataFactory.create_job(status=Job.STATUS_IN_PROGRESS, assigned_user=self.freelancer)
        with self.assertRaises(services.JobStateError):
            services.abandon_job(job, self.other_freelancer)

    def test_start_only_from_assigned_or_needs_changes(self):
        job = TestDataFactory.create_job(status=Job.STATUS_ASSIGNED, assigned_user=self.freelancer)
        services.start_job(job, self.freelancer)
        self.assertEqual(job.status, Job.STATUS_IN_PROGRESS)
        with self.assertRaisesMessage(services.JobStateError, 'Cannot start a job that is IN_PROGRESS'):
            services.start_job(job, self.freelancer)

    def test_submissions_are_versioned(self):
        """Test each submission gets the next version and stops the clock"""
        job = TestDataFactory.create_job(status=Job.STATUS_IN_PROGRESS, assigned_user=self.freelancer)
        job.started_at = timezone.now() - timedelta(seconds=5)
        job.save()

        first = services.submit_job(job, self.freelancer, [uploaded_png('a.png'), uploaded_png('b.png')],
                                    labels=['front'])
        second = services.submit_job(job, self.freelancer, [uploaded_png('c.png')])
        job.refresh_from_db()

        self.assertEqual((first.version_number, second.version_number), (1, 2))
        self.assertEqual([a.label for a in first.assets.all()], ['front', ''])
        self.assertEqual([a.group_key for a in first.assets.all()], ['front', 'slot-1'])
        self.assertEqual(job.status, Job.STATUS_SUBMITTED)
        self.assertIsNone(job.started_at)
        self.assertGreaterEqual(job.total_active_ms, 5000)

    def test_review_rolls_up(self):
        """Test any rejection wins, and all approvals approve the job"""
        job = TestDataFactory.create_job(status=Job.STATUS_IN_PROGRESS, assigned_user=self.freelancer)
        submission = services.submit_job(job, self.freelancer, [uploaded_png('a.png'), uploaded_png('b.png')])
        first, second = list(submission.assets.all())

        services.review_asset(first, SubmissionAsset.REVIEW_APPROVED, self.staff)
        submission.refresh_from_db()
        self.assertEqual(submission.status, JobSubmission.STATUS_IN_REVIEW)

        services.review_asset(second, SubmissionAsset.REVIEW_CHANGES_REQUESTED, self.staff, notes='Fix edge')
        submission.refresh_from_db()
        job.refresh_from_db()
        self.assertEqual(submission.status, JobSubmission.STATUS_CHANGES_REQUESTED)
        self.assertEqual(job.status, Job.STATUS_NEEDS_CHANGES)

        services.review_asset(second, SubmissionAsset.REVIEW_APPROVED, self.staff)
        job.refresh_from_db()
        self.assertEqual(job.status, Job.STATUS_APPROVED)

    def test_resubmit_skips_approved_assets(self):
        job = TestDataFactory.create_job(status=Job.STATUS_IN_PROGRESS, assigned_user=self.freelancer)
        submission = services.submit_job(job, self.freelancer, [uploaded_png('a.png'), uploaded_png('b.png')],
                                         labels=['front', 'back'])
        front, back = list(submission.assets.all())
        services.review_asset(front, SubmissionAsset.REVIEW_APPROVED, self.staff)
        services.review_asset(back, SubmissionAsset.REVIEW_CHANGES_REQUESTED, self.staff, notes='Too dark')

        created = services.resubmit_assets(submission, {front.id: uploaded_png('a2.png'),
                                                        back.id: uploaded_png('b2.png')})
        self.assertEqual(len(created), 1)
        self.assertEqual(created[0].revision_number, 2)
        self.assertEqual(created[0].label, 'back')
        back.refresh_from_db()
        self.assertEqual(back.superseded_by_id, created[0].id)
        submission.refresh_from_db()
        self.assertEqual(submission.status, JobSubmission.STATUS_SUBMITTED)

        groups = services.assets_with_history(submission)
        self.assertEqual([g['key'] for g in groups], ['front', 'back'])
        self.assertEqual(groups[1]['current'].id, created[0].id)
        self.assertEqual([a.id for a in groups[1]['history']], [back.id])

        with self.assertRaises(services.JobStateError):
            services.review_asset(back, SubmissionAsset.REVIEW_APPROVED, self.staff)

    def test_review_progress_follows_reviews(self):
        """Test cached progress is refreshed when an asset is reviewed"""
        job = TestDataFactory.create_job(status=Job.STATUS_IN_PROGRESS, assigned_user=self.freelancer)
        self.assertEqual(services.review_progress(job.id)['submission_id'], None)

        submission = services.submit_job(job, self.freelancer, [uploaded_png('a.png'), uploaded_png('b.png')])
        progress = services.review_progress(job.id)
        self.assertEqual((progress['total'], progress['pending']), (2, 2))

        services.review_asset(submission.assets.first(), SubmissionAsset.REVIEW_APPROVED, self.staff)
        progress = services.review_progress(job.id)
        self.assertEqual((progress['approved'], progress['pending']), (1, 1))
        self.assertEqual(progress['version_number'], 1)


class JobAPITests(JobsTestCase):
    """Test job endpoints and who may call them"""

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient()

    def test_create_job_staff_only(self):
        self.client.authenticate_user(self.freelancer)
        response = self.client.post('/api/v1/jobs/', {'type': Job.TYPE_RETOUCH_FINAL}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'Only internal staff can manage jobs')

        self.client.authenticate_user(self.staff)
        response = self.client.post('/api/v1/jobs/', {
            'type': Job.TYPE_PHOTOSHOP_FACE_APPLY, 'project_name': 'Spring', 'priority': 'high'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Job.STATUS_OPEN)
        self.assertEqual(response.data['created_by'], self.staff.id)

    def test_visibility(self):
        """Test freelancers see open jobs and their own, staff see all"""
        open_job = TestDataFactory.create_job()
        mine = TestDataFactory.create_job(status=Job.STATUS_ASSIGNED, assigned_user=self.freelancer)
        theirs = TestDataFactory.create_job(status=Job.STATUS_ASSIGNED, assigned_user=self.other_freelancer)

        self.client.authenticate_user(self.freelancer)
        response = self.client.get('/api/v1/jobs/')
        self.assertEqual({j['id'] for j in response.data}, {open_job.id, mine.id})
        self.assertEqual(self.client.get(f'/api/v1/jobs/{theirs.id}/').status_code, status.HTTP_404_NOT_FOUND)

        self.client.authenticate_user(self.staff)
        response = self.client.get('/api/v1/jobs/')
        self.assertEqual(len(response.data), 3)

    def test_list_filters(self):
        TestDataFactory.create_job(project_name='Spring Campaign')
        TestDataFactory.create_job(project_name='Autumn', status=Job.STATUS_CLOSED)
        self.client.authenticate_user(self.staff)
        response = self.client.get('/api/v1/jobs/', {'project_name': 'spring'})
        self.assertEqual([j['project_name'] for j in response.data], ['Spring Campaign'])
        response = self.client.get('/api/v1/jobs/', {'status': Job.STATUS_CLOSED})
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/jobs/', {'status': 'DONE'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_claim_race(self):
        """Test the second claimant gets a conflict"""
        job = TestDataFactory.create_job()
        self.client.authenticate_user(self.freelancer)
        response = self.client.post(f'/api/v1/jobs/{job.id}/claim/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Job.STATUS_IN_PROGRESS)
        self.assertTrue(AuditLog.objects.filter(action='job_claimed', object_id=str(job.id)).exists())

        self.client.authenticate_user(self.other_freelancer)
        response = self.client.post(f'/api/v1/jobs/{job.id}/claim/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'Job is no longer available')

    def test_claim_requires_freelancer(self):
        job = TestDataFactory.create_job()
        self.client.authenticate_user(TestDataFactory.create_user(roles=[CLIENT]))
        response = self.client.post(f'/api/v1/jobs/{job.id}/claim/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(self.freelancer)
        self.assertEqual(self.client.post('/api/v1/jobs/999999/claim/').status_code, status.HTTP_404_NOT_FOUND)

    def test_abandon(self):
        job = TestDataFactory.create_job(status=Job.STATUS_IN_PROGRESS, assigned_user=self.freelancer)
        job.started_at = timezone.now() - timedelta(seconds=2)
        job.save()
        self.client.authenticate_user(self.freelancer)
        response = self.client.post(f'/api/v1/jobs/{job.id}/abandon/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Job.STATUS_OPEN)
        entry = AuditLog.objects.get(action='job_abandoned', object_id=str(job.id))
        self.assertGreaterEqual(entry.changes['time_spent_ms'], 2000)

    def test_assign_start_reset(self):
        """Test staff assignment, the freelancer starting, and staff reset"""
        job = TestDataFactory.create_job()
        self.client.authenticate_user(self.staff)
        response = self.client.post(f'/api/v1/jobs/{job.id}/assign/', {'user_id': self.freelancer.id},
                                    format='json')
        self.assertEqual(response.data['status'], Job.STATUS_ASSIGNED)
        self.assertEqual(response.data['assigned_user_detail']['id'], self.freelancer.id)

        self.client.authenticate_user(self.freelancer)
        response = self.client.post(f'/api/v1/jobs/{job.id}/start/')
        self.assertEqual(response.data['status'], Job.STATUS_IN_PROGRESS)
        self.assertEqual(self.client.post(f'/api/v1/jobs/{job.id}/start/').status_code,
                         status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.client.post(f'/api/v1/jobs/{job.id}/reset/').status_code,
                         status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.staff)
        response = self.client.post(f'/api/v1/jobs/{job.id}/reset/')
        self.assertEqual(response.data['status'], Job.STATUS_OPEN)
        self.assertIsNone(response.data['assigned_user'])

    def test_unassign(self):
        job = TestDataFactory.create_job(status=Job.STATUS_ASSIGNED, assigned_user=self.freelancer)
        self.client.authenticate_user(self.staff)
        response = self.client.post(f'/api/v1/jobs/{job.id}/assign/', {'user_id': None}, format='json')
        self.assertEqual(response.data['status'], Job.STATUS_OPEN)

    def test_inputs_outputs_notes(self):
        job = TestDataFactory.create_job(status=Job.STATUS_IN_PROGRESS, assigned_user=self.freelancer)
        self.client.authenticate_user(self.staff)
        response = self.client.post(f'/api/v1/jobs/{job.id}/inputs/', {
            'label': 'Base', 'file_url': 'https://cdn.example.com/base.psd'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        self.client.authenticate_user(self.freelancer)
        self.assertEqual(len(self.client.get(f'/api/v1/jobs/{job.id}/inputs/').data), 1)
        response = self.client.post(f'/api/v1/jobs/{job.id}/outputs/', {'file': uploaded_png('wip.png')},
                                    format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data[0]['label'], 'wip.png')
        response = self.client.post(f'/api/v1/jobs/{job.id}/outputs/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(f'/api/v1/jobs/{job.id}/notes/', {'body': 'Halfway there'}, format='json')
        self.assertEqual(response.data['author'], self.freelancer.id)

    def test_non_worker_cannot_comment(self):
        job = TestDataFactory.create_job()
        self.client.authenticate_user(self.freelancer)
        response = self.client.post(f'/api/v1/jobs/{job.id}/notes/', {'body': 'Hi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SubmissionAPITests(JobsTestCase):
    """Test the submit, review and resubmit loop over the API"""

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient()
        self.job = TestDataFactory.create_job(status=Job.STATUS_IN_PROGRESS, assigned_user=self.freelancer)

    def _submit(self):
        self.client.authenticate_user(self.freelancer)
        return self.client.post(f'/api/v1/jobs/{self.job.id}/submissions/', {
            'files': [uploaded_png('front.png'), uploaded_png('back.png')],
            'labels': ['front', 'back'],
            'summary_notes': 'First pass',
        }, format='multipart')

    def test_submit(self):
        response = self._submit()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['version_number'], 1)
        self.assertEqual([a['label'] for a in response.data['assets']], ['front', 'back'])
        self.assertTrue(AuditLog.objects.filter(action='job_submitted', object_reference='v1').exists())
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, Job.STATUS_SUBMITTED)

    def test_submit_requires_assignee_and_files(self):
        self.client.authenticate_user(self.staff)
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/submissions/', {
            'files': [uploaded_png()]
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.freelancer)
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/submissions/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'At least one file is required')

    def test_review_and_resubmit(self):
        """Test a rejected asset is replaced and keeps its history"""
        assets = self._submit().data['assets']
        front_id, back_id = assets[0]['id'], assets[1]['id']

        self.client.authenticate_user(self.staff)
        response = self.client.post(f'/api/v1/assets/{front_id}/review/', {'review_status': 'APPROVED'},
                                    format='json')
        self.assertEqual(response.data['submission_status'], JobSubmission.STATUS_IN_REVIEW)

        response = self.client.post(f'/api/v1/assets/{back_id}/review/', {'review_status': 'CHANGES_REQUESTED'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/assets/{back_id}/review/', {
            'review_status': 'CHANGES_REQUESTED', 'review_notes': 'Fix the hairline'
        }, format='json')
        self.assertEqual(response.data['submission_status'], JobSubmission.STATUS_CHANGES_REQUESTED)
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, Job.STATUS_NEEDS_CHANGES)

        progress = self.client.get(f'/api/v1/jobs/{self.job.id}/review-progress/').data
        self.assertEqual((progress['approved'], progress['changes_requested']), (1, 1))

        submission_id = assets[0]['submission']
        self.client.authenticate_user(self.freelancer)
        response = self.client.post(f'/api/v1/submissions/{submission_id}/resubmit/', {
            f'asset_{front_id}': uploaded_png('front2.png'),
            f'asset_{back_id}': uploaded_png('back2.png'),
        }, format='multipart')
        self.assertEqual(response.data['replaced'], 1)
        self.assertEqual(response.data['status'], JobSubmission.STATUS_SUBMITTED)

        detail = self.client.get(f'/api/v1/submissions/{submission_id}/').data
        back_group = [g for g in detail['asset_groups'] if g['key'] == 'back'][0]
        self.assertEqual(back_group['current']['revision_number'], 2)
        self.assertEqual([a['id'] for a in back_group['history']], [back_id])

        progress = self.client.get(f'/api/v1/jobs/{self.job.id}/review-progress/').data
        self.assertEqual((progress['approved'], progress['pending'], progress['total']), (1, 1, 2))

    def test_resubmit_without_files(self):
        submission_id = self._submit().data['id']
        response = self.client.post(f'/api/v1/submissions/{submission_id}/resubmit/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_review_requires_staff(self):
        asset_id = self._submit().data['assets'][0]['id']
        response = self.client.post(f'/api/v1/assets/{asset_id}/review/', {'review_status': 'APPROVED'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_submission_status_override(self):
        submission_id = self._submit().data['id']
        self.client.authenticate_user(self.staff)
        response = self.client.post(f'/api/v1/submissions/{submission_id}/status/', {'status': 'APPROVED'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['job_status'], Job.STATUS_APPROVED)
        self.assertTrue(AuditLog.objects.filter(action='job_reviewed', model_name='JobSubmission').exists())
