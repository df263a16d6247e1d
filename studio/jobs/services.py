"""
Job lifecycle and the submission review loop.

A freelancer claims an open job, works on it (active time is tracked
between claim/start and abandon/submit), submits versioned sets of assets
and gets per-asset reviews. Rejected assets are replaced by resubmitting
within the same submission; each replacement is a new revision that
supersedes the old asset.
"""
import logging

from django.db import transaction
from django.db.models import Max
from django.utils import timezone

from studio.core.cache_utils import cached_query, REVIEW_PROGRESS_CACHE_TTL, invalidate_review_progress
from .models import Job, JobSubmission, SubmissionAsset

logger = logging.getLogger(__name__)

SUBMISSION_TO_JOB_STATUS = {
    JobSubmission.STATUS_CHANGES_REQUESTED: Job.STATUS_NEEDS_CHANGES,
    JobSubmission.STATUS_APPROVED: Job.STATUS_APPROVED,
}

STARTABLE_STATUSES = (Job.STATUS_ASSIGNED, Job.STATUS_NEEDS_CHANGES)


class JobUnavailableError(Exception):
    """The job was claimed by someone else or is no longer open"""


class JobStateError(Exception):
    pass


def _elapsed_ms(started_at, now=None):
    if not started_at:
        return 0
    now = now or timezone.now()
    return max(0, int((now - started_at).total_seconds() * 1000))


def assign_job(job, user):
    job.assigned_user = user
    job.status = Job.STATUS_ASSIGNED if user else Job.STATUS_OPEN
    job.save(update_fields=['assigned_user', 'status', 'updated_at'])
    return job


def reset_job(job):
    job.status = Job.STATUS_OPEN
    job.assigned_user = None
    job.started_at = None
    job.save(update_fields=['status', 'assigned_user', 'started_at', 'updated_at'])
    return job


def claim_job(job_id, user):
    """Take an open, unassigned job; raises JobUnavailableError if someone got there first"""
    now = timezone.now()
    updated = Job.objects.filter(pk=job_id, status=Job.STATUS_OPEN, assigned_user__isnull=True).update(
        assigned_user=user, status=Job.STATUS_IN_PROGRESS, started_at=now, updated_at=now,
    )
    if not updated:
        raise JobUnavailableError('Job is no longer available')
    return Job.objects.get(pk=job_id)


def abandon_job(job, user):
    """Give the job back; returns the active milliseconds credited for this stint"""
    if job.assigned_user_id != user.id:
        raise JobStateError('Only the assigned user can abandon this job')
    spent = _elapsed_ms(job.started_at)
    job.total_active_ms = (job.total_active_ms or 0) + spent
    job.status = Job.STATUS_OPEN
    job.assigned_user = None
    job.started_at = None
    job.save(update_fields=['total_active_ms', 'status', 'assigned_user', 'started_at', 'updated_at'])
    return spent


def start_job(job, user):
    if job.assigned_user_id != user.id:
        raise JobStateError('Only the assigned user can start this job')
    if job.status not in STARTABLE_STATUSES:
        raise JobStateError(f'Cannot start a job that is {job.status}')
    job.status = Job.STATUS_IN_PROGRESS
    job.started_at = timezone.now()
    job.save(update_fields=['status', 'started_at', 'updated_at'])
    return job


def _stop_clock(job):
    if job.started_at:
        job.total_active_ms = (job.total_active_ms or 0) + _elapsed_ms(job.started_at)
        job.started_at = None


@transaction.atomic
def submit_job(job, user, files, labels=None, summary_notes=''):
    """Create the next submission version with one pending asset per file"""
    job = Job.objects.select_for_update().get(pk=job.pk)
    current_max = job.submissions.aggregate(m=Max('version_number'))['m'] or 0
    submission = JobSubmission.objects.create(
        job=job,
        version_number=current_max + 1,
        status=JobSubmission.STATUS_SUBMITTED,
        submitted_by=user,
        summary_notes=summary_notes or '',
    )
    labels = labels or []
    for index, upload in enumerate(files):
        asset = SubmissionAsset(
            submission=submission,
            label=labels[index] if index < len(labels) else '',
            sort_index=index,
            revision_number=1,
        )
        asset.file.save(upload.name, upload, save=False)
        asset.save()

    _stop_clock(job)
    job.status = Job.STATUS_SUBMITTED
    job.save(update_fields=['status', 'started_at', 'total_active_ms', 'updated_at'])
    invalidate_review_progress(job.id)
    return submission


def sync_job_status(submission):
    """Mirror a submission's status onto its job"""
    job_status = SUBMISSION_TO_JOB_STATUS.get(submission.status, Job.STATUS_SUBMITTED)
    Job.objects.filter(pk=submission.job_id).update(status=job_status, updated_at=timezone.now())
    return job_status


def update_submission_status(submission, new_status):
    submission.status = new_status
    submission.save(update_fields=['status', 'updated_at'])
    return sync_job_status(submission)


def current_assets(submission):
    return submission.assets.filter(superseded_by__isnull=True)


def aggregate_submission_status(submission):
    """Derive a submission's status from the reviews of its current assets"""
    statuses = list(current_assets(submission).values_list('review_status', flat=True))
    if any(s == SubmissionAsset.REVIEW_CHANGES_REQUESTED for s in statuses):
        return JobSubmission.STATUS_CHANGES_REQUESTED
    if statuses and all(s == SubmissionAsset.REVIEW_APPROVED for s in statuses):
        return JobSubmission.STATUS_APPROVED
    return JobSubmission.STATUS_IN_REVIEW


@transaction.atomic
def review_asset(asset, review_status, reviewer, notes=''):
    """Record one asset review and roll it up to the submission and job"""
    if asset.superseded_by_id:
        raise JobStateError('This asset has been replaced by a newer revision')
    asset.review_status = review_status
    asset.review_notes = notes or ''
    asset.reviewed_by = reviewer
    asset.reviewed_at = timezone.now()
    asset.save(update_fields=['review_status', 'review_notes', 'reviewed_by', 'reviewed_at'])

    submission = asset.submission
    update_submission_status(submission, aggregate_submission_status(submission))
    return submission


@transaction.atomic
def resubmit_assets(submission, replacements, user=None):
    """
    Replace assets of a submission with new revisions.

    `replacements` maps asset id -> uploaded file. Approved assets are left
    as they are. Returns the new assets.
    """
    created = []
    assets = {a.id: a for a in current_assets(submission).filter(id__in=list(replacements.keys()))}
    for asset_id, upload in replacements.items():
        old = assets.get(asset_id)
        if old is None or old.review_status == SubmissionAsset.REVIEW_APPROVED:
            continue
        new_asset = SubmissionAsset(
            submission=submission,
            label=old.label,
            sort_index=old.sort_index,
            revision_number=old.revision_number + 1,
        )
        new_asset.file.save(upload.name, upload, save=False)
        new_asset.save()
        old.superseded_by = new_asset
        old.save(update_fields=['superseded_by'])
        created.append(new_asset)

    submission.status = JobSubmission.STATUS_SUBMITTED
    submission.save(update_fields=['status', 'updated_at'])
    sync_job_status(submission)
    invalidate_review_progress(submission.job_id)
    logger.info(f"Resubmitted {len(created)} assets for job {submission.job_id} v{submission.version_number}"
                f"{f' by {user.username}' if user else ''}")
    return created


def assets_with_history(submission):
    """
    Assets grouped by label (or slot), each with its current revision and
    the older ones, newest first.
    """
    groups = {}
    order = []
    for asset in submission.assets.select_related('reviewed_by').order_by('sort_index', '-revision_number'):
        key = asset.group_key
        if key not in groups:
            groups[key] = []
            order.append(key)
        groups[key].append(asset)

    result = []
    for key in order:
        revisions = groups[key]
        current = next((a for a in revisions if a.superseded_by_id is None), revisions[0])
        result.append({
            'key': key,
            'current': current,
            'history': [a for a in revisions if a.id != current.id],
        })
    return result


def latest_submission(job):
    return job.submissions.order_by('-version_number').first()


@cached_query(cache_ttl=REVIEW_PROGRESS_CACHE_TTL, key_prefix="review_progress")
def review_progress(job_id):
    """Review counts over the current assets of the job's latest submission"""
    submission = JobSubmission.objects.filter(job_id=job_id).order_by('-version_number').first()
    counts = {'approved': 0, 'changes_requested': 0, 'pending': 0, 'total': 0}
    if submission is None:
        counts['submission_id'] = None
        return counts
    for review_status in current_assets(submission).values_list('review_status', flat=True):
        counts['total'] += 1
        if review_status == SubmissionAsset.REVIEW_APPROVED:
            counts['approved'] += 1
        elif review_status == SubmissionAsset.REVIEW_CHANGES_REQUESTED:
            counts['changes_requested'] += 1
        else:
            counts['pending'] += 1
    counts['submission_id'] = submission.id
    counts['version_number'] = submission.version_number
    return counts
