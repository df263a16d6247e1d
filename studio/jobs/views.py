import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.contrib.auth import get_user_model
from django.db.models import Q
from django.shortcuts import get_object_or_404
from studio.core.roles import is_staff_member, has_role, FREELANCER
from studio.core.utils import create_audit_log
from .filters import JobFilter
from .models import Job, JobInput, JobOutput, JobNote, JobSubmission, SubmissionAsset
from .serializers import (
    JobSerializer, JobAssignSerializer, JobInputSerializer, JobOutputSerializer, JobNoteSerializer,
    JobSubmissionSerializer, SubmissionAssetSerializer, SubmissionStatusSerializer, AssetReviewSerializer,
)
from . import services
from .services import JobUnavailableError, JobStateError

logger = logging.getLogger('studio.jobs')

User = get_user_model()

STAFF_ONLY_ERROR = 'Only internal staff can manage jobs'


def _visible_jobs(user):
    """Staff see every job; everyone else sees open unassigned jobs and their own"""
    jobs = Job.objects.select_related('assigned_user', 'created_by')
    if is_staff_member(user):
        return jobs
    return jobs.filter(Q(status=Job.STATUS_OPEN, assigned_user__isnull=True) | Q(assigned_user=user))


def _get_visible_job(request, pk):
    return get_object_or_404(_visible_jobs(request.user), pk=pk)


def _staff_required(request):
    if not is_staff_member(request.user):
        logger.warning(f"User {request.user.username} attempted a staff-only job action")
        return Response({'error': STAFF_ONLY_ERROR}, status=status.HTTP_403_FORBIDDEN)
    return None


def _is_worker(request, job):
    return is_staff_member(request.user) or job.assigned_user_id == request.user.id


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_list_create(request):
    """List jobs (filter by status, type, assigned_user, project_name) or create one"""
    if request.method == 'GET':
        filterset = JobFilter(request.query_params, queryset=_visible_jobs(request.user))
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(JobSerializer(filterset.qs, many=True).data)

    denied = _staff_required(request)
    if denied:
        return denied
    serializer = JobSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    job = serializer.save(created_by=request.user)
    create_audit_log(request=request, action='create', model_name='Job', object_id=job.id,
                     object_name=job.project_name, changes={'type': job.type})
    logger.info(f"Job {job.id} ({job.type}) created by {request.user.username}")
    return Response(JobSerializer(job).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def job_detail(request, pk):
    job = _get_visible_job(request, pk)

    if request.method == 'GET':
        return Response(JobSerializer(job).data)

    denied = _staff_required(request)
    if denied:
        return denied

    if request.method == 'PATCH':
        serializer = JobSerializer(job, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request=request, action='delete', model_name='Job', object_id=job.id,
                     object_name=job.project_name)
    job.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_assign(request, pk):
    """Assign a job to a user, or unassign it (reopen) with no user"""
    denied = _staff_required(request)
    if denied:
        return denied
    job = get_object_or_404(Job, pk=pk)
    serializer = JobAssignSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    user_id = serializer.validated_data.get('user_id')
    assignee = get_object_or_404(User, pk=user_id) if user_id else None
    previous = job.assigned_user_id
    services.assign_job(job, assignee)
    create_audit_log(request=request, action='job_assigned', model_name='Job', object_id=job.id,
                     object_name=job.project_name,
                     changes={'assigned_user': {'old': previous, 'new': assignee.id if assignee else None}})
    return Response(JobSerializer(job).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_reset(request, pk):
    denied = _staff_required(request)
    if denied:
        return denied
    job = get_object_or_404(Job, pk=pk)
    previous_status = job.status
    services.reset_job(job)
    create_audit_log(request=request, action='job_reset', model_name='Job', object_id=job.id,
                     object_name=job.project_name, changes={'status': {'old': previous_status, 'new': job.status}})
    return Response(JobSerializer(job).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_claim(request, pk):
    """Claim an open job; loses cleanly (409) if another freelancer was faster"""
    if not (has_role(request.user, FREELANCER) or is_staff_member(request.user)):
        return Response({'error': 'Only freelancers can claim jobs'}, status=status.HTTP_403_FORBIDDEN)
    get_object_or_404(Job, pk=pk)
    try:
        job = services.claim_job(pk, request.user)
    except JobUnavailableError as e:
        logger.info(f"Claim of job {pk} by {request.user.username} lost: {str(e)}")
        return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
    create_audit_log(request=request, action='job_claimed', model_name='Job', object_id=job.id,
                     object_name=job.project_name)
    return Response(JobSerializer(job).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_abandon(request, pk):
    job = _get_visible_job(request, pk)
    try:
        spent = services.abandon_job(job, request.user)
    except JobStateError as e:
        return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
    create_audit_log(request=request, action='job_abandoned', model_name='Job', object_id=job.id,
                     object_name=job.project_name,
                     changes={'time_spent_ms': spent, 'total_active_ms': job.total_active_ms})
    return Response(JobSerializer(job).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_start(request, pk):
    job = _get_visible_job(request, pk)
    try:
        services.start_job(job, request.user)
    except JobStateError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(JobSerializer(job).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_inputs(request, pk):
    job = _get_visible_job(request, pk)
    if request.method == 'GET':
        return Response(JobInputSerializer(job.inputs.all(), many=True).data)

    denied = _staff_required(request)
    if denied:
        return denied
    serializer = JobInputSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    serializer.save(job=job)
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_outputs(request, pk):
    """Work files uploaded for a job (multipart `file` / `files`, optional `label`)"""
    job = _get_visible_job(request, pk)
    if request.method == 'GET':
        return Response(JobOutputSerializer(job.outputs.select_related('uploaded_by'), many=True).data)

    if not _is_worker(request, job):
        return Response({'error': 'Only the assigned user can upload outputs'}, status=status.HTTP_403_FORBIDDEN)
    files = request.FILES.getlist('files') or ([request.FILES['file']] if 'file' in request.FILES else [])
    if not files:
        return Response({'error': 'No file uploaded'}, status=status.HTTP_400_BAD_REQUEST)

    outputs = []
    for upload in files:
        output = JobOutput(job=job, label=request.data.get('label', '') or upload.name, uploaded_by=request.user)
        output.file.save(upload.name, upload, save=False)
        output.save()
        outputs.append(output)
    return Response(JobOutputSerializer(outputs, many=True).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_notes(request, pk):
    job = _get_visible_job(request, pk)
    if request.method == 'GET':
        return Response(JobNoteSerializer(job.notes.select_related('author'), many=True).data)

    if not _is_worker(request, job):
        return Response({'error': 'You cannot comment on this job'}, status=status.HTTP_403_FORBIDDEN)
    serializer = JobNoteSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    serializer.save(job=job, author=request.user)
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_submissions(request, pk):
    """List submission versions, or submit a new version (multipart `files`, `labels`, `summary_notes`)"""
    job = _get_visible_job(request, pk)
    if request.method == 'GET':
        submissions = job.submissions.select_related('submitted_by')
        return Response(JobSubmissionSerializer(submissions, many=True).data)

    if job.assigned_user_id != request.user.id:
        return Response({'error': 'Only the assigned user can submit this job'}, status=status.HTTP_403_FORBIDDEN)
    files = request.FILES.getlist('files')
    if not files:
        return Response({'error': 'At least one file is required'}, status=status.HTTP_400_BAD_REQUEST)

    # multipart bodies are QueryDicts; repeated `labels` line up with `files`
    submission = services.submit_job(job, request.user, files, labels=request.data.getlist('labels'),
                                     summary_notes=request.data.get('summary_notes', ''))
    create_audit_log(request=request, action='job_submitted', model_name='Job', object_id=job.id,
                     object_name=job.project_name, object_reference=f"v{submission.version_number}",
                     changes={'assets': len(files)})
    return Response(JobSubmissionSerializer(submission).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def submission_detail(request, pk):
    submission = get_object_or_404(JobSubmission.objects.select_related('job'), pk=pk)
    _get_visible_job(request, submission.job_id)
    data = JobSubmissionSerializer(submission).data
    data['asset_groups'] = [
        {
            'key': group['key'],
            'current': SubmissionAssetSerializer(group['current']).data,
            'history': SubmissionAssetSerializer(group['history'], many=True).data,
        }
        for group in services.assets_with_history(submission)
    ]
    return Response(data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def submission_status(request, pk):
    denied = _staff_required(request)
    if denied:
        return denied
    submission = get_object_or_404(JobSubmission, pk=pk)
    serializer = SubmissionStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    previous = submission.status
    job_status = services.update_submission_status(submission, serializer.validated_data['status'])
    create_audit_log(request=request, action='job_reviewed', model_name='JobSubmission', object_id=submission.id,
                     object_reference=f"v{submission.version_number}",
                     changes={'status': {'old': previous, 'new': submission.status}, 'job_status': job_status})
    return Response({**JobSubmissionSerializer(submission).data, 'job_status': job_status})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def submission_resubmit(request, pk):
    """Replace assets with new revisions; files are sent as `asset_<id>`"""
    submission = get_object_or_404(JobSubmission.objects.select_related('job'), pk=pk)
    if submission.job.assigned_user_id != request.user.id:
        return Response({'error': 'Only the assigned user can resubmit'}, status=status.HTTP_403_FORBIDDEN)

    replacements = {}
    for field, upload in request.FILES.items():
        if field.startswith('asset_') and field[len('asset_'):].isdigit():
            replacements[int(field[len('asset_'):])] = upload
    if not replacements:
        return Response({'error': 'No replacement files provided'}, status=status.HTTP_400_BAD_REQUEST)

    created = services.resubmit_assets(submission, replacements, user=request.user)
    submission.refresh_from_db()
    return Response({
        **JobSubmissionSerializer(submission).data,
        'replaced': len(created),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def asset_review(request, pk):
    """Approve or request changes on one asset; the submission and job follow"""
    denied = _staff_required(request)
    if denied:
        return denied
    asset = get_object_or_404(SubmissionAsset.objects.select_related('submission'), pk=pk)
    serializer = AssetReviewSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        submission = services.review_asset(asset, serializer.validated_data['review_status'], request.user,
                                           notes=serializer.validated_data.get('review_notes', ''))
    except JobStateError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='job_reviewed', model_name='SubmissionAsset', object_id=asset.id,
                     object_reference=f"v{submission.version_number}",
                     changes={'review_status': asset.review_status, 'submission_status': submission.status})
    return Response({
        'asset': SubmissionAssetSerializer(asset).data,
        'submission_status': submission.status,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def job_review_progress(request, pk):
    job = _get_visible_job(request, pk)
    return Response(services.review_progress(job.id))
