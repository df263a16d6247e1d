import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.core.files.storage import default_storage
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from studio.core.roles import IsStaffMember
from studio.core.utils import create_audit_log
from .models import Project, BrandRef, ExpressionRecipe, DigitalModel, DigitalModelRef, GenerationJob, Output
from .serializers import (
    ProjectSerializer, BrandRefSerializer, ExpressionRecipeSerializer, DigitalModelSerializer,
    DigitalModelRefSerializer, GenerationJobSerializer, OutputSerializer,
    ExtractRequestSerializer, GenerateRequestSerializer,
)
from . import extraction, generation
from .filters import OutputFilter
from .exports import build_prompt_manifest, manifest_to_csv
from .generation import GenerationPlanError

logger = logging.getLogger('studio.expression_map')


def _uploaded_files(request):
    files = request.FILES.getlist('files')
    if not files and 'file' in request.FILES:
        files = [request.FILES['file']]
    return files


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def project_list_create(request):
    if request.method == 'GET':
        projects = Project.objects.select_related('created_by')
        search = request.query_params.get('search')
        if search:
            projects = projects.filter(name__icontains=search)
        return Response(ProjectSerializer(projects, many=True).data)

    serializer = ProjectSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    project = serializer.save(created_by=request.user)
    logger.info(f"Expression project '{project.name}' created by {request.user.username}")
    create_audit_log(request=request, action='create', model_name='Project', object_id=project.id,
                     object_name=project.name)
    return Response(ProjectSerializer(project).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffMember])
def project_detail(request, pk):
    project = get_object_or_404(Project, pk=pk)

    if request.method == 'GET':
        return Response(ProjectSerializer(project).data)
    elif request.method == 'PATCH':
        serializer = ProjectSerializer(project, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:
        create_audit_log(request=request, action='delete', model_name='Project', object_id=project.id,
                         object_name=project.name)
        project.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def brand_ref_list_create(request, pk):
    """List brand references, or upload one or more (multipart `file` / `files`)"""
    project = get_object_or_404(Project, pk=pk)

    if request.method == 'GET':
        return Response(BrandRefSerializer(project.brand_refs.all(), many=True).data)

    files = _uploaded_files(request)
    if not files:
        image_url = request.data.get('image_url')
        if not image_url:
            return Response({'error': 'No file uploaded'}, status=status.HTTP_400_BAD_REQUEST)
        ref = BrandRef.objects.create(project=project, image_url=image_url,
                                      file_name=request.data.get('file_name', ''))
        return Response(BrandRefSerializer([ref], many=True).data, status=status.HTTP_201_CREATED)

    refs = []
    for upload in files:
        ref = BrandRef(project=project, file_name=upload.name,
                       metadata={'size': upload.size, 'content_type': getattr(upload, 'content_type', None)})
        ref.file.save(upload.name, upload, save=False)
        ref.image_url = ref.file.url
        ref.save()
        refs.append(ref)
    logger.info(f"{len(refs)} brand refs uploaded to project {project.id}")
    return Response(BrandRefSerializer(refs, many=True).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsStaffMember])
def brand_ref_delete(request, pk):
    ref = get_object_or_404(BrandRef, pk=pk)
    if ref.file:
        ref.file.delete(save=False)
    ref.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def extract_recipes(request, pk):
    """Start a recipe extraction job over the project's brand references"""
    project = get_object_or_404(Project, pk=pk)
    serializer = ExtractRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    if not project.brand_refs.exists():
        return Response({'error': 'Upload brand references before extracting recipes'},
                        status=status.HTTP_400_BAD_REQUEST)

    job = extraction.start_extraction(
        project,
        user=request.user,
        custom_prompt=serializer.validated_data.get('custom_prompt') or None,
        model=serializer.validated_data.get('model') or None,
    )
    job.refresh_from_db()
    return Response(GenerationJobSerializer(job).data, status=status.HTTP_202_ACCEPTED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def recipe_list(request, pk):
    project = get_object_or_404(Project, pk=pk)
    return Response(ExpressionRecipeSerializer(project.recipes.all(), many=True).data)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffMember])
def recipe_detail(request, pk):
    recipe = get_object_or_404(ExpressionRecipe, pk=pk)

    if request.method == 'GET':
        return Response(ExpressionRecipeSerializer(recipe).data)
    elif request.method == 'PATCH':
        serializer = ExpressionRecipeSerializer(recipe, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:
        recipe.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def model_list_create(request, pk):
    project = get_object_or_404(Project, pk=pk)

    if request.method == 'GET':
        models = project.digital_models.prefetch_related('refs')
        return Response(DigitalModelSerializer(models, many=True).data)

    serializer = DigitalModelSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    digital_model = serializer.save(project=project)
    return Response(DigitalModelSerializer(digital_model).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffMember])
def model_detail(request, pk):
    digital_model = get_object_or_404(DigitalModel, pk=pk)

    if request.method == 'GET':
        return Response(DigitalModelSerializer(digital_model).data)
    elif request.method == 'PATCH':
        serializer = DigitalModelSerializer(digital_model, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:
        digital_model.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def model_ref_upload(request, pk):
    digital_model = get_object_or_404(DigitalModel, pk=pk)
    files = _uploaded_files(request)
    if not files:
        return Response({'error': 'No file uploaded'}, status=status.HTTP_400_BAD_REQUEST)

    refs = []
    for upload in files:
        ref = DigitalModelRef(digital_model=digital_model, file_name=upload.name)
        ref.file.save(upload.name, upload, save=False)
        ref.image_url = ref.file.url
        ref.save()
        refs.append(ref)
    return Response(DigitalModelRefSerializer(refs, many=True).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsStaffMember])
def model_ref_delete(request, pk):
    ref = get_object_or_404(DigitalModelRef, pk=pk)
    if ref.file:
        ref.file.delete(save=False)
    ref.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def generate(request, pk):
    """Plan and start a generation job for the selected models and recipes"""
    project = get_object_or_404(Project, pk=pk)
    serializer = GenerateRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    try:
        job, plan = generation.start_generation(
            project, data['model_ids'], data['recipe_ids'], data.get('variations'),
            user=request.user, model=data.get('model') or None,
        )
    except GenerationPlanError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    if job is None:
        return Response({
            'message': 'All selected combinations already have the requested number of variations',
            'already_complete': True,
            'skipped_models': plan['skipped_models'],
        })

    create_audit_log(request=request, action='generation_start', model_name='GenerationJob', object_id=job.id,
                     object_name=project.name, changes={'total': job.total, 'variations': plan['variations']})
    job.refresh_from_db()
    response = GenerationJobSerializer(job).data
    response['skipped_models'] = plan['skipped_models']
    return Response(response, status=status.HTTP_202_ACCEPTED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def job_list(request, pk):
    project = get_object_or_404(Project, pk=pk)
    jobs = project.jobs.all()
    job_type = request.query_params.get('type')
    if job_type:
        jobs = jobs.filter(type=job_type)
    return Response(GenerationJobSerializer(jobs, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def job_detail(request, pk):
    job = get_object_or_404(GenerationJob, pk=pk)
    return Response(GenerationJobSerializer(job).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def job_stop(request, pk):
    job = get_object_or_404(GenerationJob, pk=pk)
    if not generation.stop_job(job):
        return Response({'error': f'Job is already {job.status}'}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='generation_stop', model_name='GenerationJob', object_id=job.id,
                     changes={'progress': job.progress, 'total': job.total})
    return Response(GenerationJobSerializer(job).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def job_skip(request, pk):
    job = get_object_or_404(GenerationJob, pk=pk)
    if job.status != GenerationJob.STATUS_RUNNING:
        return Response({'error': 'Only running jobs can skip'}, status=status.HTTP_400_BAD_REQUEST)
    generation.skip_current(job)
    return Response(GenerationJobSerializer(job).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def output_list(request, pk):
    """Outputs of a project, filtered by model, recipe and status"""
    project = get_object_or_404(Project, pk=pk)
    filterset = OutputFilter(
        request.query_params, queryset=project.outputs.select_related('digital_model', 'recipe')
    )
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    return Response(OutputSerializer(filterset.qs, many=True).data)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsStaffMember])
def output_delete(request, pk):
    output = get_object_or_404(Output, pk=pk)
    if output.image_path and default_storage.exists(output.image_path):
        default_storage.delete(output.image_path)
    output.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def export_prompts(request, pk):
    """Download every model x recipe x variation prompt as JSON or CSV"""
    project = get_object_or_404(Project, pk=pk)
    export_format = request.query_params.get('format', 'json').lower()
    if export_format not in ('json', 'csv'):
        return Response({'error': 'format must be json or csv'}, status=status.HTTP_400_BAD_REQUEST)

    manifest = build_prompt_manifest(
        project,
        variations=request.query_params.get('variations', 1),
        model_ids=request.query_params.get('models'),
        recipe_ids=request.query_params.get('recipes'),
    )
    filename = f"project-{project.id}-prompts.{export_format}"
    if export_format == 'csv':
        response = HttpResponse(manifest_to_csv(manifest), content_type='text/csv')
    else:
        response = JsonResponse(manifest, json_dumps_params={'indent': 2})
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response
