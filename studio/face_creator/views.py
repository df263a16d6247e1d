import json
import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from studio.core.roles import IsStaffMember
from studio.core.utils import create_audit_log
from .models import FaceScrapeRun, FaceScrapeImage, FaceIdentity, FaceIdentityImage
from .serializers import (
    FaceScrapeRunSerializer, StartRunSerializer, FaceScrapeImageSerializer, GenderUpdateSerializer,
    FaceIdentitySerializer, FaceIdentityImageSerializer, IdentityCreateSerializer, IdentityImagesSerializer,
    MergeSerializer, IdentityDeleteSerializer, ViewUpdateSerializer, CropRequestSerializer,
    CropAdjustSerializer, FaceCropSerializer,
)
from . import crop as crop_geometry
from . import runner, services
from .exports import build_face_dataset, dataset_filename

logger = logging.getLogger('studio.face_creator')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def run_list_create(request):
    """List scrape runs, or start scraping a brand site"""
    if request.method == 'GET':
        runs = FaceScrapeRun.objects.all()
        brand = request.query_params.get('brand')
        if brand:
            runs = runs.filter(brand_name__icontains=brand)
        return Response(FaceScrapeRunSerializer(runs, many=True).data)

    serializer = StartRunSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    run = runner.start_run(data['brand_name'], data['start_url'], max_products=data['max_products'],
                           images_per_product=data['images_per_product'], user=request.user)
    logger.info(f"Face scrape {run.id} for {run.brand_name} started by {request.user.username}")
    create_audit_log(request=request, action='scrape_start', model_name='FaceScrapeRun', object_id=run.id,
                     object_name=run.brand_name, changes={'start_url': run.start_url})
    run.refresh_from_db()
    return Response(FaceScrapeRunSerializer(run).data, status=status.HTTP_202_ACCEPTED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffMember])
def run_detail(request, pk):
    run = get_object_or_404(FaceScrapeRun, pk=pk)
    if request.method == 'GET':
        return Response(FaceScrapeRunSerializer(run).data)
    logger.info(f"Face scrape {run.id} deleted by {request.user.username}")
    run.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def run_resume(request, pk):
    run = get_object_or_404(FaceScrapeRun, pk=pk)
    try:
        start_index = runner.resume_run(run)
    except runner.AlreadyCompletedError as e:
        return Response({'message': str(e)})
    return Response({'message': 'Scrape resumed', 'resumed_from': start_index}, status=status.HTTP_202_ACCEPTED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def run_images(request, pk):
    """Scraped images of a run, optionally by gender or only those without an identity"""
    run = get_object_or_404(FaceScrapeRun, pk=pk)
    images = run.images.select_related('crop', 'identity_link')
    gender = request.query_params.get('gender')
    if gender:
        images = images.filter(gender=gender)
    if request.query_params.get('unassigned') in ('1', 'true'):
        images = images.filter(identity_link__isnull=True)
    return Response(FaceScrapeImageSerializer(images, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def image_gender_update(request, pk):
    """Manually set the gender of scraped images"""
    run = get_object_or_404(FaceScrapeRun, pk=pk)
    serializer = GenderUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    updated = FaceScrapeImage.objects.filter(run=run, id__in=serializer.validated_data['image_ids']).update(
        gender=serializer.validated_data['gender'], gender_source='manual'
    )
    return Response({'updated': updated})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def identity_list_create(request, pk):
    run = get_object_or_404(FaceScrapeRun, pk=pk)

    if request.method == 'GET':
        identities = run.identities.select_related('representative_image')
        gender = request.query_params.get('gender')
        if gender:
            identities = identities.filter(gender=gender)
        return Response(FaceIdentitySerializer(identities, many=True).data)

    serializer = IdentityCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    identity = services.create_identity(run, data['image_ids'], name=data.get('name') or None,
                                        gender=data.get('gender'))
    if identity.image_count == 0:
        identity.delete()
        return Response({'error': 'None of the images belong to this run'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(FaceIdentitySerializer(identity).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def identity_bulk_delete(request, pk):
    """Delete identities and the scraped images they hold"""
    run = get_object_or_404(FaceScrapeRun, pk=pk)
    serializer = IdentityDeleteSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    identities = list(run.identities.filter(id__in=serializer.validated_data['identity_ids']))
    deleted, images_deleted = services.delete_identities(identities)
    return Response({'deleted': deleted, 'images_deleted': images_deleted})


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, IsStaffMember])
def identity_detail(request, pk):
    identity = get_object_or_404(FaceIdentity.objects.select_related('representative_image'), pk=pk)

    if request.method == 'GET':
        data = FaceIdentitySerializer(identity).data
        links = identity.identity_images.select_related('scrape_image__crop')
        if request.query_params.get('include_ignored') not in ('1', 'true'):
            links = links.filter(is_ignored=False)
        data['images'] = FaceIdentityImageSerializer(links, many=True).data
        return Response(data)

    serializer = FaceIdentitySerializer(identity, data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    serializer.save()
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def identity_move_images(request, pk):
    """Move images from this identity into another one"""
    source = get_object_or_404(FaceIdentity, pk=pk)
    serializer = IdentityImagesSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    if not data.get('target_identity_id'):
        return Response({'error': 'target_identity_id is required'}, status=status.HTTP_400_BAD_REQUEST)
    target = get_object_or_404(FaceIdentity, pk=data['target_identity_id'], run_id=source.run_id)

    if not data['identity_image_ids'] or target.id == source.id:
        return Response({'moved': 0})
    moved = services.move_images(
        list(source.identity_images.filter(id__in=data['identity_image_ids']).values_list('id', flat=True)),
        target,
    )
    return Response({'moved': moved})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def identity_split(request, pk):
    source = get_object_or_404(FaceIdentity.objects.select_related('run'), pk=pk)
    serializer = IdentityImagesSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    new_identity = services.split_identity(source, serializer.validated_data['identity_image_ids'],
                                           name=serializer.validated_data.get('name') or None)
    if new_identity is None:
        return Response({'error': 'No images of this identity were selected'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(FaceIdentitySerializer(new_identity).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def identity_merge(request, pk):
    """Merge other identities of the same run into this one"""
    target = get_object_or_404(FaceIdentity.objects.select_related('run'), pk=pk)
    serializer = MergeSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    source_ids = serializer.validated_data['source_identity_ids']
    moved = services.merge_identities(target, source_ids)
    create_audit_log(request=request, action='identity_merge', model_name='FaceIdentity', object_id=target.id,
                     object_name=target.name, changes={'merged_ids': source_ids, 'images_moved': moved})
    target.refresh_from_db()
    return Response(FaceIdentitySerializer(target).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def identity_ignore_images(request, pk):
    identity = get_object_or_404(FaceIdentity, pk=pk)
    serializer = IdentityImagesSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    ids = list(identity.identity_images.filter(
        id__in=serializer.validated_data['identity_image_ids']
    ).values_list('id', flat=True))
    updated = services.set_ignored(ids, ignored=serializer.validated_data['ignored'])
    return Response({'updated': updated})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsStaffMember])
def identity_image_view(request, pk):
    link = get_object_or_404(FaceIdentityImage, pk=pk)
    serializer = ViewUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    link.view = serializer.validated_data['view']
    link.view_source = 'manual'
    link.save(update_fields=['view', 'view_source'])
    return Response(FaceIdentityImageSerializer(link).data)


@api_view(['GET', 'POST', 'PATCH'])
@permission_classes([IsAuthenticated, IsStaffMember])
def image_crop(request, pk):
    """
    GET the saved crop; POST computes and saves one (explicit box, best
    detection, or the centered default); PATCH moves or resizes it.
    """
    image = get_object_or_404(FaceScrapeImage, pk=pk)

    if request.method == 'GET':
        if not hasattr(image, 'crop'):
            return Response({'error': 'No crop saved for this image'}, status=status.HTTP_404_NOT_FOUND)
        return Response(FaceCropSerializer(image.crop).data)

    if request.method == 'POST':
        serializer = CropRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        if data.get('crop'):
            box, is_auto = dict(data['crop']), False
        else:
            face_box = crop_geometry.best_face_detection(data.get('detections') or [])
            box, is_auto = crop_geometry.head_and_shoulders_crop(face_box, data['aspect_ratio']), True
        face_crop = services.save_crop(image, box, aspect_ratio=data['aspect_ratio'], is_auto=is_auto)
        return Response(FaceCropSerializer(face_crop).data, status=status.HTTP_201_CREATED)

    if not hasattr(image, 'crop'):
        return Response({'error': 'No crop saved for this image'}, status=status.HTTP_404_NOT_FOUND)
    serializer = CropAdjustSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    current = image.crop
    box = {'x': current.crop_x, 'y': current.crop_y, 'width': current.crop_width, 'height': current.crop_height}
    if data['action'] == 'move':
        box = crop_geometry.move_crop(box, data['dx'], data['dy'])
    else:
        box = crop_geometry.resize_crop(box, data['corner'], data['dx'], current.aspect_ratio)
    face_crop = services.save_crop(image, box, aspect_ratio=current.aspect_ratio, is_auto=False)
    return Response(FaceCropSerializer(face_crop).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def run_export(request, pk):
    """Download the run's identities, views and crops as a JSON dataset"""
    run = get_object_or_404(FaceScrapeRun, pk=pk)
    dataset = build_face_dataset(run)
    response = HttpResponse(json.dumps(dataset, indent=2), content_type='application/json')
    response['Content-Disposition'] = f'attachment; filename="{dataset_filename(run)}"'
    return response
