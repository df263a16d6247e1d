import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.db import IntegrityError
from studio.catalog.models import Brand
from studio.core.roles import IsStaffMember
from studio.core.utils import create_audit_log
from .models import BrandPoseLibrary
from .selection import apply_selection
from .serializers import (
    BrandPoseLibrarySerializer, LibraryCreateSerializer, LibraryStatusSerializer,
    LibraryPoseSerializer, BulkPoseSerializer, SelectionSerializer,
)
from . import services
from .services import LibraryLockedError, InvalidTransitionError

logger = logging.getLogger('studio.pose_library')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def library_list_create(request, brand_id):
    """List a brand's library versions, or start a new version"""
    brand = get_object_or_404(Brand, pk=brand_id)

    if request.method == 'GET':
        libraries = BrandPoseLibrary.objects.filter(brand=brand).select_related('brand', 'locked_by').order_by('-version')
        default_library = services.get_default_library(brand)
        return Response({
            'default_library_id': default_library.id if default_library else None,
            'libraries': BrandPoseLibrarySerializer(libraries, many=True).data,
        })

    serializer = LibraryCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        library, added = services.create_library(
            brand, user=request.user, min_poses_per_slot=serializer.validated_data.get('min_poses_per_slot')
        )
    except IntegrityError as e:
        logger.error(f"IntegrityError creating library for brand {brand.id}: {str(e)}", exc_info=True)
        return Response({'error': 'Another library version was created at the same time, please retry'},
                        status=status.HTTP_409_CONFLICT)

    create_audit_log(request=request, action='library_create', model_name='BrandPoseLibrary',
                     object_id=library.id, object_name=brand.name, object_reference=f"v{library.version}",
                     changes={'poses_added': added})
    data = BrandPoseLibrarySerializer(library).data
    data['poses_added'] = added
    return Response(data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffMember])
def library_detail(request, pk):
    library = get_object_or_404(BrandPoseLibrary.objects.select_related('brand'), pk=pk)

    if request.method == 'GET':
        return Response(BrandPoseLibrarySerializer(library).data)

    if library.is_locked:
        return Response({'error': 'Library is locked and cannot be modified'}, status=status.HTTP_400_BAD_REQUEST)

    if request.method == 'PATCH':
        # Only the config (min poses per slot) is editable here
        create_serializer = LibraryCreateSerializer(data=request.data)
        if not create_serializer.is_valid():
            return Response(create_serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        min_poses = create_serializer.validated_data.get('min_poses_per_slot')
        if min_poses:
            library.config_json = {**(library.config_json or {}), 'min_poses_per_slot': min_poses}
            library.save(update_fields=['config_json', 'updated_at'])
        return Response(BrandPoseLibrarySerializer(library).data)

    logger.info(f"Library {library.id} (v{library.version}) deleted by {request.user.username}")
    library.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def library_status(request, pk):
    """Submit for review, lock, or reopen a library"""
    library = get_object_or_404(BrandPoseLibrary.objects.select_related('brand'), pk=pk)
    serializer = LibraryStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    previous = library.status
    try:
        services.update_library_status(library, serializer.validated_data['status'], user=request.user)
    except InvalidTransitionError as e:
        logger.warning(f"Rejected library {library.id} status change: {str(e)}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    action = 'library_lock' if library.is_locked else 'library_status'
    create_audit_log(request=request, action=action, model_name='BrandPoseLibrary',
                     object_id=library.id, object_name=library.brand.name,
                     object_reference=f"v{library.version}",
                     changes={'status': {'old': previous, 'new': library.status}})
    return Response(BrandPoseLibrarySerializer(library).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def library_coverage(request, pk):
    library = get_object_or_404(BrandPoseLibrary, pk=pk)
    return Response(services.compute_coverage(library))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def library_initialize(request, pk):
    """Pull clay images added since the library was created into it"""
    library = get_object_or_404(BrandPoseLibrary, pk=pk)
    try:
        services.ensure_unlocked(library)
    except LibraryLockedError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    added = services.initialize_library_poses(library)
    return Response({'poses_added': added})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def pose_list(request, pk):
    """Poses of a library, filtered by shot_type, gender and status"""
    library = get_object_or_404(BrandPoseLibrary, pk=pk)
    poses = services.filter_poses(
        library,
        shot_type=request.query_params.get('shot_type'),
        gender=request.query_params.get('gender'),
        curation_status=request.query_params.get('status'),
    )
    return Response(LibraryPoseSerializer(poses, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def pose_bulk_action(request, pk):
    """Apply one curation action to many poses at once"""
    library = get_object_or_404(BrandPoseLibrary, pk=pk)
    serializer = BulkPoseSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    action = data['action']
    pose_ids = data['pose_ids']
    try:
        if action == 'status':
            affected = services.bulk_update_status(library, pose_ids, data['curation_status'],
                                                   user=request.user, notes=data.get('notes'))
            create_audit_log(request=request, action='pose_curate', model_name='BrandPoseLibrary',
                             object_id=library.id, object_reference=f"v{library.version}",
                             changes={'curation_status': data['curation_status'], 'count': affected})
        elif action == 'move':
            affected = services.bulk_move(library, pose_ids, data['shot_type'])
        elif action == 'delete':
            affected = services.bulk_delete(library, pose_ids)
        else:
            affected = services.bulk_set_crop_target(library, pose_ids, data['crop_target'])
    except LibraryLockedError as e:
        logger.warning(f"User {request.user.username} attempted '{action}' on locked library {library.id}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"Bulk '{action}' on {affected} poses of library {library.id} by {request.user.username}")
    return Response({'action': action, 'affected': affected})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def pose_select(request, pk):
    """
    Resolve a selection gesture (click, toggle, range, all, clear) against the
    currently filtered pose list and return the new selection.
    """
    library = get_object_or_404(BrandPoseLibrary, pk=pk)
    serializer = SelectionSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    visible = list(services.filter_poses(
        library,
        shot_type=data.get('shot_type'),
        gender=data.get('gender'),
        curation_status=data.get('status'),
    ).values_list('id', flat=True))
    # Drop ids that are no longer visible under the current filters
    selected = set(data.get('selected') or []) & set(visible)
    result = apply_selection(visible, selected, data['mode'], target=data.get('target'), anchor=data.get('anchor'))
    ordered = [pose_id for pose_id in visible if pose_id in result]
    return Response({'selected': ordered, 'count': len(ordered)})
