import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.db.models.functions import Coalesce, NullIf
from django.db.models import Value
from django.shortcuts import get_object_or_404
from .models import Setting, AuditLog
from .filters import UserFilter, AuditLogFilter
from .roles import (
    ADMIN, FREELANCER, APP_ROLES, IsAppAdmin, IsStaffMember,
    get_user_roles, has_role, is_admin, is_staff_member, admin_exists, get_role_group,
)
from .serializers import (
    UserSerializer, UserCreateSerializer, UserSummarySerializer, RoleAssignSerializer,
    SettingSerializer, AuditLogSerializer
)
from .utils import create_audit_log

User = get_user_model()

logger = logging.getLogger('studio.core')


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['roles'] = get_user_roles(user)
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Custom token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """User registration endpoint"""
    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        token = CustomTokenObtainPairSerializer.get_token(user)
        logger.info(f"Registered user {user.username}")
        return Response({
            'user': UserSerializer(user).data,
            'access': str(token.access_token),
            'refresh': str(token),
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with roles and the access flags the UI keys off"""
    user = request.user
    user_data = UserSerializer(user).data
    user_data['is_admin'] = is_admin(user)
    user_data['is_internal'] = is_staff_member(user)
    user_data['is_freelancer'] = has_role(user, FREELANCER)
    return Response(user_data)


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAppAdmin])
def user_list_create(request):
    """List/search users with their roles, or create a new user"""
    if request.method == 'GET':
        queryset = User.objects.prefetch_related('groups').order_by('username')
        user_filter = UserFilter(request.query_params, queryset=queryset)
        users = user_filter.qs.distinct()
        serializer = UserSerializer(users, many=True)
        return Response(serializer.data)
    else:
        serializer = UserCreateSerializer(data=request.data)
        if serializer.is_valid():
            user = serializer.save()
            create_audit_log(request=request, action='create', model_name='User',
                             object_id=user.id, object_name=user.username)
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAppAdmin])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        serializer = UserSerializer(user)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', model_name='User',
                         object_id=user.id, object_name=user.username)
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def freelancer_list(request):
    """Users holding the freelancer role, for job assignment pickers"""
    freelancers = (
        User.objects.filter(groups__name=FREELANCER, is_active=True)
        .annotate(sort_name=Coalesce(NullIf('display_name', Value('')), 'username'))
        .order_by('sort_name', 'username')
        .distinct()
    )
    serializer = UserSummarySerializer(freelancers, many=True)
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def role_assign(request):
    """
    Grant a role to a user.

    Admins may grant any role. While no admin exists yet, any signed-in user
    may grant roles so the first admin can be bootstrapped.
    """
    serializer = RoleAssignSerializer(data=request.data)
    if not serializer.is_valid():
        errors = serializer.errors.get('non_field_errors') or ['userId and role are required']
        return Response({'error': str(errors[0])}, status=status.HTTP_400_BAD_REQUEST)

    role = serializer.validated_data['role']
    user_id = serializer.validated_data['user_id']

    if not is_admin(request.user):
        if admin_exists():
            if role == ADMIN:
                logger.warning(f"User {request.user.username} tried to grant admin while an admin exists")
                return Response(
                    {'error': 'An admin already exists. Use the admin panel to assign roles.'},
                    status=status.HTTP_403_FORBIDDEN
                )
            return Response({'error': 'Only administrators can assign roles'}, status=status.HTTP_403_FORBIDDEN)
        logger.info(f"No admin exists yet, allowing {request.user.username} to bootstrap role '{role}'")

    target = get_object_or_404(User, pk=user_id)
    if target.groups.filter(name=role).exists():
        return Response({'error': 'User already has this role'}, status=status.HTTP_409_CONFLICT)

    target.groups.add(get_role_group(role))
    create_audit_log(request=request, action='role_assign', model_name='User',
                     object_id=target.id, object_name=target.username, changes={'role': role})
    logger.info(f"Role '{role}' assigned to {target.username} by {request.user.username}")
    return Response({'success': True, 'user_id': target.id, 'role': role, 'roles': get_user_roles(target)},
                    status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsAppAdmin])
def role_remove(request, pk, role):
    """Revoke a role from a user"""
    if role not in APP_ROLES:
        return Response({'error': f"Invalid role. Must be one of: {', '.join(APP_ROLES)}"},
                        status=status.HTTP_400_BAD_REQUEST)
    target = get_object_or_404(User, pk=pk)
    group = target.groups.filter(name=role).first()
    if group is None:
        return Response({'error': 'User does not have this role'}, status=status.HTTP_404_NOT_FOUND)

    target.groups.remove(group)
    create_audit_log(request=request, action='role_remove', model_name='User',
                     object_id=target.id, object_name=target.username, changes={'role': role})
    logger.info(f"Role '{role}' removed from {target.username} by {request.user.username}")
    return Response(status=status.HTTP_204_NO_CONTENT)


# Setting views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAppAdmin])
def setting_list_create(request):
    """List all settings or create a new setting"""
    if request.method == 'GET':
        settings = Setting.objects.all()
        serializer = SettingSerializer(settings, many=True)
        return Response(serializer.data)
    else:
        serializer = SettingSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAppAdmin])
def setting_detail(request, pk):
    """Retrieve, update or delete a setting"""
    setting = get_object_or_404(Setting, pk=pk)

    if request.method == 'GET':
        serializer = SettingSerializer(setting)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SettingSerializer(setting, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        setting.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs; non-admins only see their own entries"""
    queryset = AuditLog.objects.select_related('user')
    if not is_admin(request.user):
        queryset = queryset.filter(user=request.user)

    log_filter = AuditLogFilter(request.query_params, queryset=queryset)
    if not log_filter.is_valid():
        return Response(log_filter.errors, status=status.HTTP_400_BAD_REQUEST)
    serializer = AuditLogSerializer(log_filter.qs.order_by('-created_at')[:500], many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not is_admin(request.user) and audit_log.user_id != request.user.id:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)
