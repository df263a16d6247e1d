"""
Test suite for the core module
Tests: authentication, role management, audit logs, settings and shared helpers
"""
from django.core.management import call_command
from django.contrib.auth.models import Group
from django.test import TestCase
from rest_framework import status
from studio.core.cache_utils import make_cache_key, cached_query
from studio.core.models import AuditLog, Setting
from studio.core.roles import (
    ADMIN, INTERNAL, FREELANCER, APP_ROLES, get_user_roles, is_admin, is_staff_member, admin_exists,
)
from studio.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from studio.core.utils import append_log, create_audit_log


class RoleHelperTests(TestCase):
    """Test role lookups built on Django groups"""

    def test_roles_are_reported_in_fixed_order(self):
        """Test get_user_roles returns roles in APP_ROLES order"""
        user = TestDataFactory.create_user(roles=[FREELANCER, ADMIN])
        self.assertEqual(get_user_roles(user), [ADMIN, FREELANCER])

    def test_internal_is_staff_but_not_admin(self):
        """Test internal users count as staff only"""
        user = TestDataFactory.create_user(roles=[INTERNAL])
        self.assertTrue(is_staff_member(user))
        self.assertFalse(is_admin(user))

    def test_superuser_is_admin(self):
        """Test superusers are admins without the group"""
        user = TestDataFactory.create_user(is_superuser=True)
        self.assertTrue(is_admin(user))

    def test_admin_exists(self):
        """Test admin_exists only after someone holds the admin role"""
        TestDataFactory.create_user(roles=[INTERNAL])
        self.assertFalse(admin_exists())
        TestDataFactory.create_user(roles=[ADMIN])
        self.assertTrue(admin_exists())


class AuthAPITests(TestCase):
    """Test registration, login and the current-user endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_register_returns_tokens(self):
        """Test registering returns the user plus a token pair"""
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'newartist',
            'email': 'newartist@test.com',
            'password': 'Str0ng-pass-123',
            'password_confirm': 'Str0ng-pass-123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['roles'], [])

    def test_register_password_mismatch(self):
        """Test mismatched passwords are rejected"""
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'mismatch',
            'email': 'mismatch@test.com',
            'password': 'Str0ng-pass-123',
            'password_confirm': 'different-pass-456',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login(self):
        """Test obtaining a token pair with username and password"""
        TestDataFactory.create_user(username='loginuser', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'loginuser', 'password': 'testpass123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_me_flags(self):
        """Test /auth/me/ reports role flags"""
        user = TestDataFactory.create_user(roles=[FREELANCER])
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_freelancer'])
        self.assertFalse(response.data['is_internal'])
        self.assertFalse(response.data['is_admin'])

    def test_me_requires_auth(self):
        """Test anonymous requests are rejected"""
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class RoleAPITests(TestCase):
    """Test granting and revoking roles"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_bootstrap_first_admin(self):
        """Test any user may grant admin while no admin exists"""
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.post('/api/v1/users/roles/', {'user_id': user.id, 'role': ADMIN}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['roles'], [ADMIN])
        self.assertTrue(AuditLog.objects.filter(action='role_assign', object_id=str(user.id)).exists())

    def test_non_admin_cannot_grant_admin_once_one_exists(self):
        """Test admin can't be self-granted after bootstrap"""
        TestDataFactory.create_user(roles=[ADMIN])
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.post('/api/v1/users/roles/', {'user_id': user.id, 'role': ADMIN}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'An admin already exists. Use the admin panel to assign roles.')

    def test_non_admin_cannot_grant_other_roles(self):
        """Test non-admins can't grant any role once an admin exists"""
        TestDataFactory.create_user(roles=[ADMIN])
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.post('/api/v1/users/roles/', {'user_id': user.id, 'role': FREELANCER},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_duplicate_role_conflict(self):
        """Test granting a held role returns 409"""
        admin = TestDataFactory.create_user(roles=[ADMIN])
        target = TestDataFactory.create_user(roles=[FREELANCER])
        self.client.authenticate_user(admin)
        response = self.client.post('/api/v1/users/roles/', {'user_id': target.id, 'role': FREELANCER},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_missing_fields(self):
        """Test the fixed error for an incomplete payload"""
        admin = TestDataFactory.create_user(roles=[ADMIN])
        self.client.authenticate_user(admin)
        response = self.client.post('/api/v1/users/roles/', {'role': FREELANCER}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'userId and role are required')

    def test_invalid_role(self):
        """Test unknown role names are rejected"""
        admin = TestDataFactory.create_user(roles=[ADMIN])
        self.client.authenticate_user(admin)
        response = self.client.post('/api/v1/users/roles/', {'user_id': admin.id, 'role': 'owner'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Invalid role', response.data['error'])

    def test_remove_role(self):
        """Test admins can revoke a role"""
        admin = TestDataFactory.create_user(roles=[ADMIN])
        target = TestDataFactory.create_user(roles=[FREELANCER])
        self.client.authenticate_user(admin)
        response = self.client.delete(f'/api/v1/users/{target.id}/roles/{FREELANCER}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(get_user_roles(target), [])

    def test_remove_missing_role(self):
        """Test revoking a role the user lacks returns 404"""
        admin = TestDataFactory.create_user(roles=[ADMIN])
        target = TestDataFactory.create_user()
        self.client.authenticate_user(admin)
        response = self.client.delete(f'/api/v1/users/{target.id}/roles/{FREELANCER}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class UserAPITests(TestCase):
    """Test user administration endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_user(roles=[ADMIN])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_list_users_requires_admin(self):
        """Test non-admins can't list users"""
        self.client.authenticate_user(TestDataFactory.create_user(roles=[INTERNAL]))
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cannot_delete_self(self):
        """Test admins can't delete their own account"""
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_freelancer_list(self):
        """Test the freelancer picker only lists freelancers"""
        freelancer = TestDataFactory.create_user(roles=[FREELANCER])
        TestDataFactory.create_user(roles=[INTERNAL])
        response = self.client.get('/api/v1/users/freelancers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([u['id'] for u in response.data], [freelancer.id])


class SettingAndAuditLogTests(TestCase):
    """Test settings CRUD and audit log visibility"""

    def setUp(self):
        self.admin = TestDataFactory.create_user(roles=[ADMIN])
        self.client = AuthenticatedAPIClient()

    def test_create_setting(self):
        """Test admins can create settings"""
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/settings/', {'key': 'default_variations', 'value': '2'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Setting.objects.filter(key='default_variations').exists())

    def test_non_admin_sees_only_own_audit_logs(self):
        """Test audit log listing is scoped for non-admins"""
        user = TestDataFactory.create_user(roles=[INTERNAL])
        create_audit_log(user=user, action='create', model_name='Project', object_id=1)
        create_audit_log(user=self.admin, action='create', model_name='Project', object_id=2)
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['object_id'], '1')

    def test_audit_log_detail_permission(self):
        """Test users can't read other users' audit entries"""
        entry = create_audit_log(user=self.admin, action='create', model_name='Project', object_id=3)
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get(f'/api/v1/audit-logs/{entry.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_audit_log_skipped_without_required_fields(self):
        """Test incomplete audit entries are skipped, not raised"""
        self.assertIsNone(create_audit_log(user=self.admin, action='create', model_name='Project'))


class HelperTests(TestCase):
    """Test log and cache helpers"""

    def test_append_log_keeps_last_entries(self):
        """Test append_log keeps only the newest lines"""
        entries = []
        for i in range(55):
            entries = append_log(entries, f'line {i}')
        self.assertEqual(len(entries), 50)
        self.assertTrue(entries[-1].endswith('line 54'))
        self.assertTrue(entries[0].endswith('line 5'))

    def test_cache_key_depends_on_arguments(self):
        """Test cache keys differ by argument"""
        self.assertEqual(make_cache_key('x', 1), make_cache_key('x', 1))
        self.assertNotEqual(make_cache_key('x', 1), make_cache_key('x', 2))

    def test_cached_query_reuses_result(self):
        """Test a cached function is only evaluated once per key"""
        calls = []

        @cached_query(cache_ttl=30, key_prefix=f'test_{TestDataFactory.random_string(6)}')
        def compute(value):
            calls.append(value)
            return {'value': value}

        self.assertEqual(compute(4), {'value': 4})
        self.assertEqual(compute(4), {'value': 4})
        self.assertEqual(calls, [4])

    def test_create_role_groups_command(self):
        """Test the command creates one group per role"""
        call_command('create_role_groups', verbosity=0)
        self.assertEqual(set(Group.objects.filter(name__in=APP_ROLES).values_list('name', flat=True)),
                         set(APP_ROLES))
