"""
Test suite for pose libraries
Tests: versioning, coverage, lifecycle and locking, bulk curation and multi-select
"""
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from studio.core.models import AuditLog
from studio.core.roles import INTERNAL, FREELANCER
from studio.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from studio.pose_library import selection, services
from studio.pose_library.models import BrandPoseLibrary, LibraryPose, DEFAULT_MIN_POSES_PER_SLOT
from studio.pose_library.shot_types import ALL_SHOT_TYPES, GENDERS, normalize_shot_type


def fill_library(library, status=LibraryPose.CURATION_INCLUDED):
    """One pose per gender x shot type slot"""
    return [
        TestDataFactory.create_pose(library, shot_type=shot_type, gender=gender, curation_status=status)
        for gender in GENDERS
        for shot_type in ALL_SHOT_TYPES
    ]


class ShotTypeTests(TestCase):

    def test_normalize_legacy_letters(self):
        """Test legacy slot letters map to shot types"""
        self.assertEqual(normalize_shot_type('A'), 'FRONT_FULL')
        self.assertEqual(normalize_shot_type('d'), 'DETAIL')
        self.assertEqual(normalize_shot_type('back_full'), 'BACK_FULL')
        self.assertIsNone(normalize_shot_type('Z'))
        self.assertIsNone(normalize_shot_type(''))


class SelectionTests(TestCase):
    """Test multi-select gestures"""

    def test_click_replaces_selection(self):
        self.assertEqual(selection.apply_selection([1, 2, 3], {1, 2}, 'click', target=3), {3})

    def test_toggle(self):
        self.assertEqual(selection.toggle({1, 2}, 2), {1})
        self.assertEqual(selection.toggle({1}, 2), {1, 2})

    def test_range_both_directions(self):
        """Test shift-click range works forwards and backwards"""
        visible = [10, 20, 30, 40, 50]
        self.assertEqual(selection.range_select(visible, set(), 20, 40), {20, 30, 40})
        self.assertEqual(selection.range_select(visible, {10}, 50, 30), {10, 30, 40, 50})

    def test_range_without_anchor_selects_target(self):
        self.assertEqual(selection.range_select([1, 2, 3], {1}, None, 3), {3})

    def test_range_with_hidden_anchor_keeps_selection(self):
        self.assertEqual(selection.range_select([1, 2, 3], {1}, 99, 2), {1})

    def test_all_and_clear(self):
        self.assertEqual(selection.apply_selection([1, 2], {5}, 'all'), {1, 2, 5})
        self.assertEqual(selection.apply_selection([1, 2], {1}, 'clear'), set())

    def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            selection.apply_selection([1], set(), 'lasso', target=1)


class LibraryServiceTests(TestCase):
    """Test library lifecycle services"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(roles=[INTERNAL])
        self.brand = TestDataFactory.create_brand()

    def test_create_library_versions_and_seeds(self):
        """Test versions increment and clay images seed pending poses"""
        product = TestDataFactory.create_product(brand=self.brand, gender='men', product_type='trousers')
        TestDataFactory.create_clay_image(product=product, slot='B')
        TestDataFactory.create_clay_image(product=product, slot='unknown')

        first, added = services.create_library(self.brand, user=self.user)
        second, _ = services.create_library(self.brand, user=self.user)
        self.assertEqual((first.version, second.version), (1, 2))
        self.assertEqual(added, 2)

        poses = list(first.poses.order_by('id'))
        self.assertEqual(poses[0].shot_type, 'FRONT_CROPPED')
        self.assertEqual(poses[0].gender, 'men')
        self.assertEqual(poses[0].product_type, 'trousers')
        self.assertIsNone(poses[1].shot_type)
        self.assertTrue(all(p.curation_status == LibraryPose.CURATION_PENDING for p in poses))

    def test_initialize_skips_existing(self):
        """Test re-initializing only adds new clay images"""
        product = TestDataFactory.create_product(brand=self.brand)
        TestDataFactory.create_clay_image(product=product)
        library, _ = services.create_library(self.brand)
        self.assertEqual(services.initialize_library_poses(library), 0)
        TestDataFactory.create_clay_image(product=product)
        self.assertEqual(services.initialize_library_poses(library), 1)

    def test_default_library_prefers_draft(self):
        """Test the draft wins over newer locked versions"""
        draft = TestDataFactory.create_library(brand=self.brand, version=1)
        TestDataFactory.create_library(brand=self.brand, version=2, status=BrandPoseLibrary.STATUS_LOCKED)
        self.assertEqual(services.get_default_library(self.brand), draft)

    def test_min_poses_default(self):
        """Test invalid config falls back to the default minimum"""
        library = TestDataFactory.create_library(brand=self.brand)
        library.config_json = {'min_poses_per_slot': 'many'}
        self.assertEqual(library.min_poses_per_slot, DEFAULT_MIN_POSES_PER_SLOT)

    def test_coverage_counts(self):
        """Test coverage counts per gender x shot type"""
        library = TestDataFactory.create_library(brand=self.brand, min_poses_per_slot=2)
        TestDataFactory.create_pose(library, shot_type='FRONT_FULL', gender='women',
                                    curation_status=LibraryPose.CURATION_INCLUDED)
        TestDataFactory.create_pose(library, shot_type='FRONT_FULL', gender='women',
                                    curation_status=LibraryPose.CURATION_EXCLUDED)
        coverage = services.compute_coverage(library)
        self.assertEqual(coverage['total_slots'], 8)
        slot = next(s for s in coverage['slots'] if s['gender'] == 'women' and s['shot_type'] == 'FRONT_FULL')
        self.assertEqual((slot['total'], slot['included'], slot['excluded']), (2, 1, 1))
        self.assertFalse(slot['is_ready'])
        self.assertFalse(coverage['can_submit_for_review'])

    def test_coverage_refreshes_after_curation(self):
        """Test cached coverage is invalidated by curation"""
        library = TestDataFactory.create_library(brand=self.brand)
        pose = TestDataFactory.create_pose(library, shot_type='DETAIL', gender='men')
        self.assertEqual(services.compute_coverage(library)['total_included'], 0)
        services.bulk_update_status(library, [pose.id], LibraryPose.CURATION_INCLUDED, user=self.user)
        self.assertEqual(services.compute_coverage(library)['total_included'], 1)

    def test_review_requires_full_coverage(self):
        """Test a library can't go to review with empty slots"""
        library = TestDataFactory.create_library(brand=self.brand)
        with self.assertRaises(services.InvalidTransitionError):
            services.update_library_status(library, BrandPoseLibrary.STATUS_REVIEW)

    def test_full_lifecycle_and_lock(self):
        """Test draft -> review -> locked, then modifications are refused"""
        library = TestDataFactory.create_library(brand=self.brand)
        poses = fill_library(library)
        services.update_library_status(library, BrandPoseLibrary.STATUS_REVIEW)
        services.update_library_status(library, BrandPoseLibrary.STATUS_LOCKED, user=self.user)
        self.assertEqual(library.locked_by, self.user)
        self.assertIsNotNone(library.locked_at)

        with self.assertRaises(services.LibraryLockedError):
            services.bulk_update_status(library, [poses[0].id], LibraryPose.CURATION_EXCLUDED)
        with self.assertRaises(services.InvalidTransitionError):
            services.update_library_status(library, BrandPoseLibrary.STATUS_DRAFT)

    def test_draft_cannot_lock_directly(self):
        library = TestDataFactory.create_library(brand=self.brand)
        with self.assertRaises(services.InvalidTransitionError):
            services.update_library_status(library, BrandPoseLibrary.STATUS_LOCKED)

    def test_bulk_move_and_crop_target(self):
        """Test moving poses between shot types and setting crop targets"""
        library = TestDataFactory.create_library(brand=self.brand)
        pose = TestDataFactory.create_pose(library, shot_type='FRONT_FULL')
        self.assertEqual(services.bulk_move(library, [pose.id], 'DETAIL'), 1)
        pose.refresh_from_db()
        self.assertEqual((pose.slot, pose.shot_type), ('DETAIL', 'DETAIL'))

        self.assertEqual(services.bulk_set_crop_target(library, [pose.id], 'trousers'), 1)
        pose.clay_image.product_image.refresh_from_db()
        self.assertEqual(pose.clay_image.product_image.crop_target, 'trousers')

        with self.assertRaises(ValueError):
            services.bulk_move(library, [pose.id], 'SIDE')

    def test_bulk_delete(self):
        library = TestDataFactory.create_library(brand=self.brand)
        poses = [TestDataFactory.create_pose(library) for _ in range(3)]
        self.assertEqual(services.bulk_delete(library, [poses[0].id, poses[1].id]), 2)
        self.assertEqual(library.poses.count(), 1)


class LibraryAPITests(TestCase):
    """Test pose library endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(roles=[INTERNAL])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.brand = TestDataFactory.create_brand()

    def test_staff_only(self):
        """Test freelancers can't reach pose libraries"""
        self.client.authenticate_user(TestDataFactory.create_user(roles=[FREELANCER]))
        response = self.client.get(f'/api/v1/brands/{self.brand.id}/libraries/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_and_list(self):
        """Test creating a version and listing with the default library"""
        TestDataFactory.create_clay_image(product=TestDataFactory.create_product(brand=self.brand))
        response = self.client.post(f'/api/v1/brands/{self.brand.id}/libraries/', {'min_poses_per_slot': 5},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['version'], 1)
        self.assertEqual(response.data['poses_added'], 1)
        self.assertTrue(AuditLog.objects.filter(action='library_create').exists())

        response = self.client.get(f'/api/v1/brands/{self.brand.id}/libraries/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['libraries']), 1)
        self.assertEqual(response.data['default_library_id'], response.data['libraries'][0]['id'])

    def test_status_transition_rejected(self):
        """Test submitting an incomplete library for review returns 400"""
        library = TestDataFactory.create_library(brand=self.brand)
        response = self.client.post(f'/api/v1/libraries/{library.id}/status/', {'status': 'review'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('slots', response.data['error'])

    def test_lock_writes_audit(self):
        """Test locking records a library_lock audit entry"""
        library = TestDataFactory.create_library(brand=self.brand, status=BrandPoseLibrary.STATUS_REVIEW)
        response = self.client.post(f'/api/v1/libraries/{library.id}/status/', {'status': 'locked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'locked')
        self.assertTrue(AuditLog.objects.filter(action='library_lock', object_id=str(library.id)).exists())

    def test_locked_library_rejects_edits(self):
        """Test bulk actions, edits and deletes on a locked library return 400"""
        library = TestDataFactory.create_library(brand=self.brand, status=BrandPoseLibrary.STATUS_LOCKED)
        pose = TestDataFactory.create_pose(library)
        response = self.client.post(f'/api/v1/libraries/{library.id}/poses/bulk/', {
            'action': 'status', 'pose_ids': [pose.id], 'curation_status': 'included'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.client.delete(f'/api/v1/libraries/{library.id}/').status_code,
                         status.HTTP_400_BAD_REQUEST)
        pose.refresh_from_db()
        self.assertEqual(pose.curation_status, LibraryPose.CURATION_PENDING)

    def test_bulk_status(self):
        """Test bulk curation updates poses and coverage"""
        library = TestDataFactory.create_library(brand=self.brand)
        poses = [TestDataFactory.create_pose(library, shot_type='FRONT_FULL') for _ in range(2)]
        response = self.client.post(f'/api/v1/libraries/{library.id}/poses/bulk/', {
            'action': 'status', 'pose_ids': [p.id for p in poses], 'curation_status': 'included'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['affected'], 2)

        coverage = self.client.get(f'/api/v1/libraries/{library.id}/coverage/').data
        self.assertEqual(coverage['total_included'], 2)

    def test_bulk_move_requires_shot_type(self):
        library = TestDataFactory.create_library(brand=self.brand)
        pose = TestDataFactory.create_pose(library)
        response = self.client.post(f'/api/v1/libraries/{library.id}/poses/bulk/', {
            'action': 'move', 'pose_ids': [pose.id]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_pose_list_filters(self):
        """Test pose list narrows by shot type, gender and status; 'all' disables a filter"""
        library = TestDataFactory.create_library(brand=self.brand)
        detail = TestDataFactory.create_pose(library, shot_type='DETAIL', gender='men')
        TestDataFactory.create_pose(library, shot_type='FRONT_FULL', gender='women')
        response = self.client.get(f'/api/v1/libraries/{library.id}/poses/', {'shot_type': 'DETAIL'})
        self.assertEqual([p['id'] for p in response.data], [detail.id])
        response = self.client.get(f'/api/v1/libraries/{library.id}/poses/', {'shot_type': 'all'})
        self.assertEqual(len(response.data), 2)

    def test_range_select_endpoint(self):
        """Test a range selection over the filtered list"""
        library = TestDataFactory.create_library(brand=self.brand)
        poses = [TestDataFactory.create_pose(library, shot_type='FRONT_FULL', gender='women') for _ in range(4)]
        response = self.client.post(f'/api/v1/libraries/{library.id}/poses/select/', {
            'mode': 'range', 'anchor': poses[3].id, 'target': poses[1].id, 'selected': [],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['selected'], [poses[1].id, poses[2].id, poses[3].id])
        self.assertEqual(response.data['count'], 3)

    def test_select_drops_hidden_ids(self):
        """Test ids filtered out of view are dropped from the selection"""
        library = TestDataFactory.create_library(brand=self.brand)
        hidden = TestDataFactory.create_pose(library, shot_type='DETAIL')
        shown = TestDataFactory.create_pose(library, shot_type='FRONT_FULL')
        response = self.client.post(f'/api/v1/libraries/{library.id}/poses/select/', {
            'mode': 'all', 'selected': [hidden.id], 'shot_type': 'FRONT_FULL',
        }, format='json')
        self.assertEqual(response.data['selected'], [shown.id])

    def test_select_requires_target(self):
        library = TestDataFactory.create_library(brand=self.brand)
        response = self.client.post(f'/api/v1/libraries/{library.id}/poses/select/', {'mode': 'click'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
