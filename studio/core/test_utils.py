"""
Test utilities and factories for creating test data
"""
import io
import random
import string

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from studio.core.roles import get_role_group
from studio.catalog.models import Brand, Product, ProductImage, ClayImage
from studio.pose_library.models import BrandPoseLibrary, LibraryPose
from studio.expression_map.models import Project, BrandRef, ExpressionRecipe, DigitalModel, DigitalModelRef
from studio.face_creator.models import FaceScrapeRun, FaceScrapeImage
from studio.jobs.models import Job

User = get_user_model()


def png_bytes(width=40, height=40, color=(200, 120, 90)):
    """Encoded PNG of a solid color"""
    buffer = io.BytesIO()
    Image.new('RGB', (width, height), color).save(buffer, format='PNG')
    return buffer.getvalue()


def uploaded_png(name='image.png', width=40, height=40):
    return SimpleUploadedFile(name, png_bytes(width, height), content_type='image/png')


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', roles=None, is_superuser=False):
        """Create a test user holding the given roles"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_superuser=is_superuser
        )
        for role in roles or []:
            user.groups.add(get_role_group(role))
        return user

    @staticmethod
    def create_brand(name=None):
        if not name:
            name = f'Brand_{TestDataFactory.random_string(6)}'
        return Brand.objects.create(name=name, website_url='https://brand.example.com')

    @staticmethod
    def create_product(brand=None, name=None, gender='women', product_type='tops'):
        if not brand:
            brand = TestDataFactory.create_brand()
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        return Product.objects.create(
            brand=brand,
            name=name,
            sku=f'SKU_{TestDataFactory.random_string(8)}',
            gender=gender,
            product_type=product_type
        )

    @staticmethod
    def create_clay_image(product=None, slot='FRONT_FULL', sort_index=0):
        """Create a product image with one clay render"""
        if not product:
            product = TestDataFactory.create_product()
        product_image = ProductImage.objects.create(
            product=product,
            slot=slot,
            image_url=f'https://cdn.example.com/{TestDataFactory.random_string(8)}.jpg',
            sort_index=sort_index
        )
        return ClayImage.objects.create(
            product_image=product_image,
            stored_url=f'/media/clay/{TestDataFactory.random_string(8)}.png'
        )

    @staticmethod
    def create_library(brand=None, version=1, status=BrandPoseLibrary.STATUS_DRAFT, min_poses_per_slot=1):
        if not brand:
            brand = TestDataFactory.create_brand()
        return BrandPoseLibrary.objects.create(
            brand=brand,
            version=version,
            status=status,
            config_json={'min_poses_per_slot': min_poses_per_slot}
        )

    @staticmethod
    def create_pose(library, clay_image=None, shot_type='FRONT_FULL', gender='women',
                    curation_status=LibraryPose.CURATION_PENDING):
        if not clay_image:
            clay_image = TestDataFactory.create_clay_image(
                product=TestDataFactory.create_product(brand=library.brand, gender=gender),
                slot=shot_type
            )
        return LibraryPose.objects.create(
            library=library,
            clay_image=clay_image,
            slot=shot_type or '',
            shot_type=shot_type,
            gender=gender,
            curation_status=curation_status
        )

    @staticmethod
    def create_project(name=None, master_prompt='Editorial portrait of the same model.', user=None):
        if not name:
            name = f'Project_{TestDataFactory.random_string(6)}'
        return Project.objects.create(name=name, master_prompt=master_prompt, created_by=user)

    @staticmethod
    def create_brand_ref(project, image_url=None):
        return BrandRef.objects.create(
            project=project,
            image_url=image_url or f'https://cdn.example.com/ref-{TestDataFactory.random_string(6)}.jpg',
            file_name='ref.jpg'
        )

    @staticmethod
    def create_recipe(project, name=None, delta_line='Chin down 5 degrees, soft gaze past lens.'):
        if not name:
            name = f'Recipe_{TestDataFactory.random_string(6)}'
        return ExpressionRecipe.objects.create(
            project=project,
            name=name,
            recipe_json={'name': name, 'intensity': 1, 'deltaLine': delta_line},
            delta_line=delta_line
        )

    @staticmethod
    def create_digital_model(project, name=None, with_ref=True):
        if not name:
            name = f'Model_{TestDataFactory.random_string(6)}'
        model = DigitalModel.objects.create(project=project, name=name)
        if with_ref:
            DigitalModelRef.objects.create(
                digital_model=model,
                image_url=f'https://cdn.example.com/model-{TestDataFactory.random_string(6)}.jpg',
                file_name='model.jpg'
            )
        return model

    @staticmethod
    def create_scrape_run(brand_name=None, start_url='https://shop.example.com/women/',
                          status=FaceScrapeRun.STATUS_COMPLETED, **kwargs):
        if not brand_name:
            brand_name = f'Brand_{TestDataFactory.random_string(6)}'
        return FaceScrapeRun.objects.create(
            brand_name=brand_name,
            start_url=start_url,
            status=status,
            **kwargs
        )

    @staticmethod
    def create_scrape_image(run, gender='women', stored_url='', image_index=0):
        source_url = f'https://cdn.example.com/{TestDataFactory.random_string(10)}.jpg'
        return FaceScrapeImage.objects.create(
            run=run,
            source_url=source_url,
            stored_url=stored_url,
            product_url='https://shop.example.com/women/product/dress-1',
            product_title='Linen Dress',
            image_index=image_index,
            image_hash=TestDataFactory.random_string(8).lower(),
            gender=gender
        )

    @staticmethod
    def create_job(job_type=Job.TYPE_RETOUCH_FINAL, status=Job.STATUS_OPEN, assigned_user=None,
                   project_name=None, created_by=None):
        if not project_name:
            project_name = f'Campaign_{TestDataFactory.random_string(6)}'
        return Job.objects.create(
            project_name=project_name,
            type=job_type,
            status=status,
            assigned_user=assigned_user,
            created_by=created_by,
            instructions='Match the reference lighting.'
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
