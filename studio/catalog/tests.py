"""
Test suite for the catalog module
Tests: brands, products, product images and clay renders
"""
from django.test import TestCase
from rest_framework import status
from studio.catalog.models import Brand, ClayImage
from studio.core.roles import INTERNAL, FREELANCER
from studio.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class BrandModelTests(TestCase):

    def test_slug_generated_from_name(self):
        """Test a brand gets a slug on first save"""
        brand = Brand.objects.create(name='Maison Noir Studio')
        self.assertEqual(brand.slug, 'maison-noir-studio')


class CatalogAPITests(TestCase):
    """Test catalog endpoints"""

    def setUp(self):
        self.staff = TestDataFactory.create_user(roles=[INTERNAL])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff)

    def test_create_brand(self):
        """Test staff can create a brand"""
        response = self.client.post('/api/v1/brands/', {'name': 'Atelier Nord'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'atelier-nord')
        self.assertEqual(response.data['product_count'], 0)

    def test_duplicate_brand_rejected(self):
        """Test brand names are unique"""
        TestDataFactory.create_brand(name='Atelier Nord')
        response = self.client.post('/api/v1/brands/', {'name': 'Atelier Nord'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_freelancer_can_read_but_not_write(self):
        """Test non-staff users get read-only access"""
        TestDataFactory.create_brand()
        self.client.authenticate_user(TestDataFactory.create_user(roles=[FREELANCER]))
        self.assertEqual(self.client.get('/api/v1/brands/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/brands/', {'name': 'Blocked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_brand_search(self):
        """Test brand search by name"""
        TestDataFactory.create_brand(name='Northwind')
        TestDataFactory.create_brand(name='Southgate')
        response = self.client.get('/api/v1/brands/', {'search': 'north'})
        self.assertEqual([b['name'] for b in response.data], ['Northwind'])

    def test_product_filters(self):
        """Test products filter by brand and gender"""
        brand = TestDataFactory.create_brand()
        women = TestDataFactory.create_product(brand=brand, gender='women')
        TestDataFactory.create_product(brand=brand, gender='men')
        TestDataFactory.create_product(gender='women')
        response = self.client.get('/api/v1/products/', {'brand': brand.id, 'gender': 'women'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['id'] for p in response.data], [women.id])

    def test_invalid_gender_filter(self):
        """Test unknown filter values return 400"""
        response = self.client.get('/api/v1/products/', {'gender': 'kids'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_add_product_image(self):
        """Test attaching an image to a product"""
        product = TestDataFactory.create_product()
        response = self.client.post(f'/api/v1/products/{product.id}/images/', {
            'slot': 'A', 'image_url': 'https://cdn.example.com/a.jpg', 'crop_target': 'top'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['product'], product.id)
        self.assertEqual(product.images.count(), 1)

    def test_brand_clay_images(self):
        """Test listing and adding clay renders for a brand"""
        brand = TestDataFactory.create_brand()
        clay = TestDataFactory.create_clay_image(product=TestDataFactory.create_product(brand=brand))
        TestDataFactory.create_clay_image()  # other brand

        response = self.client.get(f'/api/v1/brands/{brand.id}/clay-images/')
        self.assertEqual([c['id'] for c in response.data], [clay.id])

        response = self.client.post(f'/api/v1/brands/{brand.id}/clay-images/', {
            'product_image': clay.product_image_id, 'stored_url': '/media/clay/new.png'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(ClayImage.objects.filter(product_image=clay.product_image).count(), 2)

    def test_clay_image_for_other_brand_rejected(self):
        """Test a product image must belong to the brand"""
        brand = TestDataFactory.create_brand()
        other = TestDataFactory.create_clay_image()
        response = self.client.post(f'/api/v1/brands/{brand.id}/clay-images/', {
            'product_image': other.product_image_id, 'stored_url': '/media/clay/x.png'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
