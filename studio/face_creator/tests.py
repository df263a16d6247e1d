"""
Test suite for the face creator module
Tests: site scraping helpers, the scrape runner, identity clustering, crops and dataset export
"""
import io
import json
import shutil
import tempfile
from unittest import mock

import requests
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.test import TestCase, SimpleTestCase, override_settings
from PIL import Image
from rest_framework import status
from studio.core.models import AuditLog
from studio.core.roles import INTERNAL, FREELANCER
from studio.core.test_utils import TestDataFactory, AuthenticatedAPIClient, png_bytes
from studio.face_creator import crop, runner, scraping, services
from studio.face_creator.models import FaceScrapeRun, FaceScrapeImage, FaceIdentity, FaceIdentityImage, FaceCrop

MEDIA_ROOT = tempfile.mkdtemp(prefix='studio-face-tests-')

SHOP = 'https://shop.example.com'
CDN = 'https://cdn.shop.example.com/media'

PAGES = {
    f'{SHOP}/sitemap.xml': (
        f'<urlset><url><loc>{SHOP}/women/product/silk-dress</loc></url>'
        f'<url><loc>{SHOP}/women/product/linen-top</loc></url></urlset>'
    ),
    f'{SHOP}/women/': f'<a href="/women/product/silk-dress">Silk</a><a href="/cart">Cart</a>',
    f'{SHOP}/women/product/silk-dress': (
        f'<title>Silk Dress</title><img src="{CDN}/silk-1.jpg"><img src="{CDN}/shared.jpg">'
    ),
    f'{SHOP}/women/product/linen-top': f'<img src="{CDN}/linen-1.jpg"><img src="{CDN}/shared.jpg">',
}


def fake_fetch(url, max_retries=None, retry_delay=None, sleep=None, binary=False):
    if binary:
        return png_bytes()
    return PAGES.get(url)


def link_for(image):
    return FaceIdentityImage.objects.get(scrape_image=image)


class ScrapingHelperTests(SimpleTestCase):
    """Test the pure URL and HTML helpers"""

    def test_classify_gender(self):
        self.assertEqual(scraping.classify_gender_from_url(f'{SHOP}/women/dress'), 'women')
        self.assertEqual(scraping.classify_gender_from_url(f'{SHOP}/men/coat'), 'men')
        self.assertEqual(scraping.classify_gender_from_url(f'{SHOP}/p?gender=female'), 'women')
        self.assertEqual(scraping.classify_gender_from_url(f'{SHOP}/kids/tee'), 'unknown')

    def test_filter_product_urls(self):
        """Test only same-origin product pages survive"""
        links = [
            f'{SHOP}/women/product/silk-dress',
            f'{SHOP}/cart',
            'https://other.example.com/product/x',
            f'{SHOP}/men/product/wool-coat',
        ]
        self.assertEqual(
            scraping.filter_product_urls(links, f'{SHOP}/women/', 10),
            [f'{SHOP}/women/product/silk-dress', f'{SHOP}/men/product/wool-coat'],
        )

    def test_filter_prefers_start_gender_when_capped(self):
        """Test a gendered start URL keeps same-gender products when over the limit"""
        links = [
            f'{SHOP}/men/product/coat',
            f'{SHOP}/women/product/a',
            f'{SHOP}/women/product/b',
            f'{SHOP}/women/product/c',
        ]
        self.assertEqual(
            scraping.filter_product_urls(links, f'{SHOP}/women/', 2),
            [f'{SHOP}/women/product/a', f'{SHOP}/women/product/b'],
        )

    def test_filter_falls_back_to_slugs(self):
        links = [f'{SHOP}/women/linen-dress', f'{SHOP}/about']
        self.assertEqual(scraping.filter_product_urls(links, f'{SHOP}/', 10), [f'{SHOP}/women/linen-dress'])

    def test_extract_image_urls(self):
        """Test image sources are normalized, deduplicated and filtered"""
        html = (
            '<img data-src="https://cdn.example.com/media/p1.jpg?w=800">'
            '<img src="/images/logo.png">'
            '<img src="//cdn.example.com/media/p2.webp">'
        )
        page = f'{SHOP}/product/abc'
        self.assertEqual(scraping.extract_image_urls(html, page, 4),
                         ['https://cdn.example.com/media/p1.jpg', 'https://cdn.example.com/media/p2.webp'])
        self.assertEqual(scraping.extract_image_urls(html, page, 1), ['https://cdn.example.com/media/p1.jpg'])

    def test_extract_links(self):
        html = '<a href="/women/product/a">A</a><a href="https://other.com/x">X</a><a href="/women/product/a/">A</a>'
        self.assertEqual(scraping.extract_links(html, f'{SHOP}/women/'), [f'{SHOP}/women/product/a'])

    def test_extract_sitemap_urls(self):
        xml = '<urlset><url><loc>https://x.com/a</loc></url><url><loc> https://x.com/b </loc></url></urlset>'
        self.assertEqual(scraping.extract_sitemap_urls(xml), ['https://x.com/a', 'https://x.com/b'])

    def test_extract_title(self):
        """Test og:title wins, and tags inside headings are stripped"""
        html = '<title>Shop</title><meta property="og:title" content="Linen Dress"><h1>Other</h1>'
        self.assertEqual(scraping.extract_title(html), 'Linen Dress')
        self.assertEqual(scraping.extract_title('<h1><span>Silk</span>  Shirt</h1>'), 'Silk Shirt')
        self.assertEqual(scraping.extract_title('<p>none</p>'), '')

    def test_java_string_hash(self):
        self.assertEqual(scraping.java_string_hash('abc'), '17862')
        self.assertEqual(scraping.java_string_hash(''), '0')
        self.assertEqual(scraping.java_string_hash('polygenelubricants'), '-80000000')

    @mock.patch('studio.face_creator.scraping.requests.get')
    def test_fetch_with_retry(self, get):
        """Test errors and non-2xx responses are retried with a fixed delay"""
        get.side_effect = [
            requests.exceptions.ConnectionError('boom'),
            mock.Mock(ok=False, status_code=500),
            mock.Mock(ok=True, text='<html></html>'),
        ]
        sleeps = []
        self.assertEqual(scraping.fetch_with_retry(SHOP, max_retries=3, retry_delay=2, sleep=sleeps.append),
                         '<html></html>')
        self.assertEqual(sleeps, [2.0, 2.0])

    @mock.patch('studio.face_creator.scraping.requests.get')
    def test_fetch_gives_up(self, get):
        get.return_value = mock.Mock(ok=False, status_code=404)
        sleeps = []
        self.assertIsNone(scraping.fetch_with_retry(SHOP, max_retries=2, retry_delay=1, sleep=sleeps.append))
        self.assertEqual(get.call_count, 2)
        self.assertEqual(sleeps, [1.0])

    @mock.patch('studio.face_creator.scraping.requests.get')
    def test_fetch_binary(self, get):
        get.return_value = mock.Mock(ok=True, content=b'\x89PNG')
        self.assertEqual(scraping.fetch_with_retry(SHOP, binary=True, sleep=lambda s: None), b'\x89PNG')


class CropGeometryTests(SimpleTestCase):
    """Test crop placement, moves and resizes"""

    def test_default_crop_without_face(self):
        self.assertEqual(crop.head_and_shoulders_crop(None), {'x': 15.0, 'y': 5, 'width': 70, 'height': 70.0})
        self.assertEqual(crop.head_and_shoulders_crop(None, '4:5')['height'], 87.5)

    def test_crop_around_face(self):
        """Test the crop adds headroom and shoulders around the face"""
        box = crop.head_and_shoulders_crop({'x': 40, 'y': 10, 'width': 20, 'height': 20})
        self.assertAlmostEqual(box['x'], 23.5)
        self.assertAlmostEqual(box['y'], 7)
        self.assertAlmostEqual(box['width'], 53)
        self.assertAlmostEqual(box['height'], 53)

    def test_crop_stays_inside_image(self):
        box = crop.head_and_shoulders_crop({'x': 80, 'y': 60, 'width': 20, 'height': 30})
        self.assertLessEqual(box['x'] + box['width'], 100 + 1e-9)
        self.assertLessEqual(box['y'] + box['height'], 100 + 1e-9)

    def test_unsupported_aspect_ratio(self):
        with self.assertRaises(ValueError):
            crop.head_and_shoulders_crop(None, '16:9')

    def test_best_face_detection(self):
        detections = [
            {'box': {'x': 0, 'y': 0, 'width': 10, 'height': 10}, 'confidence': 0.99},
            {'box': {'x': 30, 'y': 20, 'width': 30, 'height': 30}, 'confidence': 0.8},
        ]
        self.assertEqual(crop.best_face_detection(detections)['x'], 30)
        self.assertIsNone(crop.best_face_detection([]))

    def test_move_is_clamped(self):
        moved = crop.move_crop({'x': 10, 'y': 10, 'width': 50, 'height': 50}, 60, -20)
        self.assertEqual((moved['x'], moved['y']), (50, 0))

    def test_resize_corners(self):
        """Test resizing keeps the opposite corner fixed"""
        start = {'x': 10, 'y': 10, 'width': 40, 'height': 40}
        self.assertEqual(crop.resize_crop(start, 'se', 10), {'x': 10, 'y': 10, 'width': 50, 'height': 50})
        self.assertEqual(crop.resize_crop(start, 'nw', 10), {'x': 20, 'y': 20, 'width': 30, 'height': 30})
        self.assertEqual(crop.resize_crop(start, 'se', 100), {'x': 10, 'y': 10, 'width': 90, 'height': 90})
        with self.assertRaises(ValueError):
            crop.resize_crop(start, 'north', 5)

    def test_render_crop(self):
        data = crop.render_crop(png_bytes(100, 80), {'x': 10, 'y': 25, 'width': 50, 'height': 50})
        with Image.open(io.BytesIO(data)) as img:
            self.assertEqual(img.size, (50, 40))


@override_settings(MEDIA_ROOT=MEDIA_ROOT, BACKGROUND_TASKS_ASYNC=False)
class FaceTestCase(TestCase):

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(MEDIA_ROOT, ignore_errors=True)
        super().tearDownClass()

    def setUp(self):
        self.run = TestDataFactory.create_scrape_run()
        self.images = [TestDataFactory.create_scrape_image(self.run, image_index=i) for i in range(4)]


class IdentityServiceTests(FaceTestCase):
    """Test clustering operations keep counts and representatives consistent"""

    def test_create_identity(self):
        """Test the first selected image becomes the representative"""
        first, second = self.images[1], self.images[0]
        identity = services.create_identity(self.run, [first.id, second.id])
        self.assertEqual(identity.name, 'Model 1')
        self.assertEqual(identity.representative_image_id, first.id)
        self.assertEqual(identity.image_count, 2)
        self.assertEqual(identity.gender, 'women')

    def test_next_model_name(self):
        FaceIdentity.objects.create(run=self.run, name='Model 7')
        FaceIdentity.objects.create(run=self.run, name='Custom')
        self.assertEqual(services.next_model_name(self.run), 'Model 8')
        other_run = TestDataFactory.create_scrape_run()
        self.assertEqual(services.next_model_name(other_run), 'Model 1')

    def test_create_identity_takes_images_from_others(self):
        """Test taking another identity's representative gives it a new one"""
        a = services.create_identity(self.run, [self.images[0].id, self.images[1].id])
        b = services.create_identity(self.run, [self.images[0].id])
        a.refresh_from_db()
        self.assertEqual(a.image_count, 1)
        self.assertEqual(b.image_count, 1)
        self.assertEqual(link_for(self.images[0]).identity_id, b.id)
        self.assertEqual(a.representative_image_id, self.images[1].id)

    def test_move_images(self):
        """Test moving the representative picks a new one for the source"""
        a = services.create_identity(self.run, [img.id for img in self.images[:3]])
        b = services.create_identity(self.run, [self.images[3].id])
        moved = services.move_images([link_for(self.images[0]).id], b)
        self.assertEqual(moved, 1)
        a.refresh_from_db()
        b.refresh_from_db()
        self.assertEqual(a.image_count, 2)
        self.assertEqual(a.representative_image_id, self.images[1].id)
        self.assertEqual(b.image_count, 2)
        self.assertEqual(services.move_images([link_for(self.images[0]).id], b), 0)

    def test_split_identity(self):
        a = services.create_identity(self.run, [img.id for img in self.images])
        new = services.split_identity(a, [link_for(self.images[2]).id, link_for(self.images[3]).id])
        a.refresh_from_db()
        self.assertEqual(new.name, 'Model 2')
        self.assertEqual(new.image_count, 2)
        self.assertEqual(new.representative_image_id, self.images[2].id)
        self.assertEqual(a.image_count, 2)
        self.assertIsNone(services.split_identity(a, [link_for(self.images[3]).id]))

    def test_merge_identities(self):
        a = services.create_identity(self.run, [self.images[0].id])
        b = services.create_identity(self.run, [self.images[1].id, self.images[2].id])
        c = services.create_identity(self.run, [self.images[3].id])
        moved = services.merge_identities(a, [b.id, c.id, a.id])
        a.refresh_from_db()
        self.assertEqual(moved, 3)
        self.assertEqual(a.image_count, 4)
        self.assertFalse(FaceIdentity.objects.filter(id__in=[b.id, c.id]).exists())

    def test_ignored_images_are_not_counted(self):
        a = services.create_identity(self.run, [img.id for img in self.images[:2]])
        services.set_ignored([link_for(self.images[0]).id])
        a.refresh_from_db()
        self.assertEqual(a.image_count, 1)
        services.set_ignored([link_for(self.images[0]).id], ignored=False)
        a.refresh_from_db()
        self.assertEqual(a.image_count, 2)

    def test_ignoring_representative_picks_another(self):
        a = services.create_identity(self.run, [img.id for img in self.images[:2]])
        services.set_ignored([link_for(self.images[0]).id])
        a.refresh_from_db()
        self.assertEqual(a.representative_image_id, self.images[1].id)
        services.set_ignored([link_for(self.images[1]).id])
        a.refresh_from_db()
        self.assertIsNone(a.representative_image_id)
        services.set_ignored([link_for(self.images[0]).id], ignored=False)
        a.refresh_from_db()
        self.assertEqual(a.representative_image_id, self.images[0].id)

    def test_delete_identities_removes_images(self):
        a = services.create_identity(self.run, [img.id for img in self.images[:2]])
        self.assertEqual(services.delete_identities([a]), (1, 2))
        self.assertEqual(FaceScrapeImage.objects.filter(run=self.run).count(), 2)

    def test_save_crop_renders_stored_image(self):
        """Test a crop of an image in storage writes the cropped file"""
        path = default_storage.save(f'face-scrapes/{self.run.id}/source.png', ContentFile(png_bytes(100, 100)))
        image = self.images[0]
        image.stored_url = default_storage.url(path)
        image.save()

        face_crop = services.save_crop(image, {'x': 10, 'y': 10, 'width': 50, 'height': 50})
        self.assertTrue(face_crop.cropped_stored_url)
        self.assertFalse(face_crop.is_auto)

        services.save_crop(image, {'x': 0, 'y': 0, 'width': 40, 'height': 40}, is_auto=True)
        self.assertEqual(FaceCrop.objects.filter(scrape_image=image).count(), 1)
        self.assertEqual(FaceCrop.objects.get(scrape_image=image).crop_width, 40)

    def test_save_crop_without_stored_file(self):
        face_crop = services.save_crop(self.images[0], {'x': 10, 'y': 10, 'width': 50, 'height': 50})
        self.assertEqual(face_crop.cropped_stored_url, '')

    def test_recropping_replaces_the_rendered_file(self):
        """Test repeated crops keep a single rendered file per image"""
        path = default_storage.save(f'face-scrapes/{self.run.id}/source.png', ContentFile(png_bytes(100, 100)))
        image = self.images[1]
        image.stored_url = default_storage.url(path)
        image.save()

        for x in (10, 20, 30, 40):
            face_crop = services.save_crop(image, {'x': x, 'y': 10, 'width': 50, 'height': 50})
        _, files = default_storage.listdir(f'face-crops/{self.run.id}')
        self.assertEqual(len(files), 1)
        self.assertEqual(face_crop.cropped_stored_url, default_storage.url(f'face-crops/{self.run.id}/{files[0]}'))


@mock.patch('studio.face_creator.scraping.fetch_with_retry', side_effect=fake_fetch)
class RunnerTests(FaceTestCase):
    """Test the scrape loop against canned pages"""

    def test_run_scrape(self, fetch):
        """Test mapping, product filtering and image collection"""
        run = TestDataFactory.create_scrape_run(start_url=f'{SHOP}/women/', status=FaceScrapeRun.STATUS_PENDING)
        runner.run_scrape(run.id, sleep=lambda s: None)
        run.refresh_from_db()

        self.assertEqual(run.status, FaceScrapeRun.STATUS_COMPLETED)
        self.assertEqual(run.product_urls, [f'{SHOP}/women/product/silk-dress', f'{SHOP}/women/product/linen-top'])
        self.assertEqual((run.progress, run.total), (2, 2))
        images = list(run.images.all())
        self.assertEqual([img.source_url for img in images],
                         [f'{CDN}/silk-1.jpg', f'{CDN}/shared.jpg', f'{CDN}/linen-1.jpg'])
        self.assertEqual(images[0].product_title, 'Silk Dress')
        self.assertEqual(images[0].gender, 'women')
        self.assertEqual(images[0].gender_source, 'url')
        self.assertTrue(images[0].stored_url.startswith('/media/face-scrapes/'))
        self.assertTrue(run.logs[-1].endswith('Completed with 3 images'))

    def test_resume_skips_mapping(self, fetch):
        """Test a resumed run continues from its progress with the saved product list"""
        run = TestDataFactory.create_scrape_run(
            start_url=f'{SHOP}/women/', status=FaceScrapeRun.STATUS_FAILED, progress=1, total=2,
            product_urls=[f'{SHOP}/women/product/silk-dress', f'{SHOP}/women/product/linen-top'],
        )
        self.assertEqual(runner.resume_run(run), 1)
        run.refresh_from_db()
        self.assertEqual(run.status, FaceScrapeRun.STATUS_COMPLETED)
        self.assertEqual([img.source_url for img in run.images.all()], [f'{CDN}/linen-1.jpg', f'{CDN}/shared.jpg'])
        self.assertNotIn(f'{SHOP}/sitemap.xml', [c.args[0] for c in fetch.call_args_list])

    def test_resume_completed_run(self, fetch):
        with self.assertRaisesMessage(runner.AlreadyCompletedError, 'Already completed'):
            runner.resume_run(self.run)


class FaceCreatorAPITests(FaceTestCase):
    """Test face creator endpoints"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user(roles=[INTERNAL])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_staff_only(self):
        self.client.authenticate_user(TestDataFactory.create_user(roles=[FREELANCER]))
        self.assertEqual(self.client.get('/api/v1/face-runs/').status_code, status.HTTP_403_FORBIDDEN)

    @mock.patch('studio.face_creator.scraping.fetch_with_retry', side_effect=fake_fetch)
    def test_start_run(self, fetch):
        """Test starting a scrape returns 202 and records an audit entry"""
        response = self.client.post('/api/v1/face-runs/', {
            'brand_name': 'Shop Example', 'start_url': f'{SHOP}/women/', 'images_per_product': 2
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_202_ACCEPTED)
        self.assertEqual(response.data['status'], FaceScrapeRun.STATUS_COMPLETED)
        self.assertEqual(response.data['image_count'], 3)
        self.assertTrue(AuditLog.objects.filter(action='scrape_start', object_id=str(response.data['id'])).exists())

    def test_start_run_validation(self):
        response = self.client.post('/api/v1/face-runs/', {'brand_name': 'X', 'start_url': 'not a url'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_resume_completed(self):
        response = self.client.post(f'/api/v1/face-runs/{self.run.id}/resume/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Already completed')

    def test_images_filters(self):
        services.create_identity(self.run, [self.images[0].id])
        self.images[1].gender = 'men'
        self.images[1].save()
        response = self.client.get(f'/api/v1/face-runs/{self.run.id}/images/', {'unassigned': '1'})
        self.assertEqual(len(response.data), 3)
        response = self.client.get(f'/api/v1/face-runs/{self.run.id}/images/', {'gender': 'men'})
        self.assertEqual([img['id'] for img in response.data], [self.images[1].id])
        self.assertIsNone(response.data[0]['crop'])
        self.assertIsNone(response.data[0]['identity_id'])

    def test_gender_update(self):
        response = self.client.post(f'/api/v1/face-runs/{self.run.id}/images/gender/', {
            'image_ids': [self.images[0].id, self.images[1].id], 'gender': 'men'
        }, format='json')
        self.assertEqual(response.data['updated'], 2)
        self.assertEqual(FaceScrapeImage.objects.get(pk=self.images[0].id).gender_source, 'manual')

    def test_create_identity(self):
        response = self.client.post(f'/api/v1/face-runs/{self.run.id}/identities/', {
            'image_ids': [self.images[0].id, self.images[1].id], 'name': 'Ava'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['image_count'], 2)
        self.assertEqual(response.data['representative_url'], self.images[0].source_url)

    def test_create_identity_foreign_images(self):
        """Test images of another run can't form an identity"""
        other = TestDataFactory.create_scrape_image(TestDataFactory.create_scrape_run())
        response = self.client.post(f'/api/v1/face-runs/{self.run.id}/identities/', {
            'image_ids': [other.id]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(FaceIdentity.objects.filter(run=self.run).exists())

    def test_move_requires_target(self):
        identity = services.create_identity(self.run, [self.images[0].id])
        response = self.client.post(f'/api/v1/face-identities/{identity.id}/move/', {
            'identity_image_ids': [link_for(self.images[0]).id]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_move_split_merge(self):
        """Test the clustering endpoints end to end"""
        a = services.create_identity(self.run, [img.id for img in self.images[:3]])
        b = services.create_identity(self.run, [self.images[3].id])

        response = self.client.post(f'/api/v1/face-identities/{a.id}/move/', {
            'identity_image_ids': [link_for(self.images[0]).id], 'target_identity_id': b.id
        }, format='json')
        self.assertEqual(response.data['moved'], 1)

        response = self.client.post(f'/api/v1/face-identities/{a.id}/split/', {
            'identity_image_ids': [link_for(self.images[2]).id], 'name': 'Split'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        split_id = response.data['id']

        response = self.client.post(f'/api/v1/face-identities/{b.id}/merge/', {
            'source_identity_ids': [a.id, split_id]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['image_count'], 4)
        self.assertTrue(AuditLog.objects.filter(action='identity_merge', object_id=str(b.id)).exists())

    def test_identity_detail_hides_ignored(self):
        identity = services.create_identity(self.run, [img.id for img in self.images[:2]])
        self.client.post(f'/api/v1/face-identities/{identity.id}/ignore/', {
            'identity_image_ids': [link_for(self.images[0]).id]
        }, format='json')
        response = self.client.get(f'/api/v1/face-identities/{identity.id}/')
        self.assertEqual(response.data['image_count'], 1)
        self.assertEqual(len(response.data['images']), 1)
        response = self.client.get(f'/api/v1/face-identities/{identity.id}/', {'include_ignored': 'true'})
        self.assertEqual(len(response.data['images']), 2)

    def test_set_view(self):
        identity = services.create_identity(self.run, [self.images[0].id])
        link = identity.identity_images.get()
        response = self.client.patch(f'/api/v1/face-identity-images/{link.id}/', {'view': 'side'}, format='json')
        self.assertEqual(response.data['view'], 'side')
        self.assertEqual(response.data['view_source'], 'manual')

    def test_bulk_delete(self):
        identity = services.create_identity(self.run, [img.id for img in self.images[:2]])
        response = self.client.post(f'/api/v1/face-runs/{self.run.id}/identities/delete/', {
            'identity_ids': [identity.id]
        }, format='json')
        self.assertEqual(response.data, {'deleted': 1, 'images_deleted': 2})

    def test_crop_lifecycle(self):
        """Test computing, reading and adjusting a crop"""
        url = f'/api/v1/face-images/{self.images[0].id}/crop/'
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.patch(url, {'action': 'move', 'dx': 5}, format='json').status_code,
                         status.HTTP_404_NOT_FOUND)

        response = self.client.post(url, {
            'detections': [{'box': {'x': 40, 'y': 10, 'width': 20, 'height': 20}, 'confidence': 0.9}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_auto'])
        self.assertAlmostEqual(response.data['crop_x'], 23.5)

        self.assertEqual(self.client.get(url).status_code, status.HTTP_200_OK)

        response = self.client.patch(url, {'action': 'move', 'dx': -50, 'dy': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['crop_x'], 0)
        self.assertFalse(response.data['is_auto'])

        response = self.client.patch(url, {'action': 'resize', 'dx': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_explicit_crop(self):
        response = self.client.post(f'/api/v1/face-images/{self.images[0].id}/crop/', {
            'aspect_ratio': '4:5', 'crop': {'x': 10, 'y': 10, 'width': 40, 'height': 50}
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['is_auto'])
        self.assertEqual(response.data['aspect_ratio'], '4:5')

    def test_export_dataset(self):
        """Test the dataset download skips ignored images and counts crops"""
        self.run.brand_name = 'Maison Noir'
        self.run.save()
        identity = services.create_identity(self.run, [img.id for img in self.images[:3]])
        services.set_ignored([link_for(self.images[2]).id])
        services.save_crop(self.images[0], {'x': 0, 'y': 0, 'width': 50, 'height': 50})

        response = self.client.get(f'/api/v1/face-runs/{self.run.id}/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Disposition'], 'attachment; filename="maison-noir-face-dataset.json"')
        dataset = json.loads(response.content)
        self.assertEqual(dataset['totals'], {'identities': 1, 'images': 2, 'cropped_images': 1})
        self.assertEqual(dataset['identities'][0]['name'], identity.name)
        self.assertEqual(dataset['identities'][0]['images'][0]['crop']['width'], 50)
