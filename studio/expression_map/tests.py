"""
Test suite for the expression map module
Tests: recipe extraction, generation planning and the retry loop, job control, prompt export
"""
import csv
import io
import json
import shutil
import tempfile
from unittest import mock

from django.test import TestCase, override_settings
from rest_framework import status
from studio.core.models import AuditLog
from studio.core.roles import INTERNAL, FREELANCER
from studio.core.test_utils import TestDataFactory, AuthenticatedAPIClient, png_bytes, uploaded_png
from studio.expression_map import extraction, generation, gateway
from studio.expression_map.exports import build_prompt_manifest, manifest_to_csv, CSV_HEADERS
from studio.expression_map.models import BrandRef, DigitalModelRef, ExpressionRecipe, GenerationJob, Output
from studio.expression_map.prompts import build_full_prompt, recipe_prompt_text, SHOT_SPECS

MEDIA_ROOT = tempfile.mkdtemp(prefix='studio-tests-')

RECIPES_ANSWER = """Here you go:
```json
{"recipes": [
  {"name": "Quiet Confidence", "angle": "frontal", "gaze": "direct to camera", "intensity": 1,
   "deltaLine": "Chin down 3 degrees, relaxed lids."},
  {"angle": "3/4 left", "gaze": "past lens", "intensity": 0}
]}
```"""


def make_generation_job(project, total, status=GenerationJob.STATUS_RUNNING, result=None):
    return GenerationJob.objects.create(
        project=project,
        type=GenerationJob.TYPE_GENERATION,
        status=status,
        total=total,
        result=result if result is not None else {'skip_current': False},
    )


@override_settings(MEDIA_ROOT=MEDIA_ROOT, BACKGROUND_TASKS_ASYNC=False)
class ExpressionTestCase(TestCase):

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(MEDIA_ROOT, ignore_errors=True)
        super().tearDownClass()

    def setUp(self):
        self.user = TestDataFactory.create_user(roles=[INTERNAL])
        self.project = TestDataFactory.create_project(user=self.user)


class PromptTests(TestCase):

    def test_full_prompt_layout(self):
        """Test the master prompt, delta and shot specs are joined in order"""
        prompt = build_full_prompt('Master.', 'Chin down.')
        self.assertEqual(prompt, f"Master.\n\nExpression recipe:\nChin down.\n\n{SHOT_SPECS}")

    def test_recipe_prompt_text(self):
        """Test missing recipe fields become empty sentences"""
        text = recipe_prompt_text({'angle': 'frontal', 'gaze': 'direct'})
        self.assertTrue(text.startswith('frontal. direct. .'))

    def test_clamp_variations(self):
        self.assertEqual(generation.clamp_variations(0), 1)
        self.assertEqual(generation.clamp_variations(50), 20)
        self.assertEqual(generation.clamp_variations('3'), 3)
        self.assertEqual(generation.clamp_variations(None), 1)


class ExtractionTests(ExpressionTestCase):
    """Test parsing and running recipe extraction"""

    def test_parse_fenced_json(self):
        recipes = extraction.parse_recipes(RECIPES_ANSWER)
        self.assertEqual(len(recipes), 2)

    def test_parse_missing_recipes(self):
        with self.assertRaisesMessage(extraction.ExtractionError, 'Invalid response format: missing recipes array'):
            extraction.parse_recipes('{"items": []}')

    def test_parse_invalid_json(self):
        with self.assertRaisesMessage(extraction.ExtractionError, 'Could not parse AI response'):
            extraction.parse_recipes('not json at all')

    @mock.patch('studio.expression_map.gateway.analyze_images', return_value=RECIPES_ANSWER)
    def test_extraction_creates_recipes(self, analyze):
        """Test a successful extraction stores recipes and completes the job"""
        TestDataFactory.create_brand_ref(self.project)
        job = extraction.start_extraction(self.project, user=self.user, custom_prompt='Keep it minimal')
        job.refresh_from_db()

        self.assertEqual(job.status, GenerationJob.STATUS_COMPLETED)
        self.assertEqual(job.result['recipes_created'], 2)
        self.assertTrue(job.logs[-1].endswith('Extracted 2 recipes'))
        names = set(ExpressionRecipe.objects.filter(project=self.project).values_list('name', flat=True))
        self.assertEqual(names, {'Quiet Confidence', 'Unnamed Expression'})
        recipe = ExpressionRecipe.objects.get(name='Quiet Confidence')
        self.assertEqual(recipe.delta_line, 'Chin down 3 degrees, relaxed lids.')
        self.assertIn('Additional context from user: Keep it minimal', analyze.call_args[0][0])

    @mock.patch('studio.expression_map.gateway.analyze_images', return_value='{"nope": 1}')
    def test_extraction_failure_is_logged(self, analyze):
        """Test a bad answer fails the job with the reason in the log"""
        TestDataFactory.create_brand_ref(self.project)
        job = extraction.start_extraction(self.project)
        job.refresh_from_db()
        self.assertEqual(job.status, GenerationJob.STATUS_FAILED)
        self.assertIn('Extraction failed: Invalid response format', job.logs[-1])
        self.assertFalse(ExpressionRecipe.objects.filter(project=self.project).exists())

    @mock.patch('studio.expression_map.gateway.analyze_images')
    def test_extraction_without_refs(self, analyze):
        job = extraction.start_extraction(self.project)
        job.refresh_from_db()
        self.assertEqual(job.status, GenerationJob.STATUS_FAILED)
        self.assertIn('No brand references uploaded', job.logs[-1])
        analyze.assert_not_called()

    @mock.patch('studio.expression_map.gateway.analyze_images', return_value='{"recipes": []}')
    def test_extraction_sends_at_most_ten_refs(self, analyze):
        for _ in range(12):
            TestDataFactory.create_brand_ref(self.project)
        extraction.start_extraction(self.project)
        self.assertEqual(len(analyze.call_args[0][1]), extraction.MAX_REFERENCE_IMAGES)


class PlanningTests(ExpressionTestCase):
    """Test which generation requests get planned"""

    def test_plan_skips_models_without_refs(self):
        """Test models with no reference image are reported, not planned"""
        ready = TestDataFactory.create_digital_model(self.project, name='Ready')
        bare = TestDataFactory.create_digital_model(self.project, name='Bare', with_ref=False)
        recipe = TestDataFactory.create_recipe(self.project)
        plan = generation.plan_generation(self.project, [ready.id, bare.id], [recipe.id], 2)
        self.assertEqual(len(plan['requests']), 2)
        self.assertEqual(plan['skipped_models'], ['Bare'])
        self.assertEqual(plan['requests'][0]['full_prompt'],
                         build_full_prompt(self.project.master_prompt, recipe.delta_line))

    def test_plan_tops_up_existing_outputs(self):
        """Test completed outputs count towards the requested variations"""
        model = TestDataFactory.create_digital_model(self.project)
        recipe = TestDataFactory.create_recipe(self.project)
        Output.objects.create(project=self.project, digital_model=model, recipe=recipe,
                              image_url='/media/x.png', status=Output.STATUS_COMPLETED)
        Output.objects.create(project=self.project, digital_model=model, recipe=recipe,
                              status=Output.STATUS_FAILED)
        plan = generation.plan_generation(self.project, [model.id], [recipe.id], 3)
        self.assertEqual(len(plan['requests']), 2)

    def test_plan_already_complete(self):
        model = TestDataFactory.create_digital_model(self.project)
        recipe = TestDataFactory.create_recipe(self.project)
        Output.objects.create(project=self.project, digital_model=model, recipe=recipe,
                              image_url='/media/x.png', status=Output.STATUS_COMPLETED)
        plan = generation.plan_generation(self.project, [model.id], [recipe.id], 1)
        self.assertTrue(plan['already_complete'])

    def test_plan_errors(self):
        recipe = TestDataFactory.create_recipe(self.project)
        bare = TestDataFactory.create_digital_model(self.project, with_ref=False)
        with self.assertRaisesMessage(generation.GenerationPlanError, 'Select at least one model and one recipe'):
            generation.plan_generation(self.project, [], [recipe.id], 1)
        with self.assertRaisesMessage(generation.GenerationPlanError, 'No models have reference images'):
            generation.plan_generation(self.project, [bare.id], [recipe.id], 1)


class GenerationLoopTests(ExpressionTestCase):
    """Test the generation loop with a fake gateway and a recorded sleep"""

    def setUp(self):
        super().setUp()
        self.model = TestDataFactory.create_digital_model(self.project, name='Ava')
        self.recipe = TestDataFactory.create_recipe(self.project, name='Soft Gaze')
        self.sleeps = []

    def _requests(self, count=1):
        return generation.plan_generation(self.project, [self.model.id], [self.recipe.id], count)['requests']

    def _run(self, job, requests_list):
        generation.run_generation(job.id, requests_list, sleep=self.sleeps.append)
        job.refresh_from_db()
        return job

    @mock.patch('studio.expression_map.gateway.generate_image')
    def test_success(self, generate_image):
        """Test each request stores a completed output with its dimensions"""
        generate_image.return_value = png_bytes(64, 48)
        requests_list = self._requests(2)
        job = self._run(make_generation_job(self.project, 2), requests_list)

        self.assertEqual(job.status, GenerationJob.STATUS_COMPLETED)
        self.assertEqual(job.progress, 2)
        outputs = Output.objects.filter(job=job, status=Output.STATUS_COMPLETED)
        self.assertEqual(outputs.count(), 2)
        self.assertEqual(outputs.first().metrics_json, {'width': 64, 'height': 48})
        self.assertTrue(outputs.first().image_url)
        self.assertEqual(self.sleeps, [generation.SUCCESS_PAUSE])
        self.assertTrue(job.logs[-1].endswith('Generated successfully'))

    @mock.patch('studio.expression_map.gateway.generate_image')
    def test_failures_retry_with_backoff(self, generate_image):
        """Test a failing request is retried three times, then skipped"""
        generate_image.side_effect = gateway.GatewayError('Failed: 500', status_code=500)
        job = self._run(make_generation_job(self.project, 1), self._requests(1))

        self.assertEqual(generate_image.call_count, 1 + generation.MAX_RETRIES)
        self.assertEqual(self.sleeps, [1.0, 2.0, 4.0])
        self.assertEqual(job.status, GenerationJob.STATUS_COMPLETED)
        self.assertEqual(job.progress, 1)
        self.assertEqual(Output.objects.filter(job=job, status=Output.STATUS_FAILED).count(), 4)

    @mock.patch('studio.expression_map.gateway.generate_image')
    def test_timeout_recorded_as_failed_output(self, generate_image):
        generate_image.side_effect = [gateway.GatewayTimeout('Timed out'), png_bytes()]
        job = self._run(make_generation_job(self.project, 1), self._requests(1))
        failed = Output.objects.get(job=job, status=Output.STATUS_FAILED)
        self.assertEqual(failed.metrics_json, {'error': 'Timed out'})
        self.assertEqual(Output.objects.filter(job=job, status=Output.STATUS_COMPLETED).count(), 1)

    @mock.patch('studio.expression_map.gateway.generate_image')
    def test_rate_limit_waits_and_retries(self, generate_image):
        """Test a 429 waits for retry_after and retries the same request"""
        generate_image.side_effect = [gateway.RateLimitedError(retry_after=3), png_bytes()]
        job = self._run(make_generation_job(self.project, 1), self._requests(1))
        self.assertEqual(self.sleeps, [3])
        self.assertEqual(job.status, GenerationJob.STATUS_COMPLETED)
        self.assertEqual(Output.objects.filter(job=job).count(), 1)

    @mock.patch('studio.expression_map.gateway.generate_image')
    def test_credits_exhausted_fails_job(self, generate_image):
        """Test a 402 stops the loop and fails the job"""
        generate_image.side_effect = gateway.CreditsExhaustedError()
        job = self._run(make_generation_job(self.project, 2), self._requests(2))
        self.assertEqual(job.status, GenerationJob.STATUS_FAILED)
        self.assertEqual(generate_image.call_count, 1)
        self.assertTrue(job.logs[-1].endswith('Credits exhausted'))

    @mock.patch('studio.expression_map.gateway.generate_image')
    def test_no_image_returned(self, generate_image):
        generate_image.return_value = None
        job = self._run(make_generation_job(self.project, 1), self._requests(1))
        self.assertEqual(job.status, GenerationJob.STATUS_COMPLETED)
        self.assertTrue(any(line.endswith('No image returned') for line in job.logs))

    @mock.patch('studio.expression_map.gateway.generate_image')
    def test_stopped_job_processes_nothing(self, generate_image):
        job = self._run(make_generation_job(self.project, 1, status=GenerationJob.STATUS_STOPPED),
                        self._requests(1))
        generate_image.assert_not_called()
        self.assertEqual(job.status, GenerationJob.STATUS_STOPPED)

    @mock.patch('studio.expression_map.gateway.generate_image')
    def test_skip_current(self, generate_image):
        """Test a skip request skips one item and clears the flag"""
        generate_image.return_value = png_bytes()
        job = make_generation_job(self.project, 2, result={'skip_current': True})
        job = self._run(job, self._requests(2))
        self.assertEqual(generate_image.call_count, 1)
        self.assertFalse(job.result['skip_current'])
        self.assertEqual(job.progress, 2)

    def test_stop_job(self):
        job = make_generation_job(self.project, 3)
        self.assertTrue(generation.stop_job(job))
        self.assertEqual(job.status, GenerationJob.STATUS_STOPPED)
        self.assertTrue(job.logs[-1].endswith('Stopped by user'))
        self.assertFalse(generation.stop_job(job))


@override_settings(MEDIA_ROOT=MEDIA_ROOT, BACKGROUND_TASKS_ASYNC=False)
class ExpressionAPITests(TestCase):
    """Test expression map endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user(roles=[INTERNAL])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.project = TestDataFactory.create_project(user=self.user)

    def test_staff_only(self):
        self.client.authenticate_user(TestDataFactory.create_user(roles=[FREELANCER]))
        self.assertEqual(self.client.get('/api/v1/projects/').status_code, status.HTTP_403_FORBIDDEN)

    def test_create_project(self):
        response = self.client.post('/api/v1/projects/', {'name': 'Spring Faces', 'master_prompt': 'Portrait.'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created_by'], self.user.id)
        self.assertEqual(response.data['recipe_count'], 0)

    def test_upload_brand_refs(self):
        """Test multipart upload of several brand references"""
        response = self.client.post(f'/api/v1/projects/{self.project.id}/brand-refs/', {
            'files': [uploaded_png('a.png'), uploaded_png('b.png')]
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(BrandRef.objects.filter(project=self.project).count(), 2)
        self.assertTrue(response.data[0]['url'])

    def test_brand_ref_requires_file_or_url(self):
        response = self.client.post(f'/api/v1/projects/{self.project.id}/brand-refs/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_extract_without_refs(self):
        response = self.client.post(f'/api/v1/projects/{self.project.id}/extract-recipes/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @mock.patch('studio.expression_map.gateway.analyze_images', return_value=RECIPES_ANSWER)
    def test_extract_recipes(self, analyze):
        TestDataFactory.create_brand_ref(self.project)
        response = self.client.post(f'/api/v1/projects/{self.project.id}/extract-recipes/',
                                    {'custom_prompt': 'Editorial'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_202_ACCEPTED)
        self.assertEqual(response.data['type'], GenerationJob.TYPE_EXTRACTION)
        recipes = self.client.get(f'/api/v1/projects/{self.project.id}/recipes/')
        self.assertEqual(len(recipes.data), 2)

    def test_recipe_intensity_validation(self):
        recipe = TestDataFactory.create_recipe(self.project)
        response = self.client.patch(f'/api/v1/recipes/{recipe.id}/', {'recipe_json': {'intensity': 5}},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_upload_model_ref(self):
        model = TestDataFactory.create_digital_model(self.project, with_ref=False)
        response = self.client.post(f'/api/v1/models/{model.id}/refs/', {'file': uploaded_png('face.png')},
                                    format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(DigitalModelRef.objects.filter(digital_model=model).count(), 1)

    @mock.patch('studio.expression_map.gateway.generate_image')
    def test_generate(self, generate_image):
        """Test starting generation returns the job and records an audit entry"""
        generate_image.return_value = png_bytes()
        model = TestDataFactory.create_digital_model(self.project)
        bare = TestDataFactory.create_digital_model(self.project, name='No Refs', with_ref=False)
        recipe = TestDataFactory.create_recipe(self.project)
        response = self.client.post(f'/api/v1/projects/{self.project.id}/generate/', {
            'model_ids': [model.id, bare.id], 'recipe_ids': [recipe.id], 'variations': 1
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_202_ACCEPTED)
        self.assertEqual(response.data['total'], 1)
        self.assertEqual(response.data['skipped_models'], ['No Refs'])
        self.assertEqual(response.data['status'], GenerationJob.STATUS_COMPLETED)
        self.assertTrue(AuditLog.objects.filter(action='generation_start').exists())

        outputs = self.client.get(f'/api/v1/projects/{self.project.id}/outputs/', {'status': 'completed'})
        self.assertEqual(len(outputs.data), 1)

        # Asking again finds nothing left to do
        response = self.client.post(f'/api/v1/projects/{self.project.id}/generate/', {
            'model_ids': [model.id], 'recipe_ids': [recipe.id], 'variations': 1
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['already_complete'])

    def test_generate_plan_error(self):
        recipe = TestDataFactory.create_recipe(self.project)
        bare = TestDataFactory.create_digital_model(self.project, with_ref=False)
        response = self.client.post(f'/api/v1/projects/{self.project.id}/generate/', {
            'model_ids': [bare.id], 'recipe_ids': [recipe.id]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'No models have reference images')

    def test_stop_and_skip(self):
        """Test stop and skip only apply to running jobs"""
        job = make_generation_job(self.project, 5)
        response = self.client.post(f'/api/v1/generation-jobs/{job.id}/skip/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['result']['skip_current'])

        response = self.client.post(f'/api/v1/generation-jobs/{job.id}/stop/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], GenerationJob.STATUS_STOPPED)

        self.assertEqual(self.client.post(f'/api/v1/generation-jobs/{job.id}/stop/').status_code,
                         status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.client.post(f'/api/v1/generation-jobs/{job.id}/skip/').status_code,
                         status.HTTP_400_BAD_REQUEST)

    def test_export_prompts_csv(self):
        """Test CSV export has one quoted row per model x recipe x variation"""
        TestDataFactory.create_digital_model(self.project, name='Ava')
        TestDataFactory.create_recipe(self.project, name='Soft "Gaze"')
        response = self.client.get(f'/api/v1/projects/{self.project.id}/prompts/export/',
                                   {'format': 'csv', 'variations': 2})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Disposition'],
                         f'attachment; filename="project-{self.project.id}-prompts.csv"')
        content = response.content.decode()
        self.assertTrue(content.startswith(','.join(f'"{h}"' for h in CSV_HEADERS)))
        self.assertIn('"Soft ""Gaze"""', content)

    def test_export_prompts_json(self):
        TestDataFactory.create_digital_model(self.project)
        TestDataFactory.create_recipe(self.project)
        TestDataFactory.create_recipe(self.project)
        response = self.client.get(f'/api/v1/projects/{self.project.id}/prompts/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        manifest = json.loads(response.content)
        self.assertEqual(manifest['total_prompts'], 2)
        self.assertEqual(manifest['variations_per_recipe'], 1)

    def test_export_bad_format(self):
        response = self.client.get(f'/api/v1/projects/{self.project.id}/prompts/export/', {'format': 'xml'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_output_list_rejects_bad_filters(self):
        """Test malformed output filters are a 400, not a server error"""
        url = f'/api/v1/projects/{self.project.id}/outputs/'
        for params in ({'model': 'abc'}, {'recipe': 'x'}, {'status': 'done'}):
            response = self.client.get(url, params)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.client.get(url, {'model': '999'}).data, [])


class ManifestTests(TestCase):

    def test_manifest_filters_by_ids(self):
        project = TestDataFactory.create_project()
        ava = TestDataFactory.create_digital_model(project)
        TestDataFactory.create_digital_model(project)
        recipe = TestDataFactory.create_recipe(project)
        manifest = build_prompt_manifest(project, variations=3, model_ids=str(ava.id), recipe_ids=[recipe.id])
        self.assertEqual(manifest['total_prompts'], 3)
        self.assertEqual([p['variation'] for p in manifest['prompts']], [1, 2, 3])
        rows = list(csv.reader(io.StringIO(manifest_to_csv(manifest))))
        self.assertEqual(len(rows), 4)
        self.assertEqual(rows[0], CSV_HEADERS)

    def test_manifest_with_no_valid_ids_is_empty(self):
        """Test an id filter that names nothing valid selects nothing"""
        project = TestDataFactory.create_project()
        TestDataFactory.create_digital_model(project)
        TestDataFactory.create_recipe(project)
        self.assertEqual(build_prompt_manifest(project, model_ids='abc')['total_prompts'], 0)
        self.assertEqual(build_prompt_manifest(project, recipe_ids=[])['total_prompts'], 0)
        self.assertEqual(build_prompt_manifest(project, model_ids='')['total_prompts'], 1)
