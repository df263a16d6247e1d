"""
Recipe extraction: send brand references to the vision model and store
the expression recipes it describes.
"""
import json
import logging
import re

from django.db import transaction
from django.utils import timezone

from studio.core.background import run_in_background
from studio.core.utils import append_log
from . import gateway
from .models import BrandRef, ExpressionRecipe, GenerationJob
from .prompts import extraction_instructions, recipe_prompt_text

logger = logging.getLogger(__name__)

MAX_REFERENCE_IMAGES = 10
DEFAULT_RECIPE_NAME = 'Unnamed Expression'

JSON_FENCE_RE = re.compile(r'```(?:json)?\s*([\s\S]*?)```')


class ExtractionError(Exception):
    pass


def parse_recipes(text):
    """Parse the model's answer, tolerating a ```json fenced block"""
    match = JSON_FENCE_RE.search(text or '')
    body = match.group(1) if match else (text or '')
    try:
        parsed = json.loads(body.strip())
    except ValueError as e:
        raise ExtractionError(f'Could not parse AI response: {str(e)}')
    if not isinstance(parsed, dict) or not isinstance(parsed.get('recipes'), list):
        raise ExtractionError('Invalid response format: missing recipes array')
    return parsed['recipes']


def save_recipes(project, recipes, source_image_url=''):
    created = []
    with transaction.atomic():
        for data in recipes:
            if not isinstance(data, dict):
                continue
            created.append(ExpressionRecipe.objects.create(
                project=project,
                name=data.get('name') or DEFAULT_RECIPE_NAME,
                recipe_json=data,
                delta_line=data.get('deltaLine') or None,
                full_prompt_text=recipe_prompt_text(data),
                source_image_url=source_image_url,
            ))
    return created


def _finish(job_id, status, message, result=None):
    with transaction.atomic():
        job = GenerationJob.objects.select_for_update().get(pk=job_id)
        job.status = status
        job.logs = append_log(job.logs, message)
        if result is not None:
            job.result = {**(job.result or {}), **result}
        job.progress = job.total if status == GenerationJob.STATUS_COMPLETED else job.progress
        job.updated_at = timezone.now()
        job.save()


def run_extraction(job_id, custom_prompt=None, model=None):
    job = GenerationJob.objects.select_related('project').get(pk=job_id)
    project = job.project
    refs = list(BrandRef.objects.filter(project=project).order_by('created_at', 'id')[:MAX_REFERENCE_IMAGES])

    try:
        if not refs:
            raise ExtractionError('No brand references uploaded')
        image_urls = [gateway.reference_url(ref) for ref in refs]
        answer = gateway.analyze_images(extraction_instructions(custom_prompt), image_urls, model=model)
        recipes = save_recipes(project, parse_recipes(answer))
    except (ExtractionError, gateway.GatewayError) as e:
        logger.warning(f"Recipe extraction failed for project {project.id}: {str(e)}")
        _finish(job_id, GenerationJob.STATUS_FAILED, f"Extraction failed: {str(e)}", {'error': str(e)})
        return []

    logger.info(f"Extracted {len(recipes)} recipes for project {project.id}")
    _finish(job_id, GenerationJob.STATUS_COMPLETED, f"Extracted {len(recipes)} recipes",
            {'recipes_created': len(recipes)})
    return recipes


def start_extraction(project, user=None, custom_prompt=None, model=None):
    ref_count = min(BrandRef.objects.filter(project=project).count(), MAX_REFERENCE_IMAGES)
    job = GenerationJob.objects.create(
        project=project,
        type=GenerationJob.TYPE_EXTRACTION,
        status=GenerationJob.STATUS_RUNNING,
        total=1,
        logs=append_log([], f"Analyzing {ref_count} brand references"),
        created_by=user if user and user.is_authenticated else None,
    )
    run_in_background(run_extraction, job.id, custom_prompt=custom_prompt, model=model)
    return job
