"""
Batch image generation for model x recipe combinations.

`plan_generation` works out which images are still missing, `start_generation`
creates a job and hands the plan to `run_generation` in the background.
`run_generation` walks the plan serially, calling `process_generation_request`
once per image with a small retry/backoff policy:

- rate limited: wait `retry_after` (or BASE_DELAY * 2**retry) and try again
  without counting against MAX_RETRIES
- failure or exception: retry up to MAX_RETRIES with BASE_DELAY * 2**(retry-1)
- stopped / credits exhausted: abandon the rest of the plan
"""
import logging
import time
import uuid

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from studio.core.background import run_in_background
from studio.core.utils import append_log
from . import gateway
from .models import DigitalModel, DigitalModelRef, ExpressionRecipe, GenerationJob, Output
from .prompts import build_full_prompt, recipe_delta

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
BASE_DELAY = 1.0
SUCCESS_PAUSE = 0.5
MIN_VARIATIONS = 1
MAX_VARIATIONS = 20

# Outcomes of a single request
SUCCESS = 'success'
FAILED = 'failed'
SKIPPED = 'skipped'
STOPPED = 'stopped'
RATE_LIMITED = 'rate_limited'
CREDITS_EXHAUSTED = 'credits_exhausted'


class GenerationPlanError(Exception):
    """The selection can't produce any generation requests"""


def clamp_variations(value):
    try:
        value = int(value)
    except (TypeError, ValueError):
        return MIN_VARIATIONS
    return max(MIN_VARIATIONS, min(MAX_VARIATIONS, value))


def existing_output_counts(project, model_ids, recipe_ids):
    """Completed outputs with an image, keyed by (model_id, recipe_id)"""
    rows = (
        Output.objects.filter(
            project=project,
            digital_model_id__in=model_ids,
            recipe_id__in=recipe_ids,
            status=Output.STATUS_COMPLETED,
            image_url__isnull=False,
        )
        .exclude(image_url='')
        .values('digital_model_id', 'recipe_id')
        .annotate(n=Count('id'))
    )
    return {(row['digital_model_id'], row['recipe_id']): row['n'] for row in rows}


def plan_generation(project, model_ids, recipe_ids, variations):
    """
    Build the list of generation requests still needed.

    Returns a dict with `requests` plus bookkeeping (`skipped_models`,
    `already_complete`). Raises GenerationPlanError when nothing can be
    generated at all.
    """
    variations = clamp_variations(variations)
    models = list(DigitalModel.objects.filter(project=project, id__in=model_ids).prefetch_related('refs'))
    recipes = list(ExpressionRecipe.objects.filter(project=project, id__in=recipe_ids))
    if not models or not recipes:
        raise GenerationPlanError('Select at least one model and one recipe')

    existing = existing_output_counts(project, [m.id for m in models], [r.id for r in recipes])
    master_prompt = project.master_prompt or ''

    requests_list = []
    skipped_models = []
    models_with_refs = 0
    for model in models:
        refs = list(model.refs.all())
        if not refs:
            skipped_models.append(model.name)
            continue
        models_with_refs += 1
        for recipe in recipes:
            needed = max(0, variations - existing.get((model.id, recipe.id), 0))
            prompt = build_full_prompt(master_prompt, recipe_delta(recipe))
            for _ in range(needed):
                requests_list.append({
                    'model_id': model.id,
                    'model_name': model.name,
                    'recipe_id': recipe.id,
                    'recipe_name': recipe.name,
                    'full_prompt': prompt,
                    'model_ref_id': refs[0].id,
                })

    if models_with_refs == 0:
        raise GenerationPlanError('No models have reference images')

    return {
        'requests': requests_list,
        'variations': variations,
        'skipped_models': skipped_models,
        'already_complete': not requests_list,
    }


def _update_job(job_id, **fields):
    fields['updated_at'] = timezone.now()
    GenerationJob.objects.filter(pk=job_id).update(**fields)


def _log_job(job_id, message, **fields):
    """Append to the job's rolling log and apply any field updates atomically"""
    with transaction.atomic():
        job = GenerationJob.objects.select_for_update().get(pk=job_id)
        job.logs = append_log(job.logs, message)
        for name, value in fields.items():
            setattr(job, name, value)
        job.save(update_fields=['logs', 'updated_at'] + list(fields.keys()))
    return job


def _store_output_image(project_id, png_bytes):
    name = f"projects/{project_id}/outputs/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.png"
    path = default_storage.save(name, ContentFile(png_bytes))
    return path, default_storage.url(path)


def process_generation_request(job_id, index, request, total, model=None):
    """Generate one image and record the outcome on the job"""
    job = GenerationJob.objects.get(pk=job_id)
    if job.status == GenerationJob.STATUS_STOPPED:
        return {'status': STOPPED}

    result = job.result or {}
    if result.get('skip_current'):
        _update_job(job_id, result={**result, 'skip_current': False}, progress=index + 1)
        return {'status': SKIPPED}

    _log_job(job_id, f"[{index + 1}/{total}] Generating {request['recipe_name']} for {request['model_name']}")

    try:
        ref = DigitalModelRef.objects.get(pk=request['model_ref_id'])
        image_bytes = gateway.generate_image(request['full_prompt'], gateway.reference_url(ref), model=model)
    except gateway.RateLimitedError as e:
        return {'status': RATE_LIMITED, 'retry_after': e.retry_after}
    except gateway.CreditsExhaustedError:
        _log_job(job_id, 'Credits exhausted', status=GenerationJob.STATUS_FAILED)
        return {'status': CREDITS_EXHAUSTED}
    except (gateway.GatewayError, DigitalModelRef.DoesNotExist) as e:
        Output.objects.create(
            project_id=job.project_id,
            digital_model_id=request['model_id'],
            recipe_id=request['recipe_id'],
            job_id=job_id,
            prompt_used=request['full_prompt'],
            status=Output.STATUS_FAILED,
            metrics_json={'error': str(e)},
        )
        _log_job(job_id, str(e), progress=index + 1)
        return {'status': FAILED, 'error': str(e)}

    if not image_bytes:
        _log_job(job_id, 'No image returned', progress=index + 1)
        return {'status': FAILED, 'error': 'No image returned'}

    try:
        png_bytes, width, height = gateway.to_png(image_bytes)
    except gateway.GatewayError as e:
        _log_job(job_id, str(e), progress=index + 1)
        return {'status': FAILED, 'error': str(e)}

    path, url = _store_output_image(job.project_id, png_bytes)
    output = Output.objects.create(
        project_id=job.project_id,
        digital_model_id=request['model_id'],
        recipe_id=request['recipe_id'],
        job_id=job_id,
        image_path=path,
        image_url=url,
        prompt_used=request['full_prompt'],
        status=Output.STATUS_COMPLETED,
        metrics_json={'width': width, 'height': height},
    )
    _log_job(job_id, 'Generated successfully', progress=index + 1)
    return {'status': SUCCESS, 'output_id': output.id}


def run_generation(job_id, requests_list, model=None, sleep=time.sleep):
    """Process every request in order; see module docstring for the retry policy"""
    total = len(requests_list)
    index = 0
    retry = 0

    try:
        while index < total:
            request = requests_list[index]
            try:
                outcome = process_generation_request(job_id, index, request, total, model=model)
            except Exception as e:
                logger.error(f"Generation request {index + 1}/{total} of job {job_id} raised: {str(e)}", exc_info=True)
                outcome = {'status': FAILED, 'error': str(e)}

            status = outcome['status']
            if status in (STOPPED, CREDITS_EXHAUSTED):
                logger.info(f"Generation job {job_id} ended early: {status}")
                break

            if status == RATE_LIMITED:
                delay = outcome.get('retry_after') or BASE_DELAY * (2 ** retry)
                retry += 1
                logger.warning(f"Rate limited on job {job_id}, waiting {delay}s")
                sleep(delay)
                continue

            if status == FAILED:
                if retry < MAX_RETRIES:
                    retry += 1
                    sleep(BASE_DELAY * (2 ** (retry - 1)))
                    continue
                logger.warning(f"Giving up on request {index + 1}/{total} of job {job_id} after {MAX_RETRIES} retries")

            retry = 0
            index += 1
            if status == SUCCESS and index < total:
                sleep(SUCCESS_PAUSE)
    except Exception as e:
        logger.error(f"Generation job {job_id} crashed: {str(e)}", exc_info=True)
        _log_job(job_id, f"Job failed: {str(e)}", status=GenerationJob.STATUS_FAILED)
        return

    GenerationJob.objects.filter(pk=job_id, status=GenerationJob.STATUS_RUNNING).update(
        status=GenerationJob.STATUS_COMPLETED, updated_at=timezone.now()
    )


def start_generation(project, model_ids, recipe_ids, variations, user=None, model=None):
    """
    Plan and launch a generation job.

    Returns (job, plan). `job` is None when every combination already has
    enough outputs.
    """
    plan = plan_generation(project, model_ids, recipe_ids, variations)
    if plan['already_complete']:
        return None, plan

    job = GenerationJob.objects.create(
        project=project,
        type=GenerationJob.TYPE_GENERATION,
        status=GenerationJob.STATUS_RUNNING,
        progress=0,
        total=len(plan['requests']),
        logs=[],
        result={'skip_current': False, 'variations': plan['variations']},
        created_by=user if user and user.is_authenticated else None,
    )
    logger.info(f"Starting generation job {job.id} with {job.total} images for project {project.id}")
    run_in_background(run_generation, job.id, plan['requests'], model=model)
    return job, plan


def stop_job(job):
    updated = GenerationJob.objects.filter(
        pk=job.pk, status__in=[GenerationJob.STATUS_PENDING, GenerationJob.STATUS_RUNNING]
    ).update(status=GenerationJob.STATUS_STOPPED, updated_at=timezone.now())
    if updated:
        _log_job(job.pk, 'Stopped by user')
    job.refresh_from_db()
    return bool(updated)


def skip_current(job):
    """Ask the loop to skip whatever request it handles next"""
    with transaction.atomic():
        locked = GenerationJob.objects.select_for_update().get(pk=job.pk)
        locked.result = {**(locked.result or {}), 'skip_current': True}
        locked.save(update_fields=['result', 'updated_at'])
    job.refresh_from_db()
    return job
