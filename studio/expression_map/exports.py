"""Prompt manifests for running generation outside the app."""
import csv
import io

from django.utils import timezone

from .generation import clamp_variations
from .models import DigitalModel, ExpressionRecipe
from .prompts import build_full_prompt, recipe_delta

CSV_HEADERS = ['Model ID', 'Model Name', 'Recipe ID', 'Recipe Name', 'Variation', 'Prompt']


def _id_list(value):
    """Comma-separated ids; None when absent, an empty list when nothing valid was given"""
    if not value:
        return None
    ids = []
    for part in str(value).split(','):
        part = part.strip()
        if part.isdigit():
            ids.append(int(part))
    return ids


def build_prompt_manifest(project, variations=1, model_ids=None, recipe_ids=None):
    variations = clamp_variations(variations)
    models = DigitalModel.objects.filter(project=project)
    recipes = ExpressionRecipe.objects.filter(project=project)
    model_ids = _id_list(model_ids) if not isinstance(model_ids, list) else model_ids
    recipe_ids = _id_list(recipe_ids) if not isinstance(recipe_ids, list) else recipe_ids
    if model_ids is not None:
        models = models.filter(id__in=model_ids)
    if recipe_ids is not None:
        recipes = recipes.filter(id__in=recipe_ids)

    recipes = list(recipes)
    prompts = []
    for model in models:
        for recipe in recipes:
            prompt = build_full_prompt(project.master_prompt or '', recipe_delta(recipe))
            for variation in range(1, variations + 1):
                prompts.append({
                    'model': {'id': model.id, 'name': model.name},
                    'recipe': {'id': recipe.id, 'name': recipe.name},
                    'variation': variation,
                    'prompt': prompt,
                })

    return {
        'generated_at': timezone.now().isoformat(),
        'project': {'id': project.id, 'name': project.name},
        'total_prompts': len(prompts),
        'variations_per_recipe': variations,
        'prompts': prompts,
    }


def manifest_to_csv(manifest):
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL)
    writer.writerow(CSV_HEADERS)
    for entry in manifest['prompts']:
        writer.writerow([
            entry['model']['id'],
            entry['model']['name'],
            entry['recipe']['id'],
            entry['recipe']['name'],
            entry['variation'],
            entry['prompt'],
        ])
    return buffer.getvalue()
