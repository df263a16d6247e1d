"""Prompt text used for recipe extraction and image generation."""

RECIPE_EXTRACTION_SYSTEM_PROMPT = """You are an expert at analyzing fashion and editorial photography to extract precise, subtle expression characteristics.

Analyze each brand reference image and extract expression recipes that describe micro-expressions and head angles faithfully. Keep the studio/editorial vibe - avoid generic AI expressions, exaggerated emotions, or "beautifying" adjustments.

For each distinct expression you identify, output a recipe with:
- name: A short, descriptive name for this expression
- angle: Head angle description (e.g., "slight 3/4 turn left", "frontal with subtle chin tilt down")
- gaze: Where the eyes are directed (e.g., "direct to camera", "slightly past lens right")
- eyelids: Openness and tension (e.g., "relaxed, neutral openness", "slightly hooded")
- brows: Position and engagement (e.g., "neutral, minimal tension", "subtle inner lift")
- mouth: Lip state (e.g., "closed, relaxed", "barely parted, no tension")
- jaw: Tension level (e.g., "soft, no clench", "slightly set")
- chin: Position (e.g., "neutral", "subtle forward projection")
- asymmetryNotes: Any intentional asymmetry (e.g., "left brow 1mm higher", "none")
- emotionLabel: The subtle emotional read (e.g., "quiet confidence", "contemplative neutrality")
- intensity: 0-3 scale (0=completely neutral, 1=subtle, 2=moderate, 3=pronounced but still editorial)
- deltaLine: 1-2 lines describing ONLY the micro-adjustments from a neutral base

Output STRICT JSON matching this schema:
{
  "recipes": [
    {
      "name": "string",
      "angle": "string",
      "gaze": "string",
      "eyelids": "string",
      "brows": "string",
      "mouth": "string",
      "jaw": "string",
      "chin": "string",
      "asymmetryNotes": "string",
      "emotionLabel": "string",
      "intensity": 0,
      "deltaLine": "string"
    }
  ]
}

IMPORTANT:
- Extract 10-50 distinct expression recipes from the images
- The deltaLine must describe ONLY micro-adjustments that exist within the references
- Keep descriptions precise and technical, suitable for AI image generation
- Avoid generic descriptions like "natural smile" - be specific about muscle engagement
- Maintain editorial restraint - these should be subtle, controlled expressions
- Each recipe should be distinctly different from others"""

SHOT_SPECS = """Shot specs:
studio, neutral background, soft controlled fashion lighting, no beauty filter, no face morphing."""

RECIPE_PROMPT_FIELDS = ['angle', 'gaze', 'eyelids', 'brows', 'mouth', 'jaw', 'chin', 'emotionLabel']


def build_full_prompt(master_prompt, delta_line):
    return f"{master_prompt}\n\nExpression recipe:\n{delta_line}\n\n{SHOT_SPECS}"


def recipe_prompt_text(recipe_data):
    """Flatten a recipe's descriptive fields into one sentence per field"""
    return ' '.join(f"{recipe_data.get(field, '')}." for field in RECIPE_PROMPT_FIELDS)


def recipe_delta(recipe):
    """Delta line for a recipe, falling back to its flattened description"""
    return recipe.delta_line or recipe.full_prompt_text or ''


def extraction_instructions(custom_prompt=None):
    if custom_prompt:
        return (f"{RECIPE_EXTRACTION_SYSTEM_PROMPT}\n\nAdditional context from user: {custom_prompt}"
                f"\n\nAnalyze the following images and extract expression recipes:")
    return f"{RECIPE_EXTRACTION_SYSTEM_PROMPT}\n\nAnalyze the following images and extract expression recipes:"
