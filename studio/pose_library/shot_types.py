"""Shot type vocabulary for pose libraries."""

FRONT_FULL = 'FRONT_FULL'
FRONT_CROPPED = 'FRONT_CROPPED'
DETAIL = 'DETAIL'
BACK_FULL = 'BACK_FULL'

ALL_SHOT_TYPES = [FRONT_FULL, FRONT_CROPPED, DETAIL, BACK_FULL]

SHOT_TYPE_LABELS = {
    FRONT_FULL: 'Front (Full)',
    FRONT_CROPPED: 'Front (Cropped)',
    DETAIL: 'Detail',
    BACK_FULL: 'Back (Full)',
}

SHOT_TYPE_CHOICES = [(shot_type, SHOT_TYPE_LABELS[shot_type]) for shot_type in ALL_SHOT_TYPES]

# Older libraries stored single-letter slot codes
LEGACY_SLOT_MAP = {
    'A': FRONT_FULL,
    'B': FRONT_CROPPED,
    'C': BACK_FULL,
    'D': DETAIL,
}

GENDERS = ['women', 'men']


def normalize_shot_type(slot):
    """Map a stored slot (legacy letter or shot type) to a shot type, or None"""
    if not slot:
        return None
    value = str(slot).strip()
    if value.upper() in LEGACY_SLOT_MAP:
        return LEGACY_SLOT_MAP[value.upper()]
    value = value.upper()
    return value if value in SHOT_TYPE_LABELS else None


def get_shot_type_label(shot_type):
    return SHOT_TYPE_LABELS.get(shot_type, shot_type or 'Unknown')
