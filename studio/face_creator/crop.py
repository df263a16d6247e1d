"""
Head-and-shoulders crop geometry.

All boxes are dicts with x, y, width, height in percent (0-100) of the
source image. Face detection happens elsewhere; these functions only turn
detections into crops and apply manual moves/resizes.
"""
import io

from PIL import Image

ASPECT_RATIOS = {
    '1:1': 1.0,
    '4:5': 0.8,  # width / height
}

ABOVE_FACE = 0.15
BELOW_FACE = 1.5
HORIZONTAL_PADDING = 1.3
MIN_CROP_PERCENT = 10
MIN_RESIZE = 30

DEFAULT_CROP_WIDTH = 70
DEFAULT_CROP_TOP = 5
DEFAULT_CROP_MAX_HEIGHT = 90


def _ratio(aspect_ratio):
    try:
        return ASPECT_RATIOS[aspect_ratio]
    except KeyError:
        raise ValueError(f"Unsupported aspect ratio: {aspect_ratio}")


def _clamp(value, low, high):
    return max(low, min(high, value))


def head_and_shoulders_crop(face_box, aspect_ratio='1:1'):
    """Crop framing a face with a little hair above and shoulders below"""
    ratio = _ratio(aspect_ratio)

    if not face_box:
        height = DEFAULT_CROP_WIDTH / ratio
        return {
            'x': (100 - DEFAULT_CROP_WIDTH) / 2,
            'y': DEFAULT_CROP_TOP,
            'width': DEFAULT_CROP_WIDTH,
            'height': min(height, DEFAULT_CROP_MAX_HEIGHT),
        }

    face_center_x = face_box['x'] + face_box['width'] / 2
    face_top = face_box['y']
    face_height = face_box['height']

    top = face_top - face_height * ABOVE_FACE
    height = face_height * (1 + BELOW_FACE) + face_height * ABOVE_FACE
    width = height * ratio

    min_width = face_box['width'] * HORIZONTAL_PADDING
    if width < min_width:
        width = min_width
        height = width / ratio

    x = face_center_x - width / 2
    y = max(0, top)

    if x < 0:
        x = 0
    if x + width > 100:
        x = 100 - width
        if x < 0:
            x = 0
            width = 100
            height = width / ratio

    if y + height > 100:
        height = 100 - y
        width = height * ratio
        x = face_center_x - width / 2
        if x < 0:
            x = 0
        if x + width > 100:
            x = 100 - width

    return {
        'x': _clamp(x, 0, 100),
        'y': _clamp(y, 0, 100),
        'width': _clamp(width, MIN_CROP_PERCENT, 100),
        'height': _clamp(height, MIN_CROP_PERCENT, 100),
    }


def best_face_detection(detections):
    """Face box of the detection with the highest confidence x area"""
    if not detections:
        return None
    best = max(
        detections,
        key=lambda d: d.get('confidence', 0) * d['box']['width'] * d['box']['height'],
    )
    return best['box']


def move_crop(crop, dx, dy):
    return {
        **crop,
        'x': _clamp(crop['x'] + dx, 0, 100 - crop['width']),
        'y': _clamp(crop['y'] + dy, 0, 100 - crop['height']),
    }


def resize_crop(crop, corner, dx, aspect_ratio='1:1'):
    """Drag a corner horizontally by `dx`, keeping the aspect ratio and the opposite corner fixed"""
    if corner not in ('se', 'sw', 'ne', 'nw'):
        raise ValueError(f"Unknown corner: {corner}")
    height_per_width = 1 / _ratio(aspect_ratio)
    x, y, width, height = crop['x'], crop['y'], crop['width'], crop['height']
    right = x + width
    bottom = y + height

    grow = dx if corner in ('se', 'ne') else -dx
    new_width = max(MIN_RESIZE, width + grow)
    new_height = new_width * height_per_width

    # Fit horizontally
    if corner in ('se', 'ne'):
        if x + new_width > 100:
            new_width = 100 - x
            new_height = new_width * height_per_width
    elif right - new_width < 0:
        new_width = right
        new_height = new_width * height_per_width

    # Fit vertically
    if corner in ('se', 'sw'):
        if y + new_height > 100:
            new_height = 100 - y
            new_width = new_height / height_per_width
    elif bottom - new_height < 0:
        new_height = bottom
        new_width = new_height / height_per_width

    new_x = x if corner in ('se', 'ne') else right - new_width
    new_y = y if corner in ('se', 'sw') else bottom - new_height
    return {'x': new_x, 'y': new_y, 'width': new_width, 'height': new_height}


def render_crop(image_bytes, crop, output_format='PNG'):
    """Cut the crop out of an encoded image; returns encoded bytes"""
    with Image.open(io.BytesIO(image_bytes)) as img:
        img.load()
        left = round(img.width * crop['x'] / 100)
        top = round(img.height * crop['y'] / 100)
        right = round(img.width * min(100, crop['x'] + crop['width']) / 100)
        bottom = round(img.height * min(100, crop['y'] + crop['height']) / 100)
        cropped = img.crop((left, top, right, bottom))
        if output_format == 'PNG' and cropped.mode not in ('RGB', 'RGBA'):
            cropped = cropped.convert('RGBA')
        buffer = io.BytesIO()
        cropped.save(buffer, format=output_format)
        return buffer.getvalue()
