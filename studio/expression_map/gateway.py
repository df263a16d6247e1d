"""
Client for the AI gateway (OpenAI-compatible chat completions endpoint).

Used for two things: vision analysis of brand references (recipe
extraction) and image generation from a prompt plus an identity image.
HTTP 429 and 402 are surfaced as dedicated exceptions so callers can back
off or stop.
"""
import base64
import io
import logging
import os
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 5.0


class GatewayError(Exception):
    """Any failed gateway call"""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class GatewayTimeout(GatewayError):
    pass


class RateLimitedError(GatewayError):
    def __init__(self, message='Rate limited', retry_after=DEFAULT_RETRY_AFTER):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class CreditsExhaustedError(GatewayError):
    def __init__(self, message='Credits exhausted'):
        super().__init__(message, status_code=402)


def _setting(name, default=''):
    return getattr(settings, name, os.getenv(name, default))


def _post(payload: Dict[str, Any]) -> Dict[str, Any]:
    url = _setting('AI_GATEWAY_URL')
    api_key = _setting('AI_GATEWAY_API_KEY')
    timeout = int(_setting('AI_GATEWAY_TIMEOUT', 60))
    if not url or not api_key:
        raise GatewayError('AI gateway is not configured')

    try:
        response = requests.post(
            url,
            json=payload,
            headers={
                'Authorization': f'Bearer {api_key}',
                'Content-Type': 'application/json',
            },
            timeout=timeout,
        )
    except requests.exceptions.Timeout:
        logger.error(f"AI gateway timeout after {timeout}s")
        raise GatewayTimeout('Timed out')
    except requests.exceptions.RequestException as e:
        logger.error(f"AI gateway request error: {str(e)}")
        raise GatewayError(f'Request error: {str(e)}')

    if response.status_code == 429:
        raise RateLimitedError()
    if response.status_code == 402:
        raise CreditsExhaustedError()
    if not response.ok:
        logger.error(f"AI gateway returned {response.status_code}: {response.text[:500]}")
        raise GatewayError(f'Failed: {response.status_code}', status_code=response.status_code)

    try:
        return response.json()
    except ValueError:
        raise GatewayError('Invalid JSON from AI gateway', status_code=response.status_code)


def file_to_data_url(field_file, content_type='image/png') -> str:
    """Inline a stored file as a data URL so the gateway doesn't need to reach our media host"""
    field_file.open('rb')
    try:
        data = field_file.read()
    finally:
        field_file.close()
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def reference_url(ref) -> str:
    """URL the gateway should see for an uploaded or linked reference image"""
    if getattr(ref, 'file', None):
        return file_to_data_url(ref.file)
    return ref.image_url


def analyze_images(instructions: str, image_urls: List[str], model: Optional[str] = None) -> str:
    """Send reference images for vision analysis; returns the assistant's text"""
    content = [{'type': 'text', 'text': instructions}]
    for url in image_urls:
        content.append({'type': 'image_url', 'image_url': {'url': url}})

    data = _post({
        'model': model or _setting('AI_ANALYSIS_MODEL', 'google/gemini-2.5-pro'),
        'messages': [{'role': 'user', 'content': content}],
    })
    message = ((data.get('choices') or [{}])[0].get('message') or {}).get('content')
    if not message:
        raise GatewayError('No response from AI')
    return message


def generate_image(prompt: str, identity_url: str, model: Optional[str] = None) -> Optional[bytes]:
    """
    Generate one image. Returns the raw image bytes, or None when the model
    answered without an image.
    """
    data = _post({
        'model': model or _setting('AI_IMAGE_MODEL', 'google/gemini-3-pro-image-preview'),
        'messages': [{
            'role': 'user',
            'content': [
                {'type': 'text', 'text': prompt},
                {'type': 'image_url', 'image_url': {'url': identity_url}},
            ],
        }],
        'modalities': ['image', 'text'],
    })

    try:
        image_url = data['choices'][0]['message']['images'][0]['image_url']['url']
    except (KeyError, IndexError, TypeError):
        return None
    if not image_url:
        return None
    return _download_image(image_url)


def _download_image(image_url: str) -> bytes:
    if image_url.startswith('data:'):
        _, _, encoded = image_url.partition('base64,')
        return base64.b64decode(encoded)
    try:
        response = requests.get(image_url, timeout=int(_setting('AI_GATEWAY_TIMEOUT', 60)))
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise GatewayError(f'Could not download generated image: {str(e)}')
    return response.content


def to_png(image_bytes: bytes) -> tuple:
    """Normalize generated bytes to PNG; returns (png_bytes, width, height)"""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.load()
            if img.mode not in ('RGB', 'RGBA'):
                img = img.convert('RGBA')
            buffer = io.BytesIO()
            img.save(buffer, format='PNG')
            return buffer.getvalue(), img.width, img.height
    except (UnidentifiedImageError, OSError) as e:
        raise GatewayError(f'Generated data is not a valid image: {str(e)}')
