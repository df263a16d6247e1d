"""
Helpers for scraping product pages of a fashion site for model photos.

Everything here is pure string work apart from `fetch_with_retry`, so the
scrape loop in `runner.py` can be tested without network access.
"""
import logging
import os
import re
import time
from html import unescape
from urllib.parse import urljoin, urlsplit

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

GENDER_MEN = 'men'
GENDER_WOMEN = 'women'
GENDER_UNKNOWN = 'unknown'

MEN_URL_PATTERNS = ['/men/', '/mens/', '/male/', '/him/', '/man/', 'gender=male', 'gender=men', '/gentlemen/']
WOMEN_URL_PATTERNS = ['/women/', '/womens/', '/female/', '/her/', '/woman/', 'gender=female', 'gender=women', '/ladies/']

EXCLUDE_URL_PATTERNS = [
    '/cart', '/checkout', '/account', '/login', '/register', '/search',
    '/filter', '/sort', '.css', '.js', '.json', '.xml', '.svg', '.png', '.jpg',
    '/category', '/categories', '/collection', '/collections', '/page/',
    '/help', '/faq', '/contact', '/about', '/blog', '/news', '/press',
    '/wishlist', '/compare', '/review', '/reviews', '/sitemap', '/privacy',
    '/terms', '/return', '/returns', '/delivery', '/shipping', '/size-guide',
    '/store-locator', '/stores', '/careers', '/jobs', '/newsletter',
    '/gift-card', '/promo', '/sale/', '/clearance',
]

PRODUCT_URL_PATTERNS = [
    re.compile(r'[a-z]{2}\d[a-z]{2}\d+[a-z0-9]*$', re.I),          # SKU at end
    re.compile(r'-[a-z]{2}\d[a-z]{2}\d+[a-z0-9]*$', re.I),         # slug-SKU
    re.compile(r'/(product|item|p|pd|dp|style|detail)/[^/]+$', re.I),
    re.compile(r'/[A-Z0-9]{6,}$', re.I),
]
SLUG_RE = re.compile(r'^[a-z0-9-]+$', re.I)

EXCLUDED_IMAGE_TERMS = [
    'thumb', 'thumbnail', 'icon', 'logo', 'sprite', 'placeholder',
    '50x', '100x', '150x', '200x', '1x1', 'blank', 'pixel',
    'loading', 'spinner', 'arrow', 'chevron', 'close', 'menu',
    'social', 'facebook', 'twitter', 'instagram', 'pinterest',
    'payment', 'visa', 'mastercard', 'paypal', 'badge', 'flag',
]

_IMG_EXT = r'\.(?:jpg|jpeg|png|webp)'
SCENE7_RE = re.compile(r'["\']([^"\']+scene7[^"\']*' + _IMG_EXT + r'[^"\']*)["\']', re.I)
DATA_ATTR_RES = [
    re.compile(attr + r'=["\']([^"\']+' + _IMG_EXT + r'[^"\']*)["\']', re.I)
    for attr in ('data-src', 'data-zoom-image', 'data-large', 'data-original')
]
JSON_LD_IMAGE_RE = re.compile(r'"image"\s*:\s*\[?["\']([^"\'\]]+' + _IMG_EXT + r'[^"\'\]]*)["\']\]?', re.I)
SRCSET_RE = re.compile(r'srcset=["\']([^"\']+)["\']', re.I)
IMG_SRC_RES = [
    re.compile(r'class=["\'][^"\']*(?:gallery|carousel|product-image|main-image)[^"\']*["\'][^>]*src=["\']([^"\']+'
               + _IMG_EXT + r'[^"\']*)["\']', re.I),
    re.compile(r'src=["\']([^"\']+/(?:product|media|images?|gallery)[^"\']*' + _IMG_EXT + r'[^"\']*)["\']', re.I),
    re.compile(r'src=["\']([^"\']+' + _IMG_EXT + r')["\']', re.I),
]

HREF_RE = re.compile(r'href=["\']([^"\'#]+)["\']', re.I)
SITEMAP_LOC_RE = re.compile(r'<loc>\s*([^<\s]+)\s*</loc>', re.I)
TITLE_RE = re.compile(r'<title[^>]*>([\s\S]*?)</title>', re.I)
OG_TITLE_RE = re.compile(r'<meta[^>]+property=["\']og:title["\'][^>]+content=["\']([^"\']+)["\']', re.I)
H1_RE = re.compile(r'<h1[^>]*>([\s\S]*?)</h1>', re.I)
TAG_RE = re.compile(r'<[^>]+>')

MAX_MAPPED_LINKS = 5000


def classify_gender_from_url(url):
    lower = (url or '').lower()
    for pattern in MEN_URL_PATTERNS:
        if pattern in lower:
            return GENDER_MEN
    for pattern in WOMEN_URL_PATTERNS:
        if pattern in lower:
            return GENDER_WOMEN
    return GENDER_UNKNOWN


def get_origin(url):
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def _is_excluded_url(url):
    lower = url.lower()
    return any(pattern in lower for pattern in EXCLUDE_URL_PATTERNS)


def _dedupe(items):
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def filter_product_urls(links, start_url, max_products):
    """Pick likely product detail pages out of a site map"""
    origin = get_origin(start_url)
    candidates = [url for url in links if url.startswith(origin) and not _is_excluded_url(url)]

    product_urls = [url for url in candidates if any(p.search(url) for p in PRODUCT_URL_PATTERNS)]
    if not product_urls:
        logger.info(f"No SKU-style product URLs under {origin}, falling back to slug matching")
        for url in candidates:
            path_parts = [part for part in url[len(origin):].split('/') if part]
            if len(path_parts) >= 2 and SLUG_RE.match(path_parts[-1]):
                product_urls.append(url)

    product_urls = _dedupe(product_urls)

    start_gender = classify_gender_from_url(start_url)
    if start_gender != GENDER_UNKNOWN and len(product_urls) > max_products:
        same_gender = [
            url for url in product_urls
            if classify_gender_from_url(url) in (start_gender, GENDER_UNKNOWN)
        ]
        if len(same_gender) >= max_products / 2:
            product_urls = same_gender

    return product_urls[:max_products]


def normalize_image_url(src, origin):
    """Absolute origin+path form of an image src, or None when unusable"""
    if not src:
        return None
    url = unescape(src.strip())
    if url.startswith('//'):
        url = 'https:' + url
    elif url.startswith('/'):
        url = origin + url
    elif not url.startswith('http'):
        url = origin + '/' + url
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


def is_excluded_image(url):
    lower = url.lower()
    return any(term in lower for term in EXCLUDED_IMAGE_TERMS)


def extract_image_urls(html, page_url, limit):
    """Product photos on a page, best sources first"""
    origin = get_origin(page_url)
    images = []

    def add(src, cap):
        if len(images) >= cap:
            return
        url = normalize_image_url(src, origin)
        if url and not is_excluded_image(url) and url not in images:
            images.append(url)

    for match in SCENE7_RE.finditer(html):
        add(match.group(1), limit)

    for pattern in DATA_ATTR_RES:
        for match in pattern.finditer(html):
            add(match.group(1), limit * 2)

    for match in JSON_LD_IMAGE_RE.finditer(html):
        add(match.group(1), limit * 2)

    for match in SRCSET_RE.finditer(html):
        candidates = [c.strip().split()[0] for c in match.group(1).split(',') if c.strip()]
        if candidates:
            add(candidates[-1], limit * 2)

    for pattern in IMG_SRC_RES:
        for match in pattern.finditer(html):
            add(match.group(1), limit * 3)

    return images[:limit]


def extract_links(html, page_url):
    """Absolute same-origin links on a page"""
    origin = get_origin(page_url)
    links = []
    for match in HREF_RE.finditer(html or ''):
        url = urljoin(page_url, unescape(match.group(1).strip()))
        parts = urlsplit(url)
        if f"{parts.scheme}://{parts.netloc}" != origin:
            continue
        links.append(f"{origin}{parts.path.rstrip('/') or '/'}")
    return _dedupe(links)


def extract_sitemap_urls(xml):
    return [unescape(loc) for loc in SITEMAP_LOC_RE.findall(xml or '')]


def extract_title(html):
    for pattern in (OG_TITLE_RE, H1_RE, TITLE_RE):
        match = pattern.search(html or '')
        if match:
            title = ' '.join(unescape(TAG_RE.sub(' ', match.group(1))).split())
            if title:
                return title[:500]
    return ''


def java_string_hash(value):
    """32-bit `s[0]*31^(n-1) + ... + s[n-1]` over UTF-16 code units, as signed hex"""
    h = 0
    data = value.encode('utf-16-le')
    for i in range(0, len(data), 2):
        h = (h * 31 + int.from_bytes(data[i:i + 2], 'little')) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return f"-{(-h):x}" if h < 0 else f"{h:x}"


def _setting(name, default):
    return getattr(settings, name, os.getenv(name, default))


def fetch_with_retry(url, max_retries=None, retry_delay=None, sleep=time.sleep, binary=False):
    """
    GET a URL, retrying on errors and non-2xx responses.

    Returns the body (text, or bytes when `binary`) or None once every
    attempt has failed.
    """
    max_retries = int(max_retries if max_retries is not None else _setting('SCRAPE_MAX_RETRIES', 3))
    retry_delay = float(retry_delay if retry_delay is not None else _setting('SCRAPE_RETRY_DELAY', 2))
    headers = {'User-Agent': _setting('SCRAPE_USER_AGENT', 'Mozilla/5.0')}
    timeout = int(_setting('SCRAPE_TIMEOUT', 30))

    for attempt in range(1, max_retries + 1):
        try:
            response = requests.get(url, headers=headers, timeout=timeout)
            if response.ok:
                return response.content if binary else response.text
            logger.warning(f"Fetch {url} returned {response.status_code} (attempt {attempt}/{max_retries})")
        except requests.exceptions.RequestException as e:
            logger.warning(f"Fetch {url} failed (attempt {attempt}/{max_retries}): {str(e)}")
        if attempt < max_retries:
            sleep(retry_delay)
    return None


def map_site(start_url, sleep=time.sleep):
    """Candidate page URLs: sitemap entries (one level of index) plus links on the start page"""
    origin = get_origin(start_url)
    links = []

    sitemap = fetch_with_retry(f"{origin}/sitemap.xml", sleep=sleep)
    if sitemap:
        for loc in extract_sitemap_urls(sitemap):
            if loc.lower().endswith('.xml'):
                nested = fetch_with_retry(loc, sleep=sleep)
                links.extend(extract_sitemap_urls(nested))
            else:
                links.append(loc)
            if len(links) >= MAX_MAPPED_LINKS:
                break

    start_page = fetch_with_retry(start_url, sleep=sleep)
    if start_page:
        links.extend(extract_links(start_page, start_url))

    return _dedupe(links)[:MAX_MAPPED_LINKS]
