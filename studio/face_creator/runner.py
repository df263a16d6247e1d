"""
Background scrape of a brand site.

`run_scrape` maps the site (sitemap plus the start page's links), filters
product pages and, product by product, downloads up to
`images_per_product` photos into storage. Progress and a rolling log are
written to the run after every product so clients can poll it.
"""
import logging
import os
import time

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import transaction

from studio.core.background import run_in_background
from studio.core.utils import append_log
from . import scraping
from .models import FaceScrapeRun, FaceScrapeImage

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.webp')


def _log_run(run_id, message, **fields):
    with transaction.atomic():
        run = FaceScrapeRun.objects.select_for_update().get(pk=run_id)
        run.logs = append_log(run.logs, message)
        for name, value in fields.items():
            setattr(run, name, value)
        run.save(update_fields=['logs', 'updated_at'] + list(fields.keys()))
    return run


def _store_image(run_id, image_hash, source_url, data):
    ext = os.path.splitext(source_url)[1].lower()
    if ext not in IMAGE_EXTENSIONS:
        ext = '.jpg'
    name = f"face-scrapes/{run_id}/{image_hash.lstrip('-')}-{int(time.time() * 1000)}{ext}"
    path = default_storage.save(name, ContentFile(data))
    return default_storage.url(path)


def scrape_product(run, product_url, seen_hashes, sleep=time.sleep):
    """Fetch one product page and record its images; returns how many were added"""
    html = scraping.fetch_with_retry(product_url, sleep=sleep)
    if not html:
        logger.info(f"No HTML returned for {product_url}")
        return 0

    title = scraping.extract_title(html)
    gender = scraping.classify_gender_from_url(product_url)
    added = 0
    for index, image_url in enumerate(scraping.extract_image_urls(html, product_url, run.images_per_product)):
        image_hash = scraping.java_string_hash(image_url)
        if image_hash in seen_hashes:
            continue
        seen_hashes.add(image_hash)

        data = scraping.fetch_with_retry(image_url, sleep=sleep, binary=True)
        if not data:
            logger.warning(f"Could not download {image_url}")
            continue
        FaceScrapeImage.objects.create(
            run=run,
            source_url=image_url,
            stored_url=_store_image(run.id, image_hash, image_url, data),
            product_url=product_url,
            product_title=title,
            image_index=index,
            image_hash=image_hash,
            gender=gender,
            gender_source='url' if gender != scraping.GENDER_UNKNOWN else 'unknown',
        )
        added += 1
    return added


def run_scrape(run_id, start_index=0, sleep=time.sleep):
    run = FaceScrapeRun.objects.get(pk=run_id)
    try:
        product_urls = list(run.product_urls or [])
        if not product_urls:
            _log_run(run_id, f"Mapping {scraping.get_origin(run.start_url)}", status=FaceScrapeRun.STATUS_MAPPING)
            links = scraping.map_site(run.start_url, sleep=sleep)
            product_urls = scraping.filter_product_urls(links, run.start_url, run.max_products)
            _log_run(run_id, f"Found {len(links)} links, {len(product_urls)} product pages",
                     product_urls=product_urls)

        total = len(product_urls)
        _log_run(run_id, f"Scraping {total - start_index} products", status=FaceScrapeRun.STATUS_RUNNING,
                 total=total, progress=start_index)

        seen_hashes = set(
            FaceScrapeImage.objects.filter(run_id=run_id).exclude(image_hash='').values_list('image_hash', flat=True)
        )
        for index in range(start_index, total):
            product_url = product_urls[index]
            try:
                added = scrape_product(run, product_url, seen_hashes, sleep=sleep)
                message = f"[{index + 1}/{total}] {added} images from {product_url}"
            except Exception as e:
                logger.error(f"Error scraping {product_url}: {str(e)}", exc_info=True)
                message = f"[{index + 1}/{total}] Failed {product_url}: {str(e)}"
            _log_run(run_id, message, progress=index + 1)

        image_count = FaceScrapeImage.objects.filter(run_id=run_id).count()
        _log_run(run_id, f"Completed with {image_count} images", status=FaceScrapeRun.STATUS_COMPLETED,
                 progress=total)
        logger.info(f"Face scrape {run_id} completed: {image_count} images from {total} products")
    except Exception as e:
        logger.error(f"Face scrape {run_id} failed: {str(e)}", exc_info=True)
        _log_run(run_id, f"Scrape failed: {str(e)}", status=FaceScrapeRun.STATUS_FAILED)


def start_run(brand_name, start_url, max_products=200, images_per_product=4, user=None):
    run = FaceScrapeRun.objects.create(
        brand_name=brand_name,
        start_url=start_url,
        max_products=max_products,
        images_per_product=images_per_product,
        status=FaceScrapeRun.STATUS_PENDING,
        created_by=user if user and user.is_authenticated else None,
    )
    run_in_background(run_scrape, run.id)
    return run


class AlreadyCompletedError(Exception):
    pass


def resume_run(run):
    """Continue an interrupted scrape from its recorded progress"""
    if run.status == FaceScrapeRun.STATUS_COMPLETED:
        raise AlreadyCompletedError('Already completed')
    start_index = run.progress or 0
    _log_run(run.pk, f"Resuming from {start_index}/{run.total}")
    run_in_background(run_scrape, run.pk, start_index)
    return start_index
