"""
Drop cached coverage and review-progress aggregates.

Usage:
    python manage.py clear_caches
    python manage.py clear_caches --all
"""
from django.core.management.base import BaseCommand
from django.core.cache import cache
from django.conf import settings

from studio.core.cache_utils import invalidate_all_coverage, invalidate_cache_pattern


class Command(BaseCommand):
    help = 'Invalidate cached library coverage and review progress'

    def add_arguments(self, parser):
        parser.add_argument('--all', action='store_true', help='Clear the whole cache, not just aggregates')

    def handle(self, *args, **options):
        self.stdout.write(f"Cache Backend: {settings.CACHES['default']['BACKEND']}")

        if options['all']:
            cache.clear()
            self.stdout.write(self.style.SUCCESS('Cleared entire cache'))
            return

        invalidate_all_coverage()
        invalidate_cache_pattern("review_progress")
        self.stdout.write(self.style.SUCCESS('Invalidated coverage and review progress caches'))
