"""
Fire-and-forget background work.

Long loops (image generation, site scrapes) run in daemon threads so the
API response isn't delayed. With BACKGROUND_TASKS_ASYNC off (tests,
management commands) the task runs inline instead.
"""
import logging
import threading

from django.conf import settings
from django.db import connection

logger = logging.getLogger(__name__)


def _run_task(target, args, kwargs):
    try:
        target(*args, **kwargs)
    except Exception as e:
        logger.error(f"Background task {getattr(target, '__name__', target)} failed: {str(e)}", exc_info=True)
    finally:
        # Each thread gets its own DB connection; don't leak it
        connection.close()


def run_in_background(target, *args, **kwargs):
    """Start `target(*args, **kwargs)` in a daemon thread, or inline when async is disabled"""
    if not getattr(settings, 'BACKGROUND_TASKS_ASYNC', True):
        target(*args, **kwargs)
        return None

    thread = threading.Thread(
        target=_run_task,
        args=(target, args, kwargs),
        name=f"studio-{getattr(target, '__name__', 'task')}",
    )
    thread.daemon = True  # Daemon thread so it doesn't block program exit
    thread.start()
    return thread
