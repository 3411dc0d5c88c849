# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Settings, URLs, WSGI/ASGI entry points and the Celery application.
#
# The Celery app is imported here so shared_task decorators bind to it when
# Django starts.
# =============================================================================

from config.celery import app as celery_app

__all__ = ("celery_app",)
