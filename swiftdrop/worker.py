"""Celery entry point: ``celery -A swiftdrop.worker:celery worker -B``."""

from swiftdrop import create_app
from swiftdrop.celery_app import create_celery_app

flask_app = create_app()
celery = create_celery_app(flask_app)

import swiftdrop.tasks.order_tasks  # noqa: E402,F401  registers the shared tasks
