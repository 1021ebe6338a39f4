from celery import Celery

from app.config.settings import settings

# Worker, beat and deferred receipt checks all share this application
celery = Celery(settings.NAME)

# Load configuration from app.config.celeryconfig module
celery.config_from_object("app.config.celeryconfig")
