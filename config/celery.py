import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("courtbook")

# Broker, timezone and beat_schedule come from CELERY_* settings.
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
