import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "bookhatch.settings")

app = Celery("bookhatch")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
