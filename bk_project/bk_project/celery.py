from __future__ import annotations
import os
from celery import Celery
from celery.schedules import crontab

# ensure Django settings are set for Celery
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "bk_project.settings")

celery_app = Celery("bk_project")

# read config from Django settings, using CELERY_ prefix
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# autoload tasks from installed apps
celery_app.autodiscover_tasks()

# Daily overdue sweep across every company
celery_app.conf.beat_schedule = {
    "mark-overdue-documents": {
        "task": "billing_core.tasks.mark_overdue_documents",
        "schedule": crontab(hour=1, minute=0),
    },
}
