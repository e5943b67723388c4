# Celery instance lives in bk_project/celery.py
# Importing it here makes sure the app is loaded whenever Django starts,
# so @shared_task picks it up
from .celery import celery_app

__all__ = ("celery_app",)

""" Worker: "celery -A bk_project worker -l info"
    Beat (overdue sweep): "celery -A bk_project beat -l info" """
