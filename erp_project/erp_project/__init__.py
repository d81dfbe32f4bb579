# Celery instance is defined in erp_project/celery.py
# celery_app is the task queue app for the whole project
from .celery import celery_app

__all__ = ("celery_app",)

""" Workers are started with "celery -A erp_project worker -l info",
    which imports erp_project/__init__.py and picks up celery_app. """
