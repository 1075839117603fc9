"""
Celery application for the Q.Vote project.
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.development")

app = Celery("qvote")

# Read CELERY_* keys from Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Pick up tasks.py from every installed app
app.autodiscover_tasks()
