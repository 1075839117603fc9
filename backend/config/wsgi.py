"""
WSGI entrypoint for the Q.Vote project (HTTP only, no live viewers).
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.development")

application = get_wsgi_application()
