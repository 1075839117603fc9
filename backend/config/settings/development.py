"""
Development settings for the Q.Vote project.
"""

from .base import *  # noqa: F403, F401

DEBUG = True

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "0.0.0.0"]
CORS_ALLOW_ALL_ORIGINS = True

INSTALLED_APPS += [  # noqa: F405
    "debug_toolbar",
    "django_extensions",
]

MIDDLEWARE += [  # noqa: F405
    "debug_toolbar.middleware.DebugToolbarMiddleware",
]

INTERNAL_IPS = [
    "127.0.0.1",
    "localhost",
]

SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False

# Rehearsals on one machine hit the per-IP limits quickly
DISABLE_RATE_LIMITING = env.bool("DISABLE_RATE_LIMITING", default=True)  # noqa: F405

# Shorter countdowns make phase changes easy to try by hand
QVOTE = {  # noqa: F405
    **QVOTE,  # noqa: F405
    "SCHEDULE_POLL_SECONDS": env.int("QVOTE_SCHEDULE_POLL_SECONDS", default=5),  # noqa: F405
}

LOGGING["loggers"]["django"]["level"] = "INFO"  # noqa: F405
LOGGING["loggers"]["apps"] = {  # noqa: F405
    "handlers": ["console"],
    "level": "DEBUG",
    "propagate": False,
}
LOGGING["loggers"]["core"] = {  # noqa: F405
    "handlers": ["console"],
    "level": "DEBUG",
    "propagate": False,
}
