"""
Test settings for the Q.Vote project.
"""

from pathlib import Path

from .base import *  # noqa: F403, F401

# Use file-based database for tests in a reliable location
# pytest-django will automatically create tables and run migrations
BASE_DIR = Path(__file__).resolve().parent.parent.parent
TEST_DB = BASE_DIR / "test_db.sqlite3"
# Ensure parent directory exists
TEST_DB.parent.mkdir(parents=True, exist_ok=True)

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": str(TEST_DB),
        "OPTIONS": {
            "timeout": 20,
        },
    }
}

SECRET_KEY = "qvote-test-secret-key"

# Password hashing for tests (faster)
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Disable security features for tests
SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False

# Celery configuration for tests (synchronous execution)
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

# Disable logging during tests
LOGGING_CONFIG = None

# Disable database serialization for tests
TEST_NON_SERIALIZED_APPS = [
    "admin",
    "auth",
    "contenttypes",
    "sessions",
    "django_celery_beat",
    "django_celery_results",
    "apps.qvote",
    "apps.candidates",
    "apps.votes",
    "apps.verification",
]

# Local memory cache: viewer cache hints need a working cache, Redis is not available
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels.layers.InMemoryChannelLayer",
    }
}

# Override Celery configuration for tests (synchronous execution)
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

# No Redis pub/sub fan-out between processes in tests
QVOTE = {**QVOTE, "CROSS_PROCESS_EVENTS": False}  # noqa: F405

# Throttles are exercised explicitly in their own tests
DISABLE_RATE_LIMITING = True
REST_FRAMEWORK = {**REST_FRAMEWORK, "DEFAULT_THROTTLE_CLASSES": []}  # noqa: F405

INFORU_API_USER = "test-user"
INFORU_API_TOKEN = "test-token"

MEDIA_ROOT = BASE_DIR / "test_media"
