"""
Base Django settings for the Q.Vote project.
"""

from pathlib import Path

import environ

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent

# Initialize environment variables
env = environ.Env(
    DEBUG=(bool, False),
    SECURE_SSL_REDIRECT=(bool, False),
    SESSION_COOKIE_SECURE=(bool, False),
    CSRF_COOKIE_SECURE=(bool, False),
)

# Read .env file
environ.Env.read_env(BASE_DIR / ".env")

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env("SECRET_KEY", default="django-insecure-qvote-local-development-key")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env("DEBUG", default=False)

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["localhost", "127.0.0.1"])

# Application definition
INSTALLED_APPS = [
    "daphne",
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party apps
    "rest_framework",
    "drf_spectacular",
    "corsheaders",
    "channels",
    "django_celery_beat",
    "django_celery_results",
    # Local apps
    "apps.qvote",
    "apps.candidates",
    "apps.votes",
    "apps.verification",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "backend" / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"
ASGI_APPLICATION = "config.asgi.application"

# Database
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": env("DB_NAME", default="qvote"),
        "USER": env("DB_USER", default="qvote"),
        "PASSWORD": env("DB_PASSWORD", default=""),
        "HOST": env("DB_HOST", default="localhost"),
        "PORT": env("DB_PORT", default="5432"),
    }
}

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": (
            "django.contrib.auth.password_validation."
            "UserAttributeSimilarityValidator"
        ),
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "backend" / "staticfiles"

# Media files (candidate photos)
MEDIA_URL = "/media/"
MEDIA_ROOT = BASE_DIR / "backend" / "media"

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Redis Configuration
REDIS_HOST = env("REDIS_HOST", default="localhost")
REDIS_PORT = env.int("REDIS_PORT", default=6379)
REDIS_DB = env.int("REDIS_DB", default=0)

# Cache Configuration (Redis)
CACHES = {
    "default": {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": f"redis://{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}",
        "OPTIONS": {
            "CLIENT_CLASS": "django_redis.client.DefaultClient",
        },
        "KEY_PREFIX": "qvote",
    }
}

# Channels (WebSocket viewers)
CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels_redis.core.RedisChannelLayer",
        "CONFIG": {
            "hosts": [(REDIS_HOST, REDIS_PORT)],
        },
    }
}

# Celery Configuration
CELERY_BROKER_URL = env(
    "CELERY_BROKER_URL", default=f"redis://{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}"
)
CELERY_RESULT_BACKEND = env("CELERY_RESULT_BACKEND", default="django-db")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULER = "django_celery_beat.schedulers:DatabaseScheduler"

# Django REST Framework
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": env("ANON_THROTTLE_RATE", default="2000/hour"),
        "user": env("USER_THROTTLE_RATE", default="5000/hour"),
    },
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "EXCEPTION_HANDLER": "core.exceptions.handlers.custom_exception_handler",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Q.Vote API",
    "DESCRIPTION": "Live voting: phases, candidates, votes and phone verification",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}

# CORS Settings
CORS_ALLOWED_ORIGINS = env.list("CORS_ALLOWED_ORIGINS", default=[])
CORS_ALLOW_CREDENTIALS = True

# Security Settings (override in production.py)
SECURE_SSL_REDIRECT = env("SECURE_SSL_REDIRECT", default=False)
SESSION_COOKIE_SECURE = env("SESSION_COOKIE_SECURE", default=False)
CSRF_COOKIE_SECURE = env("CSRF_COOKIE_SECURE", default=False)

# Q.Vote tunables
QVOTE = {
    "GRACE_PERIOD_SECONDS": env.int("QVOTE_GRACE_PERIOD_SECONDS", default=10),
    "GRACE_ACCEPT_SECONDS": env.int("QVOTE_GRACE_ACCEPT_SECONDS", default=15),
    "SCHEDULE_POLL_SECONDS": env.int("QVOTE_SCHEDULE_POLL_SECONDS", default=10),
    "TABLET_RESET_SECONDS": env.int("QVOTE_TABLET_RESET_SECONDS", default=5),
    "DEFAULT_MAX_SELECTIONS": env.int("QVOTE_DEFAULT_MAX_SELECTIONS", default=3),
    "OTP_LENGTH": env.int("QVOTE_OTP_LENGTH", default=4),
    "OTP_EXPIRY_MINUTES": env.int("QVOTE_OTP_EXPIRY_MINUTES", default=5),
    "SEND_COOLDOWN_SECONDS": env.int("QVOTE_SEND_COOLDOWN_SECONDS", default=60),
    "SEND_WINDOW_LIMIT": env.int("QVOTE_SEND_WINDOW_LIMIT", default=3),
    "SEND_WINDOW_SECONDS": env.int("QVOTE_SEND_WINDOW_SECONDS", default=300),
    "SESSION_TTL_HOURS": env.int("QVOTE_SESSION_TTL_HOURS", default=24),
    "MESSAGE_QUOTA_DEFAULT": env.int("QVOTE_MESSAGE_QUOTA_DEFAULT", default=25),
    "VOTE_RATE_LIMIT_IP": env.int("QVOTE_VOTE_RATE_LIMIT_IP", default=60),
    "VOTE_RATE_LIMIT_VOTER": env.int("QVOTE_VOTE_RATE_LIMIT_VOTER", default=10),
    "RESET_RATE_LIMIT_IP": env.int("QVOTE_RESET_RATE_LIMIT_IP", default=5),
    "RESET_RATE_LIMIT_VOTER": env.int("QVOTE_RESET_RATE_LIMIT_VOTER", default=3),
    "CROSS_PROCESS_EVENTS": env.bool("QVOTE_CROSS_PROCESS_EVENTS", default=True),
}

DISABLE_RATE_LIMITING = env.bool("DISABLE_RATE_LIMITING", default=False)

# Phone verification (INFORU messaging)
INFORU_API_USER = env("INFORU_API_USER", default="")
INFORU_API_TOKEN = env("INFORU_API_TOKEN", default="")
INFORU_SENDER = env("INFORU_SENDER", default="QVote")
INFORU_BASE_URL = env("INFORU_BASE_URL", default="https://capi.inforu.co.il")
INFORU_WHATSAPP_TEMPLATE_HE = env("INFORU_WHATSAPP_TEMPLATE_HE", default="234887")
INFORU_WHATSAPP_TEMPLATE_EN = env("INFORU_WHATSAPP_TEMPLATE_EN", default="234889")
OTP_HASH_SALT = env("OTP_HASH_SALT", default="")

# Logging
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
    },
}
