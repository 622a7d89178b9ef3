# core/settings.py
"""
Django settings for the bill ledger backend.

Everything deployment-specific comes from environment variables; defaults
are tuned for local development (SQLite, DEBUG off, no external providers).
"""
import os
from datetime import timedelta
from pathlib import Path


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name, default):
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return int(value)


BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-bill-ledger-key")
DEBUG = _env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "bills",
    "dashboard",
]

MIDDLEWARE = [
    "common.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "core.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
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

WSGI_APPLICATION = "core.wsgi.application"

# Database: SQLite unless DB_ENGINE=postgres
if os.getenv("DB_ENGINE", "sqlite").lower() in ("postgres", "postgresql"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB", "bills"),
            "USER": os.getenv("POSTGRES_USER", "postgres"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD", ""),
            "HOST": os.getenv("POSTGRES_HOST", "localhost"),
            "PORT": os.getenv("POSTGRES_PORT", "5432"),
            "CONN_MAX_AGE": _env_int("POSTGRES_CONN_MAX_AGE", 60),
            "OPTIONS": {"sslmode": os.getenv("POSTGRES_SSLMODE", "prefer")},
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.getenv("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Django's own upload buffering; the bill ceiling is enforced by the upload serializer
DATA_UPLOAD_MAX_MEMORY_SIZE = 10 * 1024 * 1024

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
CSRF_TRUSTED_ORIGINS = [FRONTEND_URL]

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "common.authentication.IdentityProviderAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "UNAUTHENTICATED_USER": None,
    "EXCEPTION_HANDLER": "common.exceptions.api_exception_handler",
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Bill Ledger API",
    "DESCRIPTION": "Bill upload, extraction hand-off and GST reporting",
    "VERSION": "1.0.0",
}

# Identity provider (bearer tokens are verified by calling it)
IDENTITY_PROVIDER_URL = os.getenv("IDENTITY_PROVIDER_URL", "")
IDENTITY_PROVIDER_API_KEY = os.getenv("IDENTITY_PROVIDER_API_KEY", "")
IDENTITY_PROVIDER_TIMEOUT = _env_int("IDENTITY_PROVIDER_TIMEOUT", 10)

# Object storage (S3-compatible)
AWS_STORAGE_BUCKET_NAME = os.getenv("AWS_STORAGE_BUCKET_NAME", "bills")
AWS_S3_REGION_NAME = os.getenv("AWS_S3_REGION_NAME", "us-east-1")
AWS_S3_ENDPOINT_URL = os.getenv("AWS_S3_ENDPOINT_URL") or None
AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID") or None
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY") or None
BILLS_PUBLIC_BASE_URL = os.getenv(
    "BILLS_PUBLIC_BASE_URL",
    f"https://{AWS_STORAGE_BUCKET_NAME}.s3.{AWS_S3_REGION_NAME}.amazonaws.com",
)
BILLS_PUBLIC_FETCH_TIMEOUT = _env_int("BILLS_PUBLIC_FETCH_TIMEOUT", 15)

# Extraction workflow hand-off
EXTRACTION_WEBHOOK_URL = os.getenv("EXTRACTION_WEBHOOK_URL", "")
EXTRACTION_WEBHOOK_TIMEOUT = _env_int("EXTRACTION_WEBHOOK_TIMEOUT", 120)
HANDOFF_TOKEN_SECRET = os.getenv("HANDOFF_TOKEN_SECRET", "")
HANDOFF_TOKEN_ISSUER = os.getenv("HANDOFF_TOKEN_ISSUER", "bill-ledger-backend")
HANDOFF_TOKEN_AUDIENCE = os.getenv("HANDOFF_TOKEN_AUDIENCE", "n8n")
HANDOFF_TOKEN_LIFETIME = timedelta(minutes=5)

# Bills
BILL_UPLOAD_MAX_BYTES = _env_int("BILL_UPLOAD_MAX_BYTES", 5 * 1024 * 1024)
BILLS_DEFAULT_LIST_LIMIT = 10
BILLS_MAX_LIST_LIMIT = 100
BILLS_DEFAULT_STATS_PERIOD = 30

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
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
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("DJANGO_LOG_LEVEL", "WARNING").upper(),
            "propagate": False,
        },
    },
}
