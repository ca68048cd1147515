"""
Base Django settings shared by every environment.

Environment-specific modules (dev, prod, test) import everything from here and
override what they need. Values that change between deployments are read from
environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-dev-key-change-me")
DEBUG = os.environ.get("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = [
    host for host in os.environ.get("DJANGO_ALLOWED_HOSTS", "").split(",") if host
]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "djmoney",
    "apps.portfolios",
    "apps.audit",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
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
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": os.environ.get("DB_ENGINE", "django.db.backends.sqlite3"),
        "NAME": os.environ.get("DB_NAME", str(BASE_DIR / "db.sqlite3")),
        "USER": os.environ.get("DB_USER", ""),
        "PASSWORD": os.environ.get("DB_PASSWORD", ""),
        "HOST": os.environ.get("DB_HOST", ""),
        "PORT": os.environ.get("DB_PORT", ""),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "fr-fr"
TIME_ZONE = "Europe/Paris"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

# django-money: holdings are reported in EUR, source currencies are free text
DEFAULT_CURRENCY = "EUR"
CURRENCIES = ("EUR", "USD", "GBP", "CHF", "JPY")

# Celery
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]

# Holdings ingestion
INGESTION_ROOT = Path(os.environ.get("INGESTION_ROOT", str(BASE_DIR / "data" / "excel")))

HOLDINGS_INGESTION = {
    "INCOMING_DIR": os.environ.get(
        "INGESTION_INCOMING_DIR", str(INGESTION_ROOT / "incoming")
    ),
    "PROCESSED_DIR": os.environ.get(
        "INGESTION_PROCESSED_DIR", str(INGESTION_ROOT / "processed")
    ),
    "ERROR_DIR": os.environ.get("INGESTION_ERROR_DIR", str(INGESTION_ROOT / "error")),
    "ALLOWED_EXTENSIONS": [
        ext.strip().lower()
        for ext in os.environ.get("INGESTION_ALLOWED_EXTENSIONS", ".xlsx,.xlsm").split(",")
        if ext.strip()
    ],
    # 50 MB
    "MAX_FILE_SIZE": int(os.environ.get("INGESTION_MAX_FILE_SIZE", str(50 * 1024 * 1024))),
    "STRICT_HEADERS": os.environ.get("INGESTION_STRICT_HEADERS", "0") == "1",
    # fail | skip | keep
    "ROW_ERROR_POLICY": os.environ.get("INGESTION_ROW_ERROR_POLICY", "skip"),
    # overwrite | keep
    "RENAME_POLICY": os.environ.get("INGESTION_RENAME_POLICY", "overwrite"),
    "PROCESSED_BY": os.environ.get("INGESTION_PROCESSED_BY", "ingestion-cli"),
    # Extract dates outside these years are rejected
    "MIN_EXTRACT_YEAR": int(os.environ.get("INGESTION_MIN_EXTRACT_YEAR", "2000")),
    "MAX_EXTRACT_YEAR": int(os.environ.get("INGESTION_MAX_EXTRACT_YEAR", "2050")),
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} [{name}] {message}",
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
        "level": "WARNING",
    },
    "loggers": {
        "apps": {
            "handlers": ["console"],
            "level": os.environ.get("INGESTION_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
