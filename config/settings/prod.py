# config/settings/prod.py
import os

from .base import *  # noqa: F403
from .base import DATABASES

DEBUG = False

# Snapshots are replaced in one transaction; production runs on PostgreSQL
DATABASES["default"]["ENGINE"] = os.environ.get(
    "DB_ENGINE", "django.db.backends.postgresql"
)

SECURE_SSL_REDIRECT = os.environ.get("SECURE_SSL_REDIRECT", "1") == "1"
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_HSTS_SECONDS = int(os.environ.get("SECURE_HSTS_SECONDS", "31536000"))
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True
