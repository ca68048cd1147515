"""
Django app configuration for audit app.

Holds the append-only trail of ingestion attempts.
"""

from __future__ import annotations

from django.apps import AppConfig


class AuditConfig(AppConfig):
    """App configuration for the audit app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.audit"
