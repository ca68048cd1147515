"""
Django app configuration for portfolios app.

This app handles portfolio holdings, including:
- Portfolio registry (business id ↔ surrogate UUID)
- Holdings snapshots per extract date
- Spreadsheet extract ingestion pipeline
"""

from __future__ import annotations

from django.apps import AppConfig


class PortfoliosConfig(AppConfig):
    """App configuration for the portfolios app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.portfolios"
