"""
Django admin configuration for audit models.

This module provides admin interface for viewing ingestion logs.
Note: IngestionLog is append-only and should never be editable or deletable.
"""

from __future__ import annotations

from django.contrib import admin

from apps.audit.models import IngestionLog


@admin.register(IngestionLog)
class IngestionLogAdmin(admin.ModelAdmin):
    """
    Admin interface for IngestionLog model.

    Provides read-only interface for viewing the ingestion audit trail.
    Ingestion logs are immutable and should never be edited or deleted.
    """

    list_display = [
        "file_name",
        "portfolio",
        "extract_date",
        "status",
        "rows_processed",
        "processed_by",
        "processed_at",
    ]
    list_filter = ["status", "processed_by", "processed_at"]
    search_fields = ["file_name", "file_hash", "portfolio__business_portfolio_id"]
    readonly_fields = [
        "portfolio",
        "file_name",
        "file_hash",
        "extract_date",
        "rows_processed",
        "status",
        "error_message",
        "processed_at",
        "processed_by",
        "metadata",
    ]
    date_hierarchy = "processed_at"

    def has_add_permission(self, request):
        """Disable adding ingestion logs through admin (they are written by ingestion)."""
        return False

    def has_change_permission(self, request, obj=None):
        """Disable editing ingestion logs (they are immutable)."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Disable deleting ingestion logs (they are append-only)."""
        return False
