"""
Django admin configuration for portfolio models.

This module provides admin interfaces for browsing portfolios and the holdings
snapshots committed by ingestion. Holdings are only ever written by the
ingestion writer, so they are read-only here.
"""

from __future__ import annotations

from django.contrib import admin

from apps.portfolios.models import Holding, Portfolio


@admin.register(Portfolio)
class PortfolioAdmin(admin.ModelAdmin):
    """
    Admin interface for Portfolio model.

    Contact fields can be completed here; the business id is fixed by the extracts.
    """

    list_display = [
        "business_portfolio_id",
        "name",
        "client_email",
        "contractor",
        "consultant",
        "created_at",
    ]
    list_filter = ["contractor", "contract_type", "created_at"]
    search_fields = ["business_portfolio_id", "name", "client_email"]
    readonly_fields = ["id", "business_portfolio_id", "created_at", "updated_at"]


@admin.register(Holding)
class HoldingAdmin(admin.ModelAdmin):
    """
    Admin interface for Holding model.

    Read-only: snapshots are replaced as a whole by ingestion.
    """

    list_display = [
        "portfolio",
        "extract_date",
        "row_number",
        "label",
        "isin",
        "currency",
        "valuation_eur",
        "weight_pct",
        "bucket",
    ]
    list_filter = ["extract_date", "bucket", "strategy", "currency"]
    search_fields = ["portfolio__business_portfolio_id", "label", "isin", "asset_name"]
    date_hierarchy = "extract_date"
    ordering = ["-extract_date", "portfolio", "row_number"]

    def has_add_permission(self, request):
        """Disable adding holdings through admin (they are written by ingestion)."""
        return False

    def has_change_permission(self, request, obj=None):
        """Disable editing holdings (snapshots are replaced, never edited)."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Disable deleting holdings outside of ingestion."""
        return False
