"""
Audit logging models for tracking ingestion attempts.

This module provides the audit trail of holdings ingestion: which file was
ingested for which portfolio and extract date, how many rows were committed,
and how the attempt ended.

Key components:
- IngestionLog: Immutable audit log entry for one ingestion attempt
"""

from __future__ import annotations

from django.db import models
from django.utils.translation import gettext_lazy as _

from libs.choices import IngestionStatus


class IngestionLog(models.Model):
    """
    Immutable audit log entry for one ingestion attempt.

    One entry is appended per ingested file, whatever the outcome. Entries are
    written outside the holdings transaction, so a committed snapshot never
    depends on its audit entry.

    Attributes:
        portfolio (Portfolio, optional): Portfolio the file was ingested into
            (None when the portfolio could not be determined or does not exist).
        file_name (str): Name of the source file.
        file_hash (str, optional): SHA256 of the source file.
        extract_date (date, optional): Extract date read from the file.
        rows_processed (int): Number of rows committed.
        status (str): success, partial or error.
        error_message (str, optional): Error summary for failed attempts.
        processed_at (datetime): When the attempt was recorded.
        processed_by (str): Actor label (e.g. 'ingestion-cli', 'celery').
        metadata (dict): Additional context as JSON.

    Example:
        >>> IngestionLog.objects.create(
        ...     portfolio=portfolio,
        ...     file_name="extract.xlsx",
        ...     extract_date=date(2025, 1, 31),
        ...     rows_processed=42,
        ...     status=IngestionStatus.SUCCESS,
        ... )

    Note:
        This model is append-only. Never update or delete ingestion logs.
    """

    portfolio = models.ForeignKey(
        "portfolios.Portfolio",
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="ingestion_logs",
        help_text="Portfolio the file was ingested into.",
    )
    file_name = models.CharField(_("File Name"), max_length=255)
    file_hash = models.CharField(
        _("File Hash"), max_length=64, blank=True, null=True
    )
    extract_date = models.DateField(_("Extract Date"), blank=True, null=True)
    rows_processed = models.IntegerField(_("Rows Processed"), default=0)
    status = models.CharField(
        _("Status"),
        max_length=20,
        choices=IngestionStatus.choices,
        db_index=True,
    )
    error_message = models.TextField(_("Error Message"), blank=True, null=True)
    processed_at = models.DateTimeField(
        _("Processed At"), auto_now_add=True, db_index=True
    )
    processed_by = models.CharField(
        _("Processed By"), max_length=100, default="ingestion-cli"
    )
    metadata = models.JSONField(
        _("Metadata"),
        default=dict,
        blank=True,
        help_text="Additional context (stage reached, warnings, moved file path).",
    )

    class Meta:
        verbose_name = _("Ingestion Log")
        verbose_name_plural = _("Ingestion Logs")
        ordering = ["-processed_at"]
        indexes = [
            models.Index(
                fields=["portfolio", "extract_date"],
                name="audit_inges_portfol_3c7f8e_idx",
            ),
            models.Index(
                fields=["status", "processed_at"], name="audit_inges_status_a41b9d_idx"
            ),
        ]

    def __str__(self) -> str:
        portfolio_str = self.portfolio.business_portfolio_id if self.portfolio else "?"
        return f"{self.file_name} → {portfolio_str} [{self.status}] at {self.processed_at}"
