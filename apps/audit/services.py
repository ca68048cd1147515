"""
Audit trail of holdings ingestion.

Every ingestion attempt outside dry-run appends one IngestionLog, whatever its
outcome. Recording is best-effort: the entry is written in its own savepoint,
outside the holdings transaction, and a failure to write it is logged and
swallowed so it can never fail an ingestion.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from django.db import DatabaseError, transaction

from apps.audit.models import IngestionLog
from apps.portfolios.models import Portfolio

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Appends IngestionLog entries.

    Args:
        processed_by: Actor label stored on every entry (e.g. 'ingestion-cli').
    """

    def __init__(self, processed_by: str = "ingestion-cli"):
        self.processed_by = processed_by

    def record(
        self,
        business_portfolio_id: str | None,
        file_name: str,
        extract_date: date | None,
        rows_processed: int,
        status: str,
        error_message: str | None = None,
        file_hash: str | None = None,
        metadata: dict[str, Any] | None = None,
        processed_by: str | None = None,
    ) -> IngestionLog | None:
        """
        Append one ingestion log entry.

        The entry is linked to the portfolio when business_portfolio_id names an
        existing portfolio; otherwise the business id is kept in metadata.

        Returns:
            IngestionLog, or None if the entry could not be written.
        """
        metadata = dict(metadata or {})
        try:
            with transaction.atomic():
                portfolio = None
                if business_portfolio_id:
                    portfolio = Portfolio.objects.filter(
                        business_portfolio_id=business_portfolio_id
                    ).first()
                    metadata.setdefault("business_portfolio_id", business_portfolio_id)

                return IngestionLog.objects.create(
                    portfolio=portfolio,
                    file_name=file_name,
                    file_hash=file_hash,
                    extract_date=extract_date,
                    rows_processed=rows_processed,
                    status=status,
                    error_message=error_message,
                    processed_by=processed_by or self.processed_by,
                    metadata=metadata,
                )
        except (DatabaseError, ValueError, TypeError) as e:
            logger.error("Failed to record ingestion log for %s: %s", file_name, e)
            return None
