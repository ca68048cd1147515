"""
Celery tasks for portfolio operations.

This module defines Celery tasks for holdings ingestion. The task is a thin
asynchronous trigger: it runs the same sequential batch as the
ingest_holdings management command and returns the batch summary.

Key tasks:
    - ingest_incoming_holdings_task: Ingest the extracts of a target (async)
"""

from __future__ import annotations

import logging

from celery import shared_task

from apps.portfolios.ingestion.service import IngestionOptions, ingest

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def ingest_incoming_holdings_task(
    self,
    target: str | None = None,
    dry_run: bool = False,
    row_error_policy: str | None = None,
) -> dict:
    """
    Async task to ingest holdings extracts.

    Confirmation is never asked (there is nobody to ask in a worker).

    Args:
        self: Celery task instance (from bind=True).
        target: Directory, file or file name in the incoming directory
            (default: incoming directory).
        dry_run: Validate and parse only.
        row_error_policy: Override of the configured RowErrorPolicy.

    Returns:
        dict: BatchResult.summary() of the run.
    """
    options = IngestionOptions(
        force_confirm=True,
        dry_run=dry_run,
        row_error_policy=row_error_policy,
        processed_by="celery",
    )
    result = ingest(target, options)
    summary = result.summary()
    logger.info(
        "Task %s ingested %d file(s), %d failed",
        self.request.id,
        summary["total_files"],
        summary["failed_files"],
    )
    return summary
