"""
Holdings ingestion package.

Reads holdings extracts (fixed 11-column spreadsheets) from the incoming
directory, validates and coerces them, and replaces the matching holdings
snapshot in the database.
"""

from apps.portfolios.ingestion.service import (
    BatchResult,
    FileOutcome,
    IngestionOptions,
    IngestionOrchestrator,
    IngestionSettings,
    ingest,
    ingest_single_file,
)

__all__ = [
    "BatchResult",
    "FileOutcome",
    "IngestionOptions",
    "IngestionOrchestrator",
    "IngestionSettings",
    "ingest",
    "ingest_single_file",
]
