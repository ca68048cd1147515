"""
Shared choices/constants used across multiple Django apps.

This module provides common TextChoices and constants that are used
by multiple apps to ensure consistency and avoid duplication.

Key principles:
- Only include choices that are used by 2+ apps
- Keep choices generic enough to be reusable
- Document when choices are app-specific vs shared
"""

from __future__ import annotations

from django.db import models
from django.utils.translation import gettext_lazy as _


class IngestionStatus(models.TextChoices):
    """
    Outcome of one ingestion attempt.

    Used by:
    - IngestionLog (audit app)
    - FileOutcome (portfolios ingestion service)
    """

    SUCCESS = "success", _("Success")
    ERROR = "error", _("Error")
    PARTIAL = "partial", _("Partial")  # Committed, but some rows were rejected


class IngestionStage(models.TextChoices):
    """
    Per-file state machine of the ingestion orchestrator.

    Flow:
    DISCOVERED → VALIDATED → PARSED → TRANSFORMED → COMMITTED → ARCHIVED
    FAILED is reachable from every non-terminal stage.
    """

    DISCOVERED = "discovered", _("Discovered")
    VALIDATED = "validated", _("Validated")
    PARSED = "parsed", _("Parsed")
    TRANSFORMED = "transformed", _("Transformed")
    COMMITTED = "committed", _("Committed")
    ARCHIVED = "archived", _("Archived")
    FAILED = "failed", _("Failed")


class FileState(models.TextChoices):
    """Where a source file currently rests."""

    INCOMING = "incoming", _("Incoming")
    PROCESSED = "processed", _("Processed")
    ERROR = "error", _("Error")


class Severity(models.TextChoices):
    """Severity of a validation issue. Only ERROR blocks."""

    ERROR = "ERROR", _("Error")
    WARNING = "WARNING", _("Warning")


class IssueKind(models.TextChoices):
    """Category of a validation issue, mirroring the error taxonomy."""

    STRUCTURE = "STRUCTURE", _("Structure")
    HEADER = "HEADER", _("Header")
    CELL_EXTRACTION = "CELL_EXTRACTION", _("Cell extraction")
    DATA = "DATA", _("Data transformation")
    SPECIAL_CELL = "SPECIAL_CELL", _("Special cell")
    DATABASE = "DATABASE", _("Database")
    FILE_OPERATION = "FILE_OPERATION", _("File operation")


class RowErrorPolicy(models.TextChoices):
    """
    What the orchestrator does with rows carrying ERROR-severity issues.

    FAIL fails the whole file, SKIP commits the clean rows only, KEEP commits
    every row with the failed fields left empty.
    """

    FAIL = "fail", _("Fail file")
    SKIP = "skip", _("Skip row")
    KEEP = "keep", _("Keep row")


class RenamePolicy(models.TextChoices):
    """How an existing portfolio reacts to a different display name."""

    OVERWRITE = "overwrite", _("Overwrite")
    KEEP = "keep", _("Keep existing")
