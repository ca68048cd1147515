"""
Discovery of holdings extracts waiting in a directory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from django.utils import timezone

from apps.portfolios.ingestion.errors import StructureError, ValidationIssue
from libs.choices import FileState

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_EXTENSIONS = (".xlsx", ".xlsm")
DEFAULT_MAX_FILE_SIZE = 50 * 1024 * 1024

# Office lock files created next to an open workbook
LOCK_FILE_PREFIX = "~$"


@dataclass
class SourceFile:
    """An extract found on disk."""

    path: Path
    size: int
    modified_at: datetime
    state: str = FileState.INCOMING

    @property
    def name(self) -> str:
        return self.path.name

    @classmethod
    def from_path(cls, path: str | Path) -> SourceFile:
        path = Path(path)
        stat = path.stat()
        return cls(
            path=path,
            size=stat.st_size,
            modified_at=datetime.fromtimestamp(
                stat.st_mtime, tz=timezone.get_current_timezone()
            ),
        )


@dataclass
class ScanResult:
    files: list[SourceFile] = field(default_factory=list)
    errors: list[ValidationIssue] = field(default_factory=list)


def is_candidate(path: Path, allowed_extensions) -> bool:
    """True for visible, non-lock files with an allowed extension (case-insensitive)."""
    if path.name.startswith(".") or path.name.startswith(LOCK_FILE_PREFIX):
        return False
    allowed = {ext.lower() for ext in allowed_extensions}
    return path.suffix.lower() in allowed


def scan_directory(
    directory: str | Path,
    allowed_extensions=DEFAULT_ALLOWED_EXTENSIONS,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
) -> ScanResult:
    """
    List the extracts of a directory (non-recursive), sorted by file name.

    Files larger than max_file_size are reported as errors and excluded; the
    other files are still returned. A missing directory is a single error.

    Args:
        directory: Directory to scan.
        allowed_extensions: Extensions to keep, e.g. (".xlsx", ".xlsm").
        max_file_size: Maximum size in bytes.

    Returns:
        ScanResult: Files found and errors.
    """
    directory = Path(directory)
    result = ScanResult()

    if not directory.is_dir():
        result.errors.append(
            StructureError(f"Directory not found: {directory}").to_issue()
        )
        return result

    for path in sorted(directory.iterdir(), key=lambda p: p.name):
        if not path.is_file() or not is_candidate(path, allowed_extensions):
            continue

        try:
            source = SourceFile.from_path(path)
        except OSError as e:
            result.errors.append(
                StructureError(f"Cannot read {path.name}: {e}").to_issue()
            )
            continue

        if source.size > max_file_size:
            result.errors.append(
                StructureError(
                    f"File {path.name} is {source.size} bytes, above the "
                    f"{max_file_size} bytes limit",
                    code="FILE_TOO_LARGE",
                ).to_issue()
            )
            continue

        result.files.append(source)

    logger.info(
        "Scanned %s: %d file(s), %d error(s)",
        directory,
        len(result.files),
        len(result.errors),
    )
    return result
