"""
File lifecycle of holdings extracts.

After ingestion, a source file leaves the incoming directory: successful files
go to the processed directory, failed ones to the error directory. Move
failures are reported, never raised, so they cannot undo a committed write.
"""

from __future__ import annotations

import errno
import logging
import shutil
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from django.utils import timezone

from apps.portfolios.ingestion.errors import FileOperationError, ValidationIssue
from apps.portfolios.ingestion.utils import sanitize_identifier
from libs.choices import FileState

logger = logging.getLogger(__name__)


@dataclass
class MoveResult:
    source: Path
    destination: Path | None = None
    state: str = FileState.INCOMING
    error: FileOperationError | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_issue(self) -> ValidationIssue | None:
        return self.error.to_issue() if self.error else None


def _timestamp(now=None) -> str:
    now = now or timezone.now()
    return now.strftime("%Y-%m-%dT%H-%M-%S-%f")


def available_path(path: Path) -> Path:
    """Return path, or path with a numeric suffix if it already exists."""
    if not path.exists():
        return path
    counter = 1
    while True:
        candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


def move_file(source: Path, destination: Path) -> None:
    """
    Move a file, copying then deleting when the rename crosses devices.

    Raises:
        OSError: If the move fails.
    """
    try:
        source.rename(destination)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        logger.info("Cross-device move of %s, copying then deleting", source)
        shutil.copy2(source, destination)
        source.unlink()


class FileLifecycleManager:
    """
    Moves ingested files to the processed or error directory.

    Args:
        processed_dir: Destination of successfully ingested files.
        error_dir: Destination of failed files.
    """

    def __init__(self, processed_dir: str | Path, error_dir: str | Path):
        self.processed_dir = Path(processed_dir)
        self.error_dir = Path(error_dir)

    def archive(
        self, path: str | Path, business_portfolio_id: str, extract_date: date
    ) -> MoveResult:
        """
        Move a successfully ingested file to the processed directory.

        The file is renamed <stem>_<portfolio id>_<YYYY-MM-DD>_<timestamp><ext>,
        with the portfolio id sanitized for the file system.
        """
        path = Path(path)
        name = (
            f"{path.stem}_{sanitize_identifier(business_portfolio_id)}_"
            f"{extract_date.isoformat()}_{_timestamp()}{path.suffix}"
        )
        return self._move(path, self.processed_dir / name, FileState.PROCESSED)

    def reject(self, path: str | Path) -> MoveResult:
        """Move a failed file to the error directory as <stem>_ERROR_<timestamp><ext>."""
        path = Path(path)
        name = f"{path.stem}_ERROR_{_timestamp()}{path.suffix}"
        return self._move(path, self.error_dir / name, FileState.ERROR)

    def _move(self, source: Path, destination: Path, state: str) -> MoveResult:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination = available_path(destination)
            move_file(source, destination)
        except OSError as e:
            error = FileOperationError(
                f"Failed to move {source.name} to {destination.parent}: {e}",
                code="MOVE_FAILED",
            )
            logger.error(error.message)
            return MoveResult(source=source, error=error)

        logger.info("Moved %s to %s", source.name, destination)
        return MoveResult(source=source, destination=destination, state=state)
