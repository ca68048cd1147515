"""
Holdings ingestion service.

Drives extracts from the incoming directory into the database, one file at a
time. Each file walks a small state machine:

    discovered → validated → parsed → transformed → committed → archived

with `failed` reachable from every non-terminal stage. Failed files are moved to
the error directory, committed files to the processed directory, and every
attempt (outside dry-run) is recorded in the audit trail.

Key features:
- Structural validation before any parsing (can be skipped)
- Row-level error accumulation with a configurable row error policy
- Atomic delete-and-replace of the (portfolio, extract_date) snapshot
- Dry-run: stops after transformation, touches neither database nor files
- Explicit collaborators: writer, audit logger and lifecycle manager are injected
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

from django.conf import settings
from django.utils import timezone

from apps.audit.services import AuditLogger
from apps.portfolios.ingestion.errors import (
    HoldingsWriteError,
    StructureError,
    ValidationIssue,
)
from apps.portfolios.ingestion.lifecycle import FileLifecycleManager
from apps.portfolios.ingestion.rows import HoldingRow, parse_sheet
from apps.portfolios.ingestion.scanner import (
    ScanResult,
    SourceFile,
    is_candidate,
    scan_directory,
)
from apps.portfolios.ingestion.structure import validate_structure
from apps.portfolios.ingestion.transforms import (
    EXTRACT_YEAR_RANGE,
    LocaleTransformer,
    TransformationOptions,
)
from apps.portfolios.ingestion.utils import compute_file_hash
from apps.portfolios.ingestion.workbook import load_extract
from apps.portfolios.ingestion.writer import HoldingsWriter
from libs.choices import (
    IngestionStage,
    IngestionStatus,
    RenamePolicy,
    RowErrorPolicy,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    IngestionStage.DISCOVERED: {IngestionStage.VALIDATED, IngestionStage.FAILED},
    IngestionStage.VALIDATED: {IngestionStage.PARSED, IngestionStage.FAILED},
    IngestionStage.PARSED: {IngestionStage.TRANSFORMED, IngestionStage.FAILED},
    IngestionStage.TRANSFORMED: {IngestionStage.COMMITTED, IngestionStage.FAILED},
    IngestionStage.COMMITTED: {IngestionStage.ARCHIVED, IngestionStage.FAILED},
    IngestionStage.ARCHIVED: set(),
    IngestionStage.FAILED: set(),
}


class InvalidStageTransition(Exception):
    """Raised when a file outcome is moved to a stage its current stage cannot reach."""


@dataclass(frozen=True)
class IngestionSettings:
    """
    Ingestion configuration, read from settings.HOLDINGS_INGESTION.

    Attributes:
        incoming_dir: Directory scanned for new extracts.
        processed_dir: Destination of committed extracts.
        error_dir: Destination of failed extracts.
        allowed_extensions: Extensions picked up by the scanner.
        max_file_size: Maximum extract size in bytes.
        strict_headers: Header text mismatches are errors instead of warnings.
        row_error_policy: Default RowErrorPolicy.
        rename_policy: RenamePolicy for existing portfolios.
        processed_by: Default actor label of audit entries.
        extract_year_range: Inclusive (first, last) years accepted for extract dates.
    """

    incoming_dir: Path
    processed_dir: Path
    error_dir: Path
    allowed_extensions: tuple[str, ...] = (".xlsx", ".xlsm")
    max_file_size: int = 50 * 1024 * 1024
    strict_headers: bool = False
    row_error_policy: str = RowErrorPolicy.SKIP
    rename_policy: str = RenamePolicy.OVERWRITE
    processed_by: str = "ingestion-cli"
    extract_year_range: tuple[int, int] = EXTRACT_YEAR_RANGE

    @classmethod
    def from_django(cls) -> IngestionSettings:
        config = getattr(settings, "HOLDINGS_INGESTION", {})
        root = Path(getattr(settings, "INGESTION_ROOT", Path("data") / "excel"))
        return cls(
            incoming_dir=Path(config.get("INCOMING_DIR", root / "incoming")),
            processed_dir=Path(config.get("PROCESSED_DIR", root / "processed")),
            error_dir=Path(config.get("ERROR_DIR", root / "error")),
            allowed_extensions=tuple(
                config.get("ALLOWED_EXTENSIONS", cls.allowed_extensions)
            ),
            max_file_size=int(config.get("MAX_FILE_SIZE", cls.max_file_size)),
            strict_headers=bool(config.get("STRICT_HEADERS", cls.strict_headers)),
            row_error_policy=RowErrorPolicy(
                config.get("ROW_ERROR_POLICY", cls.row_error_policy)
            ),
            rename_policy=RenamePolicy(config.get("RENAME_POLICY", cls.rename_policy)),
            processed_by=config.get("PROCESSED_BY", cls.processed_by),
            extract_year_range=(
                int(config.get("MIN_EXTRACT_YEAR", cls.extract_year_range[0])),
                int(config.get("MAX_EXTRACT_YEAR", cls.extract_year_range[1])),
            ),
        )


@dataclass(frozen=True)
class IngestionOptions:
    """
    Per-run switches.

    Attributes:
        force_confirm: Do not ask for confirmation before processing.
        dry_run: Stop after transformation; no database write, no file move.
        skip_validation: Skip structural validation.
        continue_on_error: Keep processing the batch after a failed file.
        strict_headers: Override IngestionSettings.strict_headers (None keeps it).
        row_error_policy: Override IngestionSettings.row_error_policy (None keeps it).
        processed_by: Override the actor label of audit entries (None keeps it).
    """

    force_confirm: bool = False
    dry_run: bool = False
    skip_validation: bool = False
    continue_on_error: bool = True
    strict_headers: bool | None = None
    row_error_policy: str | None = None
    processed_by: str | None = None


@dataclass
class FileOutcome:
    """
    Result of ingesting one file, including its stage history.

    A file ends in `archived` or `failed`, except when its holdings were
    committed but the move to the processed directory failed: the outcome then
    rests at `committed` with the move error in `file_errors`, and
    `archive_pending` is true. The file is left where it was for a manual move.
    """

    file_path: Path
    file_name: str
    stage: str = IngestionStage.DISCOVERED
    history: list[str] = field(default_factory=lambda: [IngestionStage.DISCOVERED])
    status: str | None = None
    dry_run: bool = False
    file_hash: str | None = None
    portfolio_id: str | None = None
    extract_date: date | None = None
    portfolio_uuid: Any = None
    created_portfolio: bool = False
    rows_processed: int = 0
    rows_empty: int = 0
    rows_with_errors: int = 0
    rows_deleted: int = 0
    issues: list[ValidationIssue] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    file_errors: list[str] = field(default_factory=list)
    moved_to: Path | None = None
    processing_time_ms: int = 0

    def advance(self, stage: str) -> None:
        """
        Move to the next stage.

        Raises:
            InvalidStageTransition: If stage is not reachable from the current stage.
        """
        if stage not in ALLOWED_TRANSITIONS[self.stage]:
            raise InvalidStageTransition(
                f"{self.file_name}: cannot go from {self.stage} to {stage}"
            )
        self.stage = stage
        self.history.append(stage)

    def fail(self, message: str, issues=()) -> None:
        self.errors.append(message)
        self.issues.extend(issues)
        self.status = IngestionStatus.ERROR
        self.advance(IngestionStage.FAILED)

    @property
    def failed(self) -> bool:
        return self.stage == IngestionStage.FAILED

    @property
    def archive_pending(self) -> bool:
        return self.stage == IngestionStage.COMMITTED and not self.dry_run

    @property
    def error_issues(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.is_error]

    @property
    def warning_issues(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if not issue.is_error]

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_name": self.file_name,
            "stage": str(self.stage),
            "history": [str(stage) for stage in self.history],
            "status": str(self.status) if self.status else None,
            "dry_run": self.dry_run,
            "archive_pending": self.archive_pending,
            "portfolio_id": self.portfolio_id,
            "extract_date": self.extract_date.isoformat() if self.extract_date else None,
            "portfolio_uuid": str(self.portfolio_uuid) if self.portfolio_uuid else None,
            "created_portfolio": self.created_portfolio,
            "rows_processed": self.rows_processed,
            "rows_empty": self.rows_empty,
            "rows_with_errors": self.rows_with_errors,
            "rows_deleted": self.rows_deleted,
            "errors": list(self.errors),
            "file_errors": list(self.file_errors),
            "warnings": len(self.warning_issues),
            "moved_to": str(self.moved_to) if self.moved_to else None,
            "processing_time_ms": self.processing_time_ms,
        }


@dataclass
class BatchResult:
    """Result of an ingestion run over one or more files."""

    outcomes: list[FileOutcome] = field(default_factory=list)
    errors: list[ValidationIssue] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    cancelled: bool = False

    @property
    def total_files(self) -> int:
        return len(self.outcomes)

    @property
    def successful_files(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.failed)

    @property
    def failed_files(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.failed)

    @property
    def total_rows_processed(self) -> int:
        return sum(outcome.rows_processed for outcome in self.outcomes)

    @property
    def total_errors(self) -> int:
        return len(self.errors) + sum(
            len(outcome.errors) + len(outcome.error_issues) for outcome in self.outcomes
        )

    @property
    def success(self) -> bool:
        return not self.cancelled and not self.errors and self.failed_files == 0

    def summary(self) -> dict[str, Any]:
        duration_ms = None
        if self.started_at and self.finished_at:
            duration_ms = int((self.finished_at - self.started_at).total_seconds() * 1000)
        return {
            "total_files": self.total_files,
            "successful_files": self.successful_files,
            "failed_files": self.failed_files,
            "total_rows_processed": self.total_rows_processed,
            "total_errors": self.total_errors,
            "cancelled": self.cancelled,
            "errors": [str(issue) for issue in self.errors],
            "duration_ms": duration_ms,
            "files": [outcome.to_dict() for outcome in self.outcomes],
        }


def _record(row: HoldingRow) -> dict[str, Any]:
    return {"row_number": row.row_number, **row.values()}


class IngestionOrchestrator:
    """
    Runs the ingestion pipeline over files.

    Args:
        config: IngestionSettings (directories, defaults).
        writer: HoldingsWriter used for the delete-and-replace transaction.
        audit: AuditLogger recording each attempt.
        lifecycle: FileLifecycleManager moving files after ingestion.
        transformer: LocaleTransformer used to coerce cell values.
        log: Logger to report progress to.

    Example:
        >>> orchestrator = IngestionOrchestrator(IngestionSettings.from_django())
        >>> result = orchestrator.ingest(options=IngestionOptions(force_confirm=True))
        >>> result.summary()["successful_files"]
    """

    def __init__(
        self,
        config: IngestionSettings,
        writer: HoldingsWriter | None = None,
        audit: AuditLogger | None = None,
        lifecycle: FileLifecycleManager | None = None,
        transformer: LocaleTransformer | None = None,
        log: logging.Logger | None = None,
    ):
        self.config = config
        self.writer = writer or HoldingsWriter(config.rename_policy)
        self.audit = audit or AuditLogger(config.processed_by)
        self.lifecycle = lifecycle or FileLifecycleManager(
            config.processed_dir, config.error_dir
        )
        self.transformer = transformer or LocaleTransformer(
            TransformationOptions(extract_year_range=config.extract_year_range)
        )
        self.log = log or logger

    def resolve_targets(self, target: str | Path | None = None) -> ScanResult:
        """
        Resolve an ingestion target into the files to process.

        Args:
            target: Directory, file path, file name relative to the incoming
                directory, or None for the incoming directory.
        """
        if target is None:
            path = self.config.incoming_dir
        else:
            path = Path(target)
            if not path.exists() and not path.is_absolute():
                path = self.config.incoming_dir / path

        if path.is_dir():
            return scan_directory(
                path, self.config.allowed_extensions, self.config.max_file_size
            )

        result = ScanResult()
        if not path.is_file():
            result.errors.append(
                StructureError(f"File not found: {target}").to_issue()
            )
        elif not is_candidate(path, self.config.allowed_extensions):
            result.errors.append(
                StructureError(
                    f"Unsupported file {path.name}, expected one of "
                    f"{', '.join(self.config.allowed_extensions)}"
                ).to_issue()
            )
        else:
            source = SourceFile.from_path(path)
            if source.size > self.config.max_file_size:
                result.errors.append(
                    StructureError(
                        f"File {path.name} is {source.size} bytes, above the "
                        f"{self.config.max_file_size} bytes limit",
                        code="FILE_TOO_LARGE",
                    ).to_issue()
                )
            else:
                result.files.append(source)
        return result

    def ingest(
        self,
        target: str | Path | None = None,
        options: IngestionOptions | None = None,
        confirm: Callable[[list[SourceFile]], bool] | None = None,
    ) -> BatchResult:
        """
        Ingest every file of a target, sequentially.

        Args:
            target: See resolve_targets().
            options: IngestionOptions (defaults if None).
            confirm: Called with the files found when neither force_confirm nor
                dry_run is set; returning False cancels the run.

        Returns:
            BatchResult: Per-file outcomes and batch-level errors.
        """
        options = options or IngestionOptions()
        batch = BatchResult(started_at=timezone.now())

        scan = self.resolve_targets(target)
        batch.errors.extend(scan.errors)
        for issue in scan.errors:
            self.log.error("Scan error: %s", issue.message)

        if not scan.files:
            self.log.info("No files to ingest")
            batch.finished_at = timezone.now()
            return batch

        if not options.force_confirm and not options.dry_run and confirm is not None:
            if not confirm(scan.files):
                self.log.info("Ingestion cancelled before processing")
                batch.cancelled = True
                batch.finished_at = timezone.now()
                return batch

        for source in scan.files:
            outcome = self.ingest_single_file(source.path, options)
            batch.outcomes.append(outcome)
            if outcome.failed and not options.continue_on_error:
                self.log.warning(
                    "Stopping batch after failure of %s (%d file(s) not processed)",
                    outcome.file_name,
                    len(scan.files) - len(batch.outcomes),
                )
                break

        batch.finished_at = timezone.now()
        self.log.info(
            "Ingestion finished: %d/%d file(s) succeeded, %d row(s)",
            batch.successful_files,
            batch.total_files,
            batch.total_rows_processed,
        )
        return batch

    def ingest_single_file(
        self, path: str | Path, options: IngestionOptions | None = None
    ) -> FileOutcome:
        """
        Ingest one file through the whole state machine.

        Never raises for problems of the file itself: they end in a failed
        outcome, and the file is moved to the error directory (outside dry-run).
        """
        options = options or IngestionOptions()
        path = Path(path)
        outcome = FileOutcome(file_path=path, file_name=path.name, dry_run=options.dry_run)
        started = time.perf_counter()
        self.log.info("Ingesting %s%s", path.name, " (dry run)" if options.dry_run else "")

        try:
            self._run(outcome, options)
        except Exception as e:
            self.log.exception("Unexpected error while ingesting %s", path.name)
            message = f"Unexpected error: {e}"
            if outcome.stage in (IngestionStage.COMMITTED, IngestionStage.ARCHIVED):
                outcome.errors.append(message)
            elif not outcome.failed:
                self._fail(outcome, options, message)

        outcome.processing_time_ms = int((time.perf_counter() - started) * 1000)
        return outcome

    def _run(self, outcome: FileOutcome, options: IngestionOptions) -> None:
        path = outcome.file_path
        strict_headers = (
            self.config.strict_headers
            if options.strict_headers is None
            else options.strict_headers
        )
        policy = RowErrorPolicy(options.row_error_policy or self.config.row_error_policy)

        # discovered → validated
        try:
            outcome.file_hash = compute_file_hash(path)
            sheet = load_extract(path)
        except OSError as e:
            self._fail(outcome, options, f"Cannot read {path.name}: {e}")
            return
        except StructureError as e:
            self._fail(outcome, options, e.message, [e.to_issue()])
            return

        if options.skip_validation and sheet is not None:
            self.log.warning("Skipping structure validation of %s", path.name)
        else:
            report = validate_structure(sheet, strict_headers=strict_headers)
            outcome.issues.extend(report.issues)
            if not report.is_valid:
                self._fail(
                    outcome,
                    options,
                    f"Invalid structure: {'; '.join(i.message for i in report.errors)}",
                )
                return
        outcome.advance(IngestionStage.VALIDATED)

        # validated → parsed
        parsed = parse_sheet(sheet, self.transformer)
        outcome.portfolio_id = parsed.portfolio_id
        outcome.extract_date = parsed.extract_date
        outcome.rows_empty = parsed.stats.empty_rows
        outcome.rows_with_errors = parsed.stats.rows_with_errors
        outcome.issues.extend(parsed.issues)
        if parsed.has_special_cell_errors:
            self._fail(
                outcome,
                options,
                "Invalid special cells: "
                + "; ".join(i.message for i in parsed.special_cell_issues if i.is_error),
            )
            return
        outcome.advance(IngestionStage.PARSED)

        # parsed → transformed
        if not parsed.rows:
            self._fail(outcome, options, "Extract contains no holding rows")
            return
        error_rows = parsed.error_rows
        if error_rows and policy == RowErrorPolicy.FAIL:
            self._fail(
                outcome,
                options,
                f"{len(error_rows)} row(s) with errors, first at row "
                f"{error_rows[0].row_number}",
            )
            return
        rows = parsed.clean_rows if policy == RowErrorPolicy.SKIP else parsed.rows
        if not rows:
            self._fail(outcome, options, "Every holding row has errors")
            return
        records = [_record(row) for row in rows]
        outcome.status = (
            IngestionStatus.PARTIAL if error_rows else IngestionStatus.SUCCESS
        )
        outcome.advance(IngestionStage.TRANSFORMED)

        if options.dry_run:
            outcome.rows_processed = len(records)
            self.log.info(
                "Dry run: %s would replace %s on %s with %d row(s)",
                path.name,
                parsed.portfolio_id,
                parsed.extract_date,
                len(records),
            )
            return

        # transformed → committed
        try:
            written = self.writer.replace_holdings(
                parsed.portfolio_id, parsed.extract_date, records
            )
        except HoldingsWriteError as e:
            self._fail(outcome, options, e.message, [e.to_issue()])
            return
        outcome.portfolio_uuid = written.portfolio_uuid
        outcome.created_portfolio = written.created_portfolio
        outcome.rows_deleted = written.rows_deleted
        outcome.rows_processed = written.rows_inserted
        outcome.advance(IngestionStage.COMMITTED)

        # committed → archived
        move = self.lifecycle.archive(path, parsed.portfolio_id, parsed.extract_date)
        if move.success:
            outcome.moved_to = move.destination
        else:
            outcome.file_errors.append(move.error.message)
            outcome.issues.append(move.to_issue())
        self._audit(outcome, options)
        if move.success:
            outcome.advance(IngestionStage.ARCHIVED)

        self.log.info(
            "Ingested %s: %s on %s, %d row(s) [%s]",
            path.name,
            outcome.portfolio_id,
            outcome.extract_date,
            outcome.rows_processed,
            outcome.status,
        )

    def _fail(
        self,
        outcome: FileOutcome,
        options: IngestionOptions,
        message: str,
        issues=(),
    ) -> None:
        outcome.fail(message, issues)
        self.log.error("Ingestion of %s failed: %s", outcome.file_name, message)
        if options.dry_run:
            return

        move = self.lifecycle.reject(outcome.file_path)
        if move.success:
            outcome.moved_to = move.destination
        else:
            outcome.file_errors.append(move.error.message)
        self._audit(outcome, options)

    def _audit(self, outcome: FileOutcome, options: IngestionOptions) -> None:
        self.audit.record(
            business_portfolio_id=outcome.portfolio_id,
            file_name=outcome.file_name,
            extract_date=outcome.extract_date,
            rows_processed=outcome.rows_processed,
            status=outcome.status,
            error_message="; ".join(outcome.errors) or None,
            file_hash=outcome.file_hash,
            metadata={
                "stage": str(outcome.stage),
                "history": [str(stage) for stage in outcome.history],
                "rows_empty": outcome.rows_empty,
                "rows_with_errors": outcome.rows_with_errors,
                "rows_deleted": outcome.rows_deleted,
                "created_portfolio": outcome.created_portfolio,
                "issues": [issue.to_dict() for issue in outcome.issues[:50]],
                "file_errors": list(outcome.file_errors),
                "moved_to": str(outcome.moved_to) if outcome.moved_to else None,
            },
            processed_by=options.processed_by,
        )


def build_orchestrator(config: IngestionSettings | None = None) -> IngestionOrchestrator:
    """Build an orchestrator with the default collaborators."""
    return IngestionOrchestrator(config or IngestionSettings.from_django())


def ingest(
    target: str | Path | None = None,
    options: IngestionOptions | None = None,
    confirm: Callable[[list[SourceFile]], bool] | None = None,
) -> BatchResult:
    """Ingest a target using the configuration from Django settings."""
    return build_orchestrator().ingest(target, options, confirm)


def ingest_single_file(
    path: str | Path, options: IngestionOptions | None = None
) -> FileOutcome:
    """Ingest one file using the configuration from Django settings."""
    return build_orchestrator().ingest_single_file(path, options)
