"""
Management command to ingest holdings extracts.

Usage:
    # Ingest every extract of the incoming directory (asks for confirmation)
    python manage.py ingest_holdings

    # Ingest one file without confirmation
    python manage.py ingest_holdings extract.xlsx --force

    # Check a directory without touching the database or the files
    python manage.py ingest_holdings /path/to/dir --dry-run
"""

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from apps.portfolios.ingestion.service import (
    IngestionOptions,
    build_orchestrator,
)
from libs.choices import RowErrorPolicy

MAX_ISSUES_SHOWN = 20


class Command(BaseCommand):
    """
    Management command for ingesting holdings extracts.

    Each extract replaces the holdings snapshot of its (portfolio, extract date)
    pair. Committed files are moved to the processed directory, failed ones to
    the error directory, and every attempt is written to the ingestion log.

    Key Features:
    - Target is a directory, a file, a file name in the incoming directory,
      or nothing (the incoming directory)
    - Asks for confirmation unless --force or --dry-run
    - Dry-run reports what would be written without any side effect
    - Displays per-file results and the first issues of each file
    - Exits with an error when any file fails

    Usage Example:
        python manage.py ingest_holdings --force --row-errors=fail
    """

    help = "Ingest holdings extracts (Excel) into portfolio holdings snapshots"

    def add_arguments(self, parser):
        """Add command-line arguments."""
        parser.add_argument(
            "target",
            nargs="?",
            default=None,
            help="Directory, file, or file name in the incoming directory "
            "(default: incoming directory)",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Do not ask for confirmation",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Validate and parse only, no database write and no file move",
        )
        parser.add_argument(
            "--skip-validation",
            action="store_true",
            help="Skip structural validation of the worksheet",
        )
        parser.add_argument(
            "--stop-on-error",
            action="store_true",
            help="Stop the batch at the first failed file",
        )
        parser.add_argument(
            "--strict-headers",
            action="store_true",
            default=None,
            help="Treat header text mismatches as errors",
        )
        parser.add_argument(
            "--row-errors",
            choices=RowErrorPolicy.values,
            default=None,
            help="What to do with rows containing errors (default: from settings)",
        )

    def handle(self, *args, **options):
        """Execute the command."""
        ingestion_options = IngestionOptions(
            force_confirm=options["force"],
            dry_run=options["dry_run"],
            skip_validation=options["skip_validation"],
            continue_on_error=not options["stop_on_error"],
            strict_headers=options["strict_headers"],
            row_error_policy=options["row_errors"],
        )
        orchestrator = build_orchestrator()

        self.stdout.write(
            f"Incoming directory: {orchestrator.config.incoming_dir}"
        )
        if ingestion_options.dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN: nothing will be written"))
        self.stdout.write("")

        result = orchestrator.ingest(
            options["target"], ingestion_options, confirm=self._confirm
        )

        for issue in result.errors:
            self.stdout.write(self.style.ERROR(f"✗ {issue.message}"))

        if result.cancelled:
            self.stdout.write(self.style.WARNING("Ingestion cancelled"))
            return

        if not result.outcomes and not result.errors:
            self.stdout.write("No files to ingest")
            return

        for outcome in result.outcomes:
            self._write_outcome(outcome)

        summary = result.summary()
        self.stdout.write("")
        self.stdout.write(f"  Files: {summary['total_files']}")
        self.stdout.write(f"  Successful: {summary['successful_files']}")
        self.stdout.write(f"  Failed: {summary['failed_files']}")
        self.stdout.write(f"  Rows processed: {summary['total_rows_processed']}")
        self.stdout.write(f"  Errors: {summary['total_errors']}")

        if not result.success:
            raise CommandError(
                f"Ingestion failed: {summary['failed_files']} file(s) failed, "
                f"{len(result.errors)} batch error(s)"
            )

    def _confirm(self, files) -> bool:
        self.stdout.write(f"{len(files)} file(s) to ingest:")
        for source in files:
            self.stdout.write(f"  {source.name} ({source.size} bytes)")
        answer = input("Proceed? [y/N] ")
        return answer.strip().lower() in ("y", "yes", "o", "oui")

    def _write_outcome(self, outcome):
        target = f"{outcome.portfolio_id or '?'} on {outcome.extract_date or '?'}"
        if outcome.failed:
            self.stdout.write(
                self.style.ERROR(f"✗ {outcome.file_name}: failed ({target})")
            )
            for message in outcome.errors:
                self.stdout.write(f"  {message}")
        elif outcome.dry_run:
            self.stdout.write(
                self.style.SUCCESS(
                    f"✓ {outcome.file_name}: would replace {target} with "
                    f"{outcome.rows_processed} row(s) [{outcome.status}]"
                )
            )
        elif outcome.status == "partial":
            self.stdout.write(
                self.style.WARNING(
                    f"⚠ {outcome.file_name}: {outcome.rows_processed} row(s) committed "
                    f"for {target}, {outcome.rows_with_errors} row(s) with errors"
                )
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f"✓ {outcome.file_name}: {outcome.rows_processed} row(s) committed "
                    f"for {target}"
                )
            )

        for message in outcome.file_errors:
            self.stdout.write(self.style.WARNING(f"  File operation: {message}"))
        if outcome.moved_to:
            self.stdout.write(f"  Moved to: {outcome.moved_to}")

        issues = outcome.issues
        for issue in issues[:MAX_ISSUES_SHOWN]:
            self.stdout.write(f"  {issue}")
        if len(issues) > MAX_ISSUES_SHOWN:
            self.stdout.write(f"  ... and {len(issues) - MAX_ISSUES_SHOWN} more issues")
