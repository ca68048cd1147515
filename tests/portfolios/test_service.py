"""
Tests for the ingestion orchestrator.

Tests the end-to-end behavior of ingesting extracts:
- Snapshot replacement, idempotence and isolation between extract dates
- Failed files never committed, moved to the error directory and audited
- Row error policies (fail, skip, keep)
- Dry-run, confirmation, stop-on-error
- Stage state machine
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock

import pytest
from djmoney.money import Money

from apps.audit.models import IngestionLog
from apps.portfolios.ingestion.errors import FileOperationError, HoldingsWriteError
from apps.portfolios.ingestion.lifecycle import FileLifecycleManager, MoveResult
from apps.portfolios.ingestion.service import (
    ALLOWED_TRANSITIONS,
    FileOutcome,
    IngestionOptions,
    IngestionOrchestrator,
    IngestionSettings,
    InvalidStageTransition,
    ingest,
)
from apps.portfolios.models import Holding, Portfolio
from libs.choices import IngestionStage, IngestionStatus, IssueKind, RowErrorPolicy
from tests.workbooks import DEFAULT_ROWS, EXTRACT_DATE, PORTFOLIO_ID

FORCE = IngestionOptions(force_confirm=True)


def _rows_with_bad_balance():
    rows = [list(row) for row in DEFAULT_ROWS]
    rows[1][0] = "abc"
    return rows


def _snapshot(extract_date=EXTRACT_DATE):
    return list(
        Holding.objects.for_business_id(PORTFOLIO_ID, extract_date).values(
            "row_number", "balance", "label", "currency", "valuation_eur", "isin"
        )
    )


class TestIngestSingleFile:
    """Test cases for IngestionOrchestrator.ingest_single_file()."""

    def test_successful_ingestion(self, orchestrator, make_extract, ingestion_dirs):
        """Test a valid extract is committed, archived and audited."""
        path = make_extract()

        outcome = orchestrator.ingest_single_file(path, FORCE)

        assert not outcome.failed
        assert outcome.status == IngestionStatus.SUCCESS
        assert outcome.stage == IngestionStage.ARCHIVED
        assert outcome.history == [
            IngestionStage.DISCOVERED,
            IngestionStage.VALIDATED,
            IngestionStage.PARSED,
            IngestionStage.TRANSFORMED,
            IngestionStage.COMMITTED,
            IngestionStage.ARCHIVED,
        ]
        assert outcome.portfolio_id == PORTFOLIO_ID
        assert outcome.extract_date == EXTRACT_DATE
        assert outcome.rows_processed == 3
        assert outcome.created_portfolio
        assert not outcome.archive_pending

        portfolio = Portfolio.objects.get(business_portfolio_id=PORTFOLIO_ID)
        holdings = list(portfolio.snapshot(EXTRACT_DATE))
        assert [h.row_number for h in holdings] == [10, 11, 12]
        assert holdings[0].balance == Decimal("1234.56")
        assert holdings[0].valuation_eur == Money(Decimal("10000.00"), "EUR")
        assert holdings[1].currency == "USD"
        assert holdings[2].weight_pct == Decimal("31.750")

        assert not path.exists()
        assert outcome.moved_to.parent == ingestion_dirs.processed
        assert list(ingestion_dirs.processed.iterdir()) == [outcome.moved_to]

        log = IngestionLog.objects.get()
        assert log.status == IngestionStatus.SUCCESS
        assert log.portfolio == portfolio
        assert log.rows_processed == 3
        assert log.file_name == "extract.xlsx"
        assert len(log.file_hash) == 64
        assert log.metadata["stage"] == IngestionStage.COMMITTED
        assert log.metadata["moved_to"] == str(outcome.moved_to)

    def test_reingestion_is_idempotent(self, orchestrator, make_extract):
        """Test ingesting the same extract twice yields the same snapshot."""
        orchestrator.ingest_single_file(make_extract(), FORCE)
        first = _snapshot()

        outcome = orchestrator.ingest_single_file(make_extract(), FORCE)

        assert not outcome.created_portfolio
        assert outcome.rows_deleted == 3
        assert _snapshot() == first
        assert Portfolio.objects.count() == 1
        assert IngestionLog.objects.count() == 2

    def test_other_extract_date_untouched(self, orchestrator, make_extract):
        """Test re-ingesting one date leaves other dates of the portfolio intact."""
        orchestrator.ingest_single_file(
            make_extract("december.xlsx", extract_date=date(2024, 12, 31)), FORCE
        )
        orchestrator.ingest_single_file(make_extract("january.xlsx"), FORCE)
        december = _snapshot(date(2024, 12, 31))

        rows = [list(row) for row in DEFAULT_ROWS]
        rows[0][3] = "99 999,99"
        orchestrator.ingest_single_file(make_extract("january.xlsx", rows=rows), FORCE)

        assert _snapshot(date(2024, 12, 31)) == december
        assert _snapshot()[0]["valuation_eur"] == Decimal("99999.99")

    def test_iso_extract_date_is_year_first(self, orchestrator, make_extract):
        """Test an ISO string extract date is not read day-first."""
        outcome = orchestrator.ingest_single_file(
            make_extract(extract_date="2025-03-04"), FORCE
        )

        assert outcome.extract_date == date(2025, 3, 4)
        assert len(_snapshot(date(2025, 3, 4))) == 3
        assert _snapshot(date(2025, 4, 3)) == []

    def test_extract_date_outside_year_range_fails(self, orchestrator, make_extract):
        """Test an extract dated before 2000 is never committed."""
        outcome = orchestrator.ingest_single_file(
            make_extract(extract_date=date(1999, 12, 31)), FORCE
        )

        assert outcome.failed
        assert any(
            issue.kind == IssueKind.SPECIAL_CELL
            and "outside the accepted years 2000-2050" in issue.message
            for issue in outcome.error_issues
        )
        assert not Holding.objects.exists()

    def test_extract_year_range_from_settings(self, settings, make_extract):
        """Test MIN_EXTRACT_YEAR widens the accepted years."""
        settings.HOLDINGS_INGESTION = {
            **settings.HOLDINGS_INGESTION,
            "MIN_EXTRACT_YEAR": 1990,
        }
        config = IngestionSettings.from_django()

        outcome = IngestionOrchestrator(config).ingest_single_file(
            make_extract(extract_date=date(1999, 12, 31)), FORCE
        )

        assert config.extract_year_range == (1990, 2050)
        assert not outcome.failed
        assert len(_snapshot(date(1999, 12, 31))) == 3

    def test_missing_extract_date_fails(self, orchestrator, make_extract, ingestion_dirs):
        """Test a file without extract date is never committed."""
        path = make_extract(extract_date=None)

        outcome = orchestrator.ingest_single_file(path, FORCE)

        assert outcome.failed
        assert outcome.status == IngestionStatus.ERROR
        assert IngestionStage.COMMITTED not in outcome.history
        assert any(
            issue.kind == IssueKind.SPECIAL_CELL and issue.cell_reference == "B5"
            for issue in outcome.error_issues
        )
        assert not Holding.objects.exists()
        assert not Portfolio.objects.exists()
        assert not path.exists()
        assert outcome.moved_to.parent == ingestion_dirs.error
        assert "_ERROR_" in outcome.moved_to.name

        log = IngestionLog.objects.get()
        assert log.status == IngestionStatus.ERROR
        assert log.portfolio is None
        assert log.metadata["business_portfolio_id"] == PORTFOLIO_ID
        assert "Extraction date is missing" in log.error_message

    def test_unreadable_file_fails(self, orchestrator, ingestion_dirs):
        """Test a file that is not a workbook fails and is moved to the error directory."""
        path = ingestion_dirs.incoming / "broken.xlsx"
        path.write_bytes(b"not a workbook")

        outcome = orchestrator.ingest_single_file(path, FORCE)

        assert outcome.failed
        assert outcome.history == [IngestionStage.DISCOVERED, IngestionStage.FAILED]
        assert outcome.issues[0].kind == IssueKind.STRUCTURE
        assert outcome.moved_to.parent == ingestion_dirs.error
        assert IngestionLog.objects.get().status == IngestionStatus.ERROR

    def test_invalid_structure_fails(self, orchestrator, make_extract):
        """Test a missing header fails the file before parsing."""
        outcome = orchestrator.ingest_single_file(
            make_extract(headers={"D": None}), FORCE
        )

        assert outcome.failed
        assert IngestionStage.VALIDATED not in outcome.history
        assert any(issue.cell_reference == "D9" for issue in outcome.error_issues)
        assert not Holding.objects.exists()

    def test_skip_validation(self, orchestrator, make_extract):
        """Test structural validation can be skipped."""
        outcome = orchestrator.ingest_single_file(
            make_extract(headers={"L": "Commentaire"}),
            IngestionOptions(force_confirm=True, skip_validation=True),
        )

        assert not outcome.failed
        assert Holding.objects.count() == 3

    def test_strict_headers_option(self, orchestrator, make_extract):
        """Test strict headers turn a header mismatch into a failure."""
        outcome = orchestrator.ingest_single_file(
            make_extract(headers={"F": "ISIN"}),
            IngestionOptions(force_confirm=True, strict_headers=True),
        )

        assert outcome.failed
        assert outcome.error_issues[0].kind == IssueKind.HEADER

    def test_no_data_rows_fails(self, orchestrator, make_extract):
        """Test an extract with only empty rows is not committed as an empty snapshot."""
        outcome = orchestrator.ingest_single_file(
            make_extract(rows=[[None] * 10 + [" "], [None] * 10 + [" "]]), FORCE
        )

        assert outcome.failed
        assert outcome.rows_empty == 2
        assert not Holding.objects.exists()

    def test_write_failure_fails_file(self, ingestion_settings, make_extract):
        """Test a rolled back write fails the file and moves it to the error directory."""
        writer = Mock()
        writer.replace_holdings.side_effect = HoldingsWriteError(
            "Failed to replace holdings", code="WRITE_FAILED"
        )
        orchestrator = IngestionOrchestrator(ingestion_settings, writer=writer)

        outcome = orchestrator.ingest_single_file(make_extract(), FORCE)

        assert outcome.failed
        assert outcome.history[-2:] == [IngestionStage.TRANSFORMED, IngestionStage.FAILED]
        assert outcome.error_issues[-1].kind == IssueKind.DATABASE
        assert outcome.moved_to.parent == ingestion_settings.error_dir

    def test_move_failure_keeps_commit(self, ingestion_settings, make_extract):
        """Test a failed archive move is reported without undoing the commit."""
        lifecycle = Mock(spec=FileLifecycleManager)
        path = make_extract()
        lifecycle.archive.return_value = MoveResult(
            source=path,
            error=FileOperationError("Failed to move extract.xlsx", code="MOVE_FAILED"),
        )
        orchestrator = IngestionOrchestrator(ingestion_settings, lifecycle=lifecycle)

        outcome = orchestrator.ingest_single_file(path, FORCE)

        assert not outcome.failed
        assert outcome.stage == IngestionStage.COMMITTED
        assert outcome.status == IngestionStatus.SUCCESS
        assert outcome.file_errors == ["Failed to move extract.xlsx"]
        assert outcome.archive_pending
        assert outcome.to_dict()["archive_pending"]
        assert Holding.objects.count() == 3
        assert path.exists()
        log = IngestionLog.objects.get()
        assert log.metadata["file_errors"] == ["Failed to move extract.xlsx"]

    def test_dry_run_has_no_side_effect(self, orchestrator, make_extract):
        """Test dry-run stops after transformation."""
        path = make_extract()

        outcome = orchestrator.ingest_single_file(
            path, IngestionOptions(dry_run=True)
        )

        assert outcome.dry_run
        assert outcome.stage == IngestionStage.TRANSFORMED
        assert outcome.rows_processed == 3
        assert path.exists()
        assert not Portfolio.objects.exists()
        assert not Holding.objects.exists()
        assert not IngestionLog.objects.exists()

    def test_dry_run_failure_stays_in_place(self, orchestrator, make_extract):
        """Test a failed dry-run does not move the file nor audit it."""
        path = make_extract(extract_date=None)

        outcome = orchestrator.ingest_single_file(
            path, IngestionOptions(dry_run=True)
        )

        assert outcome.failed
        assert outcome.moved_to is None
        assert path.exists()
        assert not IngestionLog.objects.exists()


class TestRowErrorPolicy:
    """Test cases for the handling of rows with errors."""

    def test_skip_commits_clean_rows(self, orchestrator, make_extract):
        """Test the skip policy commits clean rows and reports the bad one."""
        outcome = orchestrator.ingest_single_file(
            make_extract(rows=_rows_with_bad_balance()), FORCE
        )

        assert not outcome.failed
        assert outcome.status == IngestionStatus.PARTIAL
        assert outcome.rows_processed == 2
        assert outcome.rows_with_errors == 1
        issue = outcome.error_issues[0]
        assert issue.kind == IssueKind.DATA
        assert issue.row_number == 11
        assert issue.column_letter == "A"
        assert issue.cell_reference == "A11"
        assert [row["row_number"] for row in _snapshot()] == [10, 12]
        assert IngestionLog.objects.get().status == IngestionStatus.PARTIAL

    def test_fail_policy_fails_file(self, orchestrator, make_extract):
        """Test the fail policy rejects the whole file."""
        outcome = orchestrator.ingest_single_file(
            make_extract(rows=_rows_with_bad_balance()),
            IngestionOptions(force_confirm=True, row_error_policy=RowErrorPolicy.FAIL),
        )

        assert outcome.failed
        assert "row 11" in outcome.errors[0]
        assert not Holding.objects.exists()

    def test_keep_policy_commits_all_rows(self, orchestrator, make_extract):
        """Test the keep policy commits every row with failed fields empty."""
        outcome = orchestrator.ingest_single_file(
            make_extract(rows=_rows_with_bad_balance()),
            IngestionOptions(force_confirm=True, row_error_policy=RowErrorPolicy.KEEP),
        )

        assert outcome.status == IngestionStatus.PARTIAL
        snapshot = _snapshot()
        assert [row["row_number"] for row in snapshot] == [10, 11, 12]
        assert snapshot[1]["balance"] is None
        assert snapshot[1]["label"] == "Actions Monde"

    def test_all_rows_invalid_fails(self, orchestrator, make_extract):
        """Test a file whose rows all have errors fails under the skip policy."""
        rows = [list(DEFAULT_ROWS[0])]
        rows[0][3] = "n/a"

        outcome = orchestrator.ingest_single_file(make_extract(rows=rows), FORCE)

        assert outcome.failed
        assert not Holding.objects.exists()


class TestIngestBatch:
    """Test cases for IngestionOrchestrator.ingest()."""

    def test_ingests_incoming_directory(self, orchestrator, make_extract):
        """Test every extract of the incoming directory is processed in name order."""
        make_extract("b.xlsx", extract_date=date(2024, 12, 31))
        make_extract("a.xlsx")

        result = orchestrator.ingest(options=FORCE)

        assert result.success
        assert [o.file_name for o in result.outcomes] == ["a.xlsx", "b.xlsx"]
        assert result.total_rows_processed == 6
        summary = result.summary()
        assert summary["successful_files"] == 2
        assert summary["files"][0]["stage"] == "archived"

    def test_failed_file_does_not_stop_batch(self, orchestrator, make_extract):
        """Test a failed file is isolated from the others by default."""
        make_extract("a.xlsx", extract_date=None)
        make_extract("b.xlsx")

        result = orchestrator.ingest(options=FORCE)

        assert not result.success
        assert result.failed_files == 1
        assert result.successful_files == 1
        assert Holding.objects.count() == 3

    def test_stop_on_error(self, orchestrator, make_extract, ingestion_dirs):
        """Test the batch stops at the first failure when asked to."""
        make_extract("a.xlsx", extract_date=None)
        make_extract("b.xlsx")

        result = orchestrator.ingest(
            options=IngestionOptions(force_confirm=True, continue_on_error=False)
        )

        assert result.total_files == 1
        assert (ingestion_dirs.incoming / "b.xlsx").exists()
        assert not Holding.objects.exists()

    def test_confirmation_refused(self, orchestrator, make_extract):
        """Test refusing the confirmation cancels the run."""
        path = make_extract()
        confirm = Mock(return_value=False)

        result = orchestrator.ingest(confirm=confirm)

        assert result.cancelled
        assert not result.success
        assert result.outcomes == []
        assert [source.path for source in confirm.call_args.args[0]] == [path]
        assert path.exists()
        assert not Holding.objects.exists()

    def test_force_skips_confirmation(self, orchestrator, make_extract):
        """Test force_confirm never calls the confirmation callback."""
        make_extract()
        confirm = Mock(return_value=False)

        result = orchestrator.ingest(options=FORCE, confirm=confirm)

        confirm.assert_not_called()
        assert result.success

    def test_empty_directory(self, orchestrator):
        """Test an empty incoming directory is a successful no-op."""
        result = orchestrator.ingest(options=FORCE)

        assert result.success
        assert result.total_files == 0

    def test_module_level_ingest(self, make_extract):
        """Test ingest() reads its configuration from Django settings."""
        make_extract()

        result = ingest(options=FORCE)

        assert result.success
        assert Holding.objects.count() == 3


class TestResolveTargets:
    """Test cases for IngestionOrchestrator.resolve_targets()."""

    def test_file_name_in_incoming(self, orchestrator, make_extract):
        """Test a bare file name resolves inside the incoming directory."""
        path = make_extract("extract.xlsx")

        result = orchestrator.resolve_targets("extract.xlsx")

        assert [source.path for source in result.files] == [path]

    def test_absolute_file(self, orchestrator, make_extract, tmp_path):
        """Test a file outside the incoming directory can be targeted."""
        path = make_extract("elsewhere.xlsx", directory=tmp_path / "other")

        result = orchestrator.resolve_targets(path)

        assert [source.path for source in result.files] == [path]

    def test_directory(self, orchestrator, make_extract, tmp_path):
        """Test a directory target is scanned."""
        make_extract("a.xlsx", directory=tmp_path / "other")
        make_extract("b.xlsx", directory=tmp_path / "other")

        result = orchestrator.resolve_targets(tmp_path / "other")

        assert [source.name for source in result.files] == ["a.xlsx", "b.xlsx"]

    def test_missing_file(self, orchestrator):
        """Test a missing target is an error."""
        result = orchestrator.resolve_targets("missing.xlsx")

        assert result.files == []
        assert "missing.xlsx" in result.errors[0].message

    def test_unsupported_extension(self, orchestrator, ingestion_dirs):
        """Test a file with an unsupported extension is an error."""
        (ingestion_dirs.incoming / "extract.csv").write_text("a;b")

        result = orchestrator.resolve_targets("extract.csv")

        assert result.files == []
        assert "extract.csv" in result.errors[0].message


class TestFileOutcome:
    """Test cases for the stage state machine."""

    def test_invalid_transition(self):
        """Test skipping a stage raises InvalidStageTransition."""
        outcome = FileOutcome(file_path=Path("x.xlsx"), file_name="x.xlsx")

        with pytest.raises(InvalidStageTransition):
            outcome.advance(IngestionStage.COMMITTED)

    def test_terminal_stages(self):
        """Test nothing follows archived or failed."""
        outcome = FileOutcome(file_path=Path("x.xlsx"), file_name="x.xlsx")
        outcome.fail("boom")

        with pytest.raises(InvalidStageTransition):
            outcome.advance(IngestionStage.VALIDATED)
        assert ALLOWED_TRANSITIONS[IngestionStage.ARCHIVED] == set()

    def test_failed_reachable_from_every_non_terminal_stage(self):
        """Test every non-terminal stage can fail."""
        for stage, targets in ALLOWED_TRANSITIONS.items():
            if targets:
                assert IngestionStage.FAILED in targets
