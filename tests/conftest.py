"""
Shared pytest fixtures for all tests.
"""

# Ensure Django is configured before importing anything that uses Django settings
pytest_plugins = ["pytest_django"]

from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402

from apps.portfolios.ingestion.service import (  # noqa: E402
    IngestionOrchestrator,
    IngestionSettings,
)
from tests.factories import PortfolioFactory  # noqa: E402
from tests.workbooks import write_extract  # noqa: E402


@pytest.fixture(autouse=True)
def enable_db_access_for_all_tests(db):
    """
    Give all tests access to the database.
    This is equivalent to @pytest.mark.django_db on every test.
    """
    pass


@pytest.fixture
def ingestion_dirs(tmp_path, settings):
    """
    Point HOLDINGS_INGESTION at incoming/processed/error directories under tmp_path.
    """
    dirs = SimpleNamespace(
        incoming=tmp_path / "incoming",
        processed=tmp_path / "processed",
        error=tmp_path / "error",
    )
    dirs.incoming.mkdir()
    settings.HOLDINGS_INGESTION = {
        **settings.HOLDINGS_INGESTION,
        "INCOMING_DIR": str(dirs.incoming),
        "PROCESSED_DIR": str(dirs.processed),
        "ERROR_DIR": str(dirs.error),
        "STRICT_HEADERS": False,
        "ROW_ERROR_POLICY": "skip",
        "RENAME_POLICY": "overwrite",
    }
    return dirs


@pytest.fixture
def ingestion_settings(ingestion_dirs):
    """IngestionSettings read from the test directories."""
    return IngestionSettings.from_django()


@pytest.fixture
def orchestrator(ingestion_settings):
    """Orchestrator with the default collaborators."""
    return IngestionOrchestrator(ingestion_settings)


@pytest.fixture
def make_extract(ingestion_dirs):
    """
    Factory fixture writing an extract into the incoming directory.

    Usage: make_extract("extract.xlsx", rows=[...], extract_date=None)
    """

    def _make(name="extract.xlsx", directory=None, **kwargs):
        return write_extract((directory or ingestion_dirs.incoming) / name, **kwargs)

    return _make


@pytest.fixture
def portfolio():
    """Fixture to create a Portfolio instance."""
    return PortfolioFactory(business_portfolio_id="K00149JV/KLX")
