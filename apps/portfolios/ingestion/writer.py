"""
Transactional writer for holdings snapshots.

A snapshot (all holdings of one portfolio for one extract date) is only ever
replaced as a whole: the portfolio is upserted, the previous rows of the
(portfolio, extract_date) pair are deleted and the new rows inserted, all in a
single transaction. Readers see either the old or the new snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from django.db import DatabaseError, transaction
from djmoney.money import Money

from apps.portfolios.ingestion.errors import HoldingsWriteError
from apps.portfolios.ingestion.layout import MONEY_FIELDS
from apps.portfolios.ingestion.utils import sanitize_identifier
from apps.portfolios.models import Holding, Portfolio
from libs.choices import RenamePolicy

logger = logging.getLogger(__name__)

HOLDING_CURRENCY = "EUR"


@dataclass
class WriteResult:
    portfolio_uuid: Any
    created_portfolio: bool
    rows_deleted: int
    rows_inserted: int
    renamed: bool = False


def placeholder_portfolio_fields(business_portfolio_id: str) -> dict[str, str]:
    """Contact metadata given to a portfolio created on first ingestion."""
    return {
        "name": f"Portfolio {business_portfolio_id}",
        "client_email": f"client-{sanitize_identifier(business_portfolio_id)}@example.com",
    }


class HoldingsWriter:
    """
    Delete-and-replace writer for holdings snapshots.

    Args:
        rename_policy: What to do when an existing portfolio is ingested with a
            different display name (RenamePolicy.OVERWRITE or KEEP).
    """

    def __init__(self, rename_policy: str = RenamePolicy.OVERWRITE):
        self.rename_policy = rename_policy

    def _upsert_portfolio(
        self, business_portfolio_id: str, portfolio_name: str | None
    ) -> tuple[Portfolio, bool, bool]:
        defaults = placeholder_portfolio_fields(business_portfolio_id)
        if portfolio_name:
            defaults["name"] = portfolio_name

        portfolio, created = Portfolio.objects.get_or_create(
            business_portfolio_id=business_portfolio_id, defaults=defaults
        )
        if created:
            logger.info(
                "Created portfolio %s (UUID: %s)", business_portfolio_id, portfolio.pk
            )
            return portfolio, True, False

        renamed = False
        if portfolio_name and portfolio.name != portfolio_name:
            if self.rename_policy == RenamePolicy.OVERWRITE:
                logger.warning(
                    "Renaming portfolio %s from %r to %r",
                    business_portfolio_id,
                    portfolio.name,
                    portfolio_name,
                )
                portfolio.name = portfolio_name
                portfolio.save(update_fields=["name", "updated_at"])
                renamed = True
            else:
                logger.warning(
                    "Keeping name %r of portfolio %s, ignoring %r",
                    portfolio.name,
                    business_portfolio_id,
                    portfolio_name,
                )
        return portfolio, False, renamed

    def _build_holding(
        self, portfolio: Portfolio, extract_date: date, record: dict[str, Any]
    ) -> Holding:
        values = dict(record)
        for field_name in MONEY_FIELDS:
            amount = values.get(field_name)
            if amount is not None:
                values[field_name] = Money(amount, HOLDING_CURRENCY)
        return Holding(portfolio=portfolio, extract_date=extract_date, **values)

    def replace_holdings(
        self,
        business_portfolio_id: str,
        extract_date: date,
        records: list[dict[str, Any]],
        portfolio_name: str | None = None,
    ) -> WriteResult:
        """
        Replace the snapshot of (business_portfolio_id, extract_date).

        Steps, in one transaction:
        1. Upsert the portfolio by business id (created with a generated UUID
           and placeholder contact metadata when absent)
        2. Delete every holding of (portfolio, extract_date)
        3. Bulk-insert the new rows

        Args:
            business_portfolio_id: Business id read from the extract.
            extract_date: As-of date of the snapshot.
            records: Holding field values per row, including row_number.
            portfolio_name: Display name, if the source provides one.

        Returns:
            WriteResult: Surrogate id, counts and whether the portfolio was created.

        Raises:
            HoldingsWriteError: If anything fails. Nothing is written in that case.
        """
        try:
            with transaction.atomic():
                portfolio, created, renamed = self._upsert_portfolio(
                    business_portfolio_id, portfolio_name
                )
                rows_deleted, _ = Holding.objects.filter(
                    portfolio=portfolio, extract_date=extract_date
                ).delete()
                holdings = [
                    self._build_holding(portfolio, extract_date, record)
                    for record in records
                ]
                Holding.objects.bulk_create(holdings, batch_size=500)
        except (DatabaseError, ValueError, TypeError) as e:
            logger.error(
                "Rolled back holdings of %s on %s: %s",
                business_portfolio_id,
                extract_date,
                e,
            )
            raise HoldingsWriteError(
                f"Failed to replace holdings of {business_portfolio_id} on "
                f"{extract_date}: {e}",
                code="WRITE_FAILED",
            ) from e

        logger.info(
            "Replaced holdings of %s on %s: %d deleted, %d inserted",
            business_portfolio_id,
            extract_date,
            rows_deleted,
            len(holdings),
        )
        return WriteResult(
            portfolio_uuid=portfolio.pk,
            created_portfolio=created,
            rows_deleted=rows_deleted,
            rows_inserted=len(holdings),
            renamed=renamed,
        )


def replace_holdings(
    business_portfolio_id: str,
    extract_date: date,
    records: list[dict[str, Any]],
    portfolio_name: str | None = None,
    rename_policy: str = RenamePolicy.OVERWRITE,
) -> WriteResult:
    """Shortcut for HoldingsWriter(rename_policy).replace_holdings(...)."""
    return HoldingsWriter(rename_policy).replace_holdings(
        business_portfolio_id, extract_date, records, portfolio_name
    )
