"""
Portfolio holdings models.

This module provides the persistent side of holdings ingestion: the portfolio
registry and the holdings snapshots committed from spreadsheet extracts.

Key components:
- Portfolio: Client portfolio, identified externally by a business id and
  internally by a generated UUID
- Holding: One position row of a holdings snapshot for a given extract date

A holdings snapshot is the set of Holding rows sharing a (portfolio,
extract_date) pair. Snapshots are only ever replaced as a whole by the
ingestion writer, never merged.
"""

from __future__ import annotations

import uuid

from django.db import models
from django.utils.translation import gettext_lazy as _
from djmoney.models.fields import MoneyField

from libs.models import TimeStampedModel


class Portfolio(TimeStampedModel):
    """
    Portfolio model representing a client portfolio.

    The business portfolio id is assigned outside the system and embedded in
    every extract (cell B1). The surrogate UUID is generated the first time a
    business id is ingested and is what holdings and audit records point to.

    Attributes:
        id (UUID): Surrogate identifier, generated on first sight.
        business_portfolio_id (str): External identifier, unique (e.g. "K00149JV/KLX").
        name (str, optional): Display name.
        client_email (str): Contact email (placeholder until filled in).
        contractor (str, optional): Contracting insurer.
        consultant (str, optional): Default advisor.
        contract_type (str, optional): Contract type (e.g. Luxembourg life insurance).
        created_at (datetime): When the portfolio was created.
        updated_at (datetime): When the portfolio was last updated.

    Example:
        >>> portfolio = Portfolio.objects.create(
        ...     business_portfolio_id="K00149JV/KLX",
        ...     name="Portfolio K00149JV/KLX",
        ...     client_email="client-K00149JV-KLX@example.com",
        ... )
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    business_portfolio_id = models.CharField(
        _("Business Portfolio ID"),
        max_length=255,
        unique=True,
        help_text="Identifier embedded in the source extracts.",
    )
    name = models.TextField(
        _("Name"), blank=True, null=True, help_text="Display name of the portfolio."
    )
    client_email = models.EmailField(
        _("Client Email"), max_length=255, help_text="Client contact email."
    )
    contractor = models.TextField(
        _("Contractor"), blank=True, null=True, help_text="Contracting insurer."
    )
    consultant = models.TextField(
        _("Consultant"), blank=True, null=True, help_text="Default advisor."
    )
    contract_type = models.TextField(
        _("Contract Type"), blank=True, null=True, help_text="Type of contract."
    )

    class Meta:
        verbose_name = _("Portfolio")
        verbose_name_plural = _("Portfolios")
        ordering = ["business_portfolio_id"]

    def __str__(self) -> str:
        return self.business_portfolio_id

    def snapshot(self, extract_date):
        """Return the holdings committed for this portfolio on extract_date."""
        return Holding.objects.snapshot(self, extract_date)

    def extract_dates(self) -> list:
        """Return the extract dates with a committed snapshot, newest first."""
        return list(
            self.holdings.order_by("-extract_date")
            .values_list("extract_date", flat=True)
            .distinct()
        )


class HoldingQuerySet(models.QuerySet):
    """QuerySet helpers for reading committed snapshots."""

    def snapshot(self, portfolio, extract_date):
        """
        Rows of one holdings snapshot, in source spreadsheet order.

        Args:
            portfolio: Portfolio instance or its UUID.
            extract_date: As-of date of the snapshot.
        """
        portfolio_id = getattr(portfolio, "pk", portfolio)
        return self.filter(
            portfolio_id=portfolio_id, extract_date=extract_date
        ).order_by("row_number", "pk")

    def for_business_id(self, business_portfolio_id: str, extract_date):
        """Rows of one snapshot looked up by the business portfolio id."""
        return self.filter(
            portfolio__business_portfolio_id=business_portfolio_id,
            extract_date=extract_date,
        ).order_by("row_number", "pk")


class Holding(models.Model):
    """
    Holding model representing one position row of a holdings snapshot.

    Columns map one-to-one to the 11 columns (A-K) of the source extract.
    Money amounts are stored in EUR; `balance` is the position balance in the
    instrument's own currency.

    Attributes:
        portfolio (Portfolio): Portfolio this row belongs to.
        extract_date (date): As-of date of the snapshot.
        row_number (int): Row of the source spreadsheet.
        balance (decimal, optional): A - Solde.
        label (str, optional): B - Libellé.
        currency (str, optional): C - Devise.
        valuation_eur (Money, optional): D - Estimation + int. courus (EUR).
        weight_pct (decimal, optional): E - Poids (%).
        isin (str, optional): F - Code ISIN.
        pnl_eur (Money, optional): G - B / P - Total (EUR).
        fees_eur (Money, optional): H - Frais (EUR).
        asset_name (str, optional): I - Nom.
        strategy (str, optional): J - Stratégie.
        bucket (str, optional): K - Poche.
        created_at (datetime): When the row was inserted.

    Note:
        - Rows are never updated in place. Re-ingesting a (portfolio, extract_date)
          deletes the previous rows and inserts the new ones in one transaction.
        - Currency and ISIN are stored even when malformed (validation only warns).
    """

    portfolio = models.ForeignKey(
        Portfolio,
        on_delete=models.CASCADE,
        related_name="holdings",
        help_text="Portfolio this row belongs to.",
    )
    extract_date = models.DateField(
        _("Extract Date"), help_text="As-of date of the snapshot."
    )
    row_number = models.PositiveIntegerField(
        _("Row Number"), help_text="Row of the source spreadsheet."
    )
    balance = models.DecimalField(
        _("Balance"), max_digits=18, decimal_places=2, blank=True, null=True
    )
    label = models.TextField(_("Label"), blank=True, null=True)
    currency = models.CharField(_("Currency"), max_length=16, blank=True, null=True)
    valuation_eur = MoneyField(
        _("Valuation (EUR)"),
        max_digits=18,
        decimal_places=2,
        default_currency="EUR",
        blank=True,
        null=True,
        help_text="Valuation including accrued interest.",
    )
    weight_pct = models.DecimalField(
        _("Weight (%)"), max_digits=9, decimal_places=3, blank=True, null=True
    )
    isin = models.CharField(_("ISIN"), max_length=32, blank=True, null=True)
    pnl_eur = MoneyField(
        _("P&L (EUR)"),
        max_digits=18,
        decimal_places=2,
        default_currency="EUR",
        blank=True,
        null=True,
    )
    fees_eur = MoneyField(
        _("Fees (EUR)"),
        max_digits=18,
        decimal_places=2,
        default_currency="EUR",
        blank=True,
        null=True,
    )
    asset_name = models.TextField(_("Asset Name"), blank=True, null=True)
    strategy = models.TextField(_("Strategy"), blank=True, null=True)
    bucket = models.TextField(_("Bucket"), blank=True, null=True)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)

    objects = HoldingQuerySet.as_manager()

    class Meta:
        verbose_name = _("Holding")
        verbose_name_plural = _("Holdings")
        indexes = [
            models.Index(
                fields=["portfolio", "extract_date"],
                name="portfolios__portfol_5b1e2c_idx",
            ),
            models.Index(fields=["extract_date"], name="portfolios__extract_9d0a41_idx"),
        ]
        ordering = ["-extract_date", "portfolio", "row_number"]

    def __str__(self) -> str:
        return f"{self.portfolio} - {self.label or self.isin or self.row_number} ({self.extract_date})"
