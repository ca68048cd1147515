import uuid

import django.db.models.deletion
import djmoney.models.fields
from django.db import migrations, models

CURRENCY_CHOICES = [
    ("CHF", "Swiss Franc"),
    ("EUR", "Euro"),
    ("GBP", "British Pound"),
    ("JPY", "Japanese Yen"),
    ("USD", "US Dollar"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Portfolio",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("business_portfolio_id", models.CharField(help_text="Identifier embedded in the source extracts.", max_length=255, unique=True, verbose_name="Business Portfolio ID")),
                ("name", models.TextField(blank=True, help_text="Display name of the portfolio.", null=True, verbose_name="Name")),
                ("client_email", models.EmailField(help_text="Client contact email.", max_length=255, verbose_name="Client Email")),
                ("contractor", models.TextField(blank=True, help_text="Contracting insurer.", null=True, verbose_name="Contractor")),
                ("consultant", models.TextField(blank=True, help_text="Default advisor.", null=True, verbose_name="Consultant")),
                ("contract_type", models.TextField(blank=True, help_text="Type of contract.", null=True, verbose_name="Contract Type")),
            ],
            options={
                "verbose_name": "Portfolio",
                "verbose_name_plural": "Portfolios",
                "ordering": ["business_portfolio_id"],
            },
        ),
        migrations.CreateModel(
            name="Holding",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("extract_date", models.DateField(help_text="As-of date of the snapshot.", verbose_name="Extract Date")),
                ("row_number", models.PositiveIntegerField(help_text="Row of the source spreadsheet.", verbose_name="Row Number")),
                ("balance", models.DecimalField(blank=True, decimal_places=2, max_digits=18, null=True, verbose_name="Balance")),
                ("label", models.TextField(blank=True, null=True, verbose_name="Label")),
                ("currency", models.CharField(blank=True, max_length=16, null=True, verbose_name="Currency")),
                ("valuation_eur_currency", djmoney.models.fields.CurrencyField(choices=CURRENCY_CHOICES, default="EUR", editable=False, max_length=3, null=True)),
                ("valuation_eur", djmoney.models.fields.MoneyField(blank=True, decimal_places=2, default_currency="EUR", help_text="Valuation including accrued interest.", max_digits=18, null=True, verbose_name="Valuation (EUR)")),
                ("weight_pct", models.DecimalField(blank=True, decimal_places=3, max_digits=9, null=True, verbose_name="Weight (%)")),
                ("isin", models.CharField(blank=True, max_length=32, null=True, verbose_name="ISIN")),
                ("pnl_eur_currency", djmoney.models.fields.CurrencyField(choices=CURRENCY_CHOICES, default="EUR", editable=False, max_length=3, null=True)),
                ("pnl_eur", djmoney.models.fields.MoneyField(blank=True, decimal_places=2, default_currency="EUR", max_digits=18, null=True, verbose_name="P&L (EUR)")),
                ("fees_eur_currency", djmoney.models.fields.CurrencyField(choices=CURRENCY_CHOICES, default="EUR", editable=False, max_length=3, null=True)),
                ("fees_eur", djmoney.models.fields.MoneyField(blank=True, decimal_places=2, default_currency="EUR", max_digits=18, null=True, verbose_name="Fees (EUR)")),
                ("asset_name", models.TextField(blank=True, null=True, verbose_name="Asset Name")),
                ("strategy", models.TextField(blank=True, null=True, verbose_name="Strategy")),
                ("bucket", models.TextField(blank=True, null=True, verbose_name="Bucket")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("portfolio", models.ForeignKey(help_text="Portfolio this row belongs to.", on_delete=django.db.models.deletion.CASCADE, related_name="holdings", to="portfolios.portfolio")),
            ],
            options={
                "verbose_name": "Holding",
                "verbose_name_plural": "Holdings",
                "ordering": ["-extract_date", "portfolio", "row_number"],
                "indexes": [
                    models.Index(fields=["portfolio", "extract_date"], name="portfolios__portfol_5b1e2c_idx"),
                    models.Index(fields=["extract_date"], name="portfolios__extract_9d0a41_idx"),
                ],
            },
        ),
    ]
