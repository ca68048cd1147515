import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("portfolios", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="IngestionLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("file_name", models.CharField(max_length=255, verbose_name="File Name")),
                ("file_hash", models.CharField(blank=True, max_length=64, null=True, verbose_name="File Hash")),
                ("extract_date", models.DateField(blank=True, null=True, verbose_name="Extract Date")),
                ("rows_processed", models.IntegerField(default=0, verbose_name="Rows Processed")),
                ("status", models.CharField(choices=[("success", "Success"), ("error", "Error"), ("partial", "Partial")], db_index=True, max_length=20, verbose_name="Status")),
                ("error_message", models.TextField(blank=True, null=True, verbose_name="Error Message")),
                ("processed_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="Processed At")),
                ("processed_by", models.CharField(default="ingestion-cli", max_length=100, verbose_name="Processed By")),
                ("metadata", models.JSONField(blank=True, default=dict, help_text="Additional context (stage reached, warnings, moved file path).", verbose_name="Metadata")),
                ("portfolio", models.ForeignKey(blank=True, help_text="Portfolio the file was ingested into.", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="ingestion_logs", to="portfolios.portfolio")),
            ],
            options={
                "verbose_name": "Ingestion Log",
                "verbose_name_plural": "Ingestion Logs",
                "ordering": ["-processed_at"],
                "indexes": [
                    models.Index(fields=["portfolio", "extract_date"], name="audit_inges_portfol_3c7f8e_idx"),
                    models.Index(fields=["status", "processed_at"], name="audit_inges_status_a41b9d_idx"),
                ],
            },
        ),
    ]
