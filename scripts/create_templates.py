"""
Script to create the Excel template for holdings extracts.

The template has the exact layout ingestion expects (portfolio id in B1,
extract date in B5, headers at row 9, data from row 10) and no data rows.

Usage:
    python scripts/create_templates.py
"""

from __future__ import annotations

import os
from pathlib import Path

import django

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")
django.setup()

from apps.portfolios.ingestion.template import build_holdings_template  # noqa: E402

# Template directory
TEMPLATE_DIR = Path(__file__).parent.parent / "docs" / "templates"


def create_holdings_extract_template(directory: Path = TEMPLATE_DIR) -> Path:
    """Create the blank holdings extract template and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "holdings_extract_template.xlsx"
    build_holdings_template().save(path)
    print(f"Created {path}")
    return path


if __name__ == "__main__":
    print("Creating Excel templates...")
    create_holdings_extract_template()
    print("All templates created successfully!")
