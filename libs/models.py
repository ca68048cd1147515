"""
Base model mixins shared by the project's apps.

Provides TimeStampedModel, an abstract base adding creation and
modification timestamps.
"""

from __future__ import annotations

from django.db import models
from django.utils.translation import gettext_lazy as _


class TimeStampedModel(models.Model):
    """
    Abstract base model with created_at / updated_at columns.

    Usage:
        class Portfolio(TimeStampedModel):
            name = models.CharField(max_length=255)
    """

    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        abstract = True
