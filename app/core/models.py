"""
Core abstract base model.

BaseModel adds creation and modification timestamps to every domain model.
It carries no domain logic; payment and wallet semantics live in the
payments app.

Usage:
    from core.model_mixins import UUIDPrimaryKeyMixin
    from core.models import BaseModel

    class Wallet(UUIDPrimaryKeyMixin, BaseModel):
        parent_id = models.UUIDField(unique=True)
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model providing timestamp fields.

    Fields:
        created_at: Set once when the row is inserted
        updated_at: Refreshed on every save()

    Note:
        QuerySet.update() bypasses auto_now, so code that writes through
        conditional updates must set updated_at itself.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,  # Index for time-window reporting queries
        help_text="Timestamp when this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"
