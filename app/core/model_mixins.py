"""
Reusable abstract model mixins.

UUIDPrimaryKeyMixin:
    Non-guessable UUID primary keys. Payments, refunds and wallets are all
    addressed by id in URLs and webhook metadata, so sequential integers
    would leak volume.

Usage:
    class Payment(UUIDPrimaryKeyMixin, BaseModel):
        ...

Note:
    Always list mixins before BaseModel in inheritance.
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """Use a random UUID as primary key instead of an auto-increment integer."""

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


__all__ = ["UUIDPrimaryKeyMixin"]
