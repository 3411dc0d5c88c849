"""
Shared QuerySet base for time-windowed queries.

Usage:
    class PaymentQuerySet(BaseQuerySet):
        def completed(self):
            return self.filter(status="completed")

    class Payment(BaseModel):
        objects = PaymentQuerySet.as_manager()

    Payment.objects.created_between(start, None).completed()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import models

if TYPE_CHECKING:
    from datetime import date, datetime


class BaseQuerySet(models.QuerySet):
    """
    QuerySet with helpers for models that inherit BaseModel.

    All methods assume the model has created_at (provided by BaseModel).
    """

    def created_between(
        self,
        start: datetime | date | None,
        end: datetime | date | None,
    ) -> BaseQuerySet:
        """
        Filter records created within a range.

        Both bounds are inclusive and either may be None for an open range.
        """
        queryset = self
        if start is not None:
            queryset = queryset.filter(created_at__gte=start)
        if end is not None:
            queryset = queryset.filter(created_at__lte=end)
        return queryset

    def newest(self) -> BaseQuerySet:
        """Order by creation time, newest first."""
        return self.order_by("-created_at")


__all__ = ["BaseQuerySet"]
