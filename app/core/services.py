"""
Service layer base class.

Services hold the business logic between views/tasks and models. They are
stateless classes with classmethods (or instances carrying injected
collaborators only), raise typed exceptions from core.exceptions for
expected failures, and log through a per-class logger.

Usage:
    from core.services import BaseService

    class WalletService(BaseService):
        @classmethod
        def credit(cls, wallet, amount):
            with cls.atomic():
                ...
            cls.get_logger().info("Wallet credited", extra={"wallet_id": str(wallet.id)})
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator


class BaseService:
    """
    Base class for service layer classes.

    Provides:
    - A logger named after the concrete service class
    - An explicit transaction boundary helper
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        The logger is named ``<module>.<ClassName>`` so the ``payments``
        logger configured in settings picks up every payments service.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around ``transaction.atomic()`` that makes transaction
        boundaries explicit in service code. Nested use creates savepoints.
        """
        with transaction.atomic():
            yield


__all__ = ["BaseService"]
