"""
Payment-specific exceptions.

Every error the payments core raises is one of the classes below, so callers
only ever see this taxonomy and never a raw HTTP client or gateway payload.

Exception Hierarchy:
    ValidationError (core)
    └── PaymentValidationError - Bad amount, items, type or method

    NotFoundError (core)
    └── PaymentNotFoundError - Unknown payment id or reference

    ConflictError (core)
    ├── RefundConflictError - Refund not legal or already in flight
    └── LockAcquisitionError - Distributed lock timeout

    ExternalServiceError (core)
    └── GatewayError - Base for all payment gateway errors
        ├── GatewayRetryableError - Timeout, connection error, 5xx, 429
        │   ├── GatewayTimeoutError - Request sent, no response in time
        │   └── GatewayAuthenticationError - Merchant key rejected (401/403)
        └── GatewayFatalError - Gateway rejected the request outright

Usage:
    from payments.exceptions import GatewayError, GatewayRetryableError

    try:
        result = gateway.verify_transaction(reference)
    except GatewayRetryableError:
        raise  # state unchanged, caller tries again
    except GatewayFatalError as e:
        mark_failed(e.message)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentValidationError(ValidationError):
    """
    Raised when a payment request is rejected before any gateway call.

    Example:
        if sum(item.total_price for item in items) != amount:
            raise PaymentValidationError(
                "Line items do not add up to the payment amount",
                error_code="ITEMS_TOTAL_MISMATCH",
                details={"amount": amount, "items_total": items_total},
            )
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class PaymentNotFoundError(NotFoundError):
    """Raised when a payment cannot be found by id or reference."""

    default_error_code: str = "PAYMENT_NOT_FOUND"


class RefundConflictError(ConflictError):
    """
    Raised when a refund is not legal in the payment's current state.

    Covers refunds of payments that never completed and a second refund
    request while the first is still waiting on the gateway. A refund that
    already completed is not an error: the refund call returns it.
    """

    default_error_code: str = "REFUND_CONFLICT"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Background sweeps use this to skip a run when another worker is
    already doing the same job.
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(ExternalServiceError):
    """
    Base exception for payment gateway errors.

    Attributes:
        is_retryable: Whether the same call may succeed later
        status_code: HTTP status returned by the gateway, if any
        gateway_message: Gateway's own message, kept for logs and details
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        gateway_message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        if gateway_message:
            details["gateway_message"] = gateway_message
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code
        self.gateway_message = gateway_message


class GatewayRetryableError(GatewayError):
    """
    The gateway could not give an answer; try again later.

    Raised for connection errors, HTTP 5xx and HTTP 429. Payment state is
    never changed because of this error.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayTimeoutError(GatewayRetryableError):
    """
    Gateway call timed out.

    The request may have been processed on the gateway's side. Retrying
    is safe because the payment reference identifies the transaction.
    """

    default_error_code: str = "GATEWAY_TIMEOUT"


class GatewayAuthenticationError(GatewayRetryableError):
    """
    The gateway refused our credentials (HTTP 401 or 403).

    A merchant configuration problem says nothing about the charge itself,
    so payments are left as they are until the key is fixed.
    """

    default_error_code: str = "GATEWAY_AUTHENTICATION_FAILED"


class GatewayFatalError(GatewayError):
    """
    The gateway rejected the request.

    Raised for HTTP 4xx (other than 401, 403 and 429), ``"status": false``
    bodies, unknown references and responses that cannot be decoded.
    Verification moves the payment to failed; initialize and refund report
    it.
    """

    default_error_code: str = "GATEWAY_REJECTED"
    is_retryable: bool = False


__all__ = [
    "PaymentValidationError",
    "PaymentNotFoundError",
    "RefundConflictError",
    "LockAcquisitionError",
    "GatewayError",
    "GatewayRetryableError",
    "GatewayTimeoutError",
    "GatewayAuthenticationError",
    "GatewayFatalError",
]
