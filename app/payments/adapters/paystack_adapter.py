"""
Paystack API adapter for payment operations.

This module provides the PaystackAdapter class which encapsulates all
Paystack API interactions. All Paystack calls should go through this
adapter to ensure consistent error handling, timeouts and observability.

Features:
- Per-request timeout on all API calls
- Translation of HTTP and transport errors to GatewayRetryableError /
  GatewayFatalError
- Structured logging with timing metrics
- Webhook signature verification (HMAC-SHA512 of the raw body)

Configuration (via settings):
- PAYSTACK_SECRET_KEY: Paystack secret key (also signs webhooks)
- PAYSTACK_BASE_URL: API base URL (default: https://api.paystack.co)
- PAYSTACK_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from payments.adapters import PaystackAdapter

    gateway = PaystackAdapter()
    session = gateway.initialize_transaction(
        email="parent@example.com",
        amount=500000,
        reference="CS_1718000000000_a1b2c3d4e",
        callback_url="https://app.example/payment/verify?reference=CS_...",
    )
    result = gateway.verify_transaction("CS_1718000000000_a1b2c3d4e")
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import requests
from django.conf import settings
from django.utils.dateparse import parse_datetime

from payments.adapters.base import (
    InitializeTransactionResult,
    RefundResult,
    VerificationResult,
)
from payments.exceptions import (
    GatewayAuthenticationError,
    GatewayFatalError,
    GatewayRetryableError,
    GatewayTimeoutError,
)
from payments.state_machines import GatewayStatus

if TYPE_CHECKING:
    from datetime import datetime


# Paystack transaction statuses that mean "outcome not known yet"
IN_PROGRESS_STATUSES = frozenset({"ongoing", "pending", "processing", "queued"})

# A reversed charge never settled from our point of view
FAILED_STATUSES = frozenset({"failed", "reversed"})


class PaystackAdapter:
    """
    Adapter for Paystack API operations.

    Instances hold only configuration and an HTTP session; they are safe
    to share between threads in a Celery worker.

    Args:
        secret_key: Paystack secret key (default: settings.PAYSTACK_SECRET_KEY)
        base_url: API base URL (default: settings.PAYSTACK_BASE_URL)
        timeout: Request timeout in seconds
            (default: settings.PAYSTACK_API_TIMEOUT_SECONDS)
        session: requests.Session to use (tests pass a mock)
    """

    def __init__(
        self,
        secret_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.secret_key = (
            secret_key if secret_key is not None else settings.PAYSTACK_SECRET_KEY
        )
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = (
            timeout
            if timeout is not None
            else getattr(settings, "PAYSTACK_API_TIMEOUT_SECONDS", 10)
        )
        self.session = session or requests.Session()

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Core Operations
    # =========================================================================

    def initialize_transaction(
        self,
        email: str,
        amount: int,
        reference: str,
        callback_url: str,
        metadata: dict[str, Any] | None = None,
        currency: str | None = None,
    ) -> InitializeTransactionResult:
        """
        Start a checkout for a payment reference.

        Args:
            email: Payer's email address
            amount: Amount in minor units (kobo)
            reference: Our unique payment reference
            callback_url: Where Paystack redirects after checkout
            metadata: Key-value pairs echoed back on verify and webhooks
            currency: ISO 4217 code (Paystack defaults to the account currency)

        Returns:
            InitializeTransactionResult with access code and checkout URL

        Raises:
            GatewayRetryableError: Timeout, connection error, 5xx or 429
            GatewayFatalError: Request rejected or malformed response
        """
        log_context = {
            "operation": "initialize_transaction",
            "reference": reference,
            "amount": amount,
        }
        payload: dict[str, Any] = {
            "email": email,
            "amount": amount,
            "reference": reference,
            "callback_url": callback_url,
            "metadata": metadata or {},
        }
        if currency:
            payload["currency"] = currency.upper()

        data = self._request("POST", "/transaction/initialize", log_context, payload)

        access_code = data.get("access_code")
        authorization_url = data.get("authorization_url")
        if not access_code or not authorization_url:
            raise self._malformed(log_context, "initialize response missing checkout data")

        return InitializeTransactionResult(
            access_code=access_code,
            authorization_url=authorization_url,
        )

    def verify_transaction(self, reference: str) -> VerificationResult:
        """
        Ask Paystack for the current outcome of a reference.

        Returns:
            VerificationResult with status decoded to success, failed,
            abandoned or pending

        Raises:
            GatewayRetryableError: Timeout, connection error, 5xx or 429
            GatewayFatalError: Unknown reference or malformed response
        """
        log_context = {
            "operation": "verify_transaction",
            "reference": reference,
        }
        data = self._request(
            "GET",
            f"/transaction/verify/{quote(reference, safe='')}",
            log_context,
        )

        status = self._decode_status(data.get("status"), log_context)
        amount = data.get("amount")
        if status == GatewayStatus.SUCCESS and (
            not isinstance(amount, int) or isinstance(amount, bool)
        ):
            raise self._malformed(log_context, "successful charge without an amount")

        authorization = data.get("authorization") or {}
        paid_at_raw = data.get("paid_at") or data.get("paidAt")
        paid_at: datetime | None = (
            parse_datetime(paid_at_raw) if isinstance(paid_at_raw, str) else None
        )

        return VerificationResult(
            status=status,
            reference=data.get("reference") or reference,
            amount=amount if isinstance(amount, int) else None,
            currency=(data.get("currency") or "").upper() or None,
            channel=data.get("channel") or "",
            card_type=(authorization.get("card_type") or "").strip(),
            card_last4=authorization.get("last4") or "",
            bank=authorization.get("bank") or "",
            gateway_transaction_id=str(data.get("id") or ""),
            paid_at=paid_at,
            gateway_response=data.get("gateway_response") or "",
        )

    def refund(
        self,
        reference: str,
        amount: int | None = None,
        reason: str | None = None,
    ) -> RefundResult:
        """
        Refund a settled transaction, fully or partially.

        Args:
            reference: Reference of the transaction to refund
            amount: Amount in minor units (default: full amount)
            reason: Merchant note stored on the refund

        Returns:
            RefundResult with Paystack's refund reference

        Raises:
            GatewayRetryableError: Timeout, connection error, 5xx or 429
            GatewayFatalError: Refund rejected (already refunded, amount too
                large, transaction not settled)
        """
        log_context = {
            "operation": "refund",
            "reference": reference,
            "amount": amount,
        }
        payload: dict[str, Any] = {"transaction": reference}
        if amount is not None:
            payload["amount"] = amount
        if reason:
            payload["merchant_note"] = reason

        data = self._request("POST", "/refund", log_context, payload)

        transaction_data = data.get("transaction")
        refund_reference = (
            data.get("transaction_reference")
            or data.get("refund_reference")
            or (data.get("id") and str(data["id"]))
            or (
                isinstance(transaction_data, dict)
                and transaction_data.get("reference")
            )
        )
        if not refund_reference:
            raise self._malformed(log_context, "refund response missing a reference")

        return RefundResult(
            gateway_refund_reference=str(refund_reference),
            status=data.get("status") or "",
            raw_status={
                key: data.get(key)
                for key in ("id", "status", "amount", "currency", "refunded_at")
                if key in data
            },
        )

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """
        Check the x-paystack-signature header against the raw body.

        Paystack signs webhooks with HMAC-SHA512 keyed by the secret key.

        Returns:
            True if the signature matches
        """
        if not signature or not self.secret_key:
            return False
        expected = hmac.new(
            self.secret_key.encode("utf-8"),
            payload,
            hashlib.sha512,
        ).hexdigest()
        return hmac.compare_digest(expected, signature.strip())

    # =========================================================================
    # HTTP Plumbing and Error Handling
    # =========================================================================

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        log_context: dict[str, Any],
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Perform one API call and return the ``data`` object of the body.

        Translates every failure mode to a gateway exception so no
        requests exception or raw body escapes the adapter.
        """
        logger = self.get_logger()
        url = f"{self.base_url}{path}"

        start_time = time.time()
        logger.debug("Starting Paystack operation", extra=log_context)

        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "Paystack request timed out",
                extra={**log_context, "duration_ms": duration_ms},
            )
            raise GatewayTimeoutError(
                "Paystack request timed out. Please retry.",
                details={"operation": log_context["operation"]},
            ) from e
        except requests.RequestException as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Connection error to Paystack",
                extra={**log_context, "duration_ms": duration_ms},
                exc_info=True,
            )
            raise GatewayRetryableError(
                "Could not connect to Paystack. Please retry.",
                details={"operation": log_context["operation"]},
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        log_context = {
            **log_context,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }

        try:
            body = response.json()
        except ValueError:
            body = None
        message = body.get("message") if isinstance(body, dict) else None

        self._raise_for_status(response.status_code, body, message, log_context)

        data = body.get("data")
        if not isinstance(data, dict):
            raise self._malformed(log_context, "response has no data object")

        logger.debug("Paystack operation completed", extra=log_context)
        return data

    def _raise_for_status(
        self,
        status_code: int,
        body: Any,
        message: str | None,
        log_context: dict[str, Any],
    ) -> None:
        """
        Map an HTTP response to a gateway exception, if it is an error.

        Raises:
            GatewayAuthenticationError: 401 and 403
            GatewayRetryableError: 429 and 5xx
            GatewayFatalError: other 4xx, or a body with ``"status": false``
        """
        logger = self.get_logger()

        if status_code == 429:
            logger.warning("Rate limited by Paystack", extra=log_context)
            raise GatewayRetryableError(
                "Paystack rate limit exceeded. Please retry.",
                error_code="GATEWAY_RATE_LIMITED",
                status_code=status_code,
                gateway_message=message,
            )

        if status_code >= 500:
            logger.error("Paystack server error", extra=log_context)
            raise GatewayRetryableError(
                "Paystack service error. Please retry.",
                status_code=status_code,
                gateway_message=message,
            )

        if status_code in (401, 403):
            logger.critical(
                "Paystack authentication failed - check secret key",
                extra=log_context,
            )
            raise GatewayAuthenticationError(
                "Payment gateway authentication failed",
                status_code=status_code,
                gateway_message=message,
            )

        if status_code >= 400:
            logger.error(
                "Paystack rejected request",
                extra={**log_context, "gateway_message": message},
            )
            raise GatewayFatalError(
                message or "Paystack rejected the request",
                status_code=status_code,
                gateway_message=message,
            )

        if not isinstance(body, dict) or body.get("status") is not True:
            logger.error(
                "Paystack returned an unsuccessful body",
                extra={**log_context, "gateway_message": message},
            )
            raise GatewayFatalError(
                message or "Paystack returned an unsuccessful response",
                status_code=status_code,
                gateway_message=message,
            )

    def _decode_status(
        self,
        raw_status: Any,
        log_context: dict[str, Any],
    ) -> GatewayStatus:
        if raw_status == "success":
            return GatewayStatus.SUCCESS
        if raw_status in FAILED_STATUSES:
            return GatewayStatus.FAILED
        if raw_status == "abandoned":
            return GatewayStatus.ABANDONED
        if raw_status not in IN_PROGRESS_STATUSES:
            self.get_logger().warning(
                "Unknown Paystack transaction status, treating as pending",
                extra={**log_context, "gateway_status": raw_status},
            )
        return GatewayStatus.PENDING

    def _malformed(self, log_context: dict[str, Any], reason: str) -> GatewayFatalError:
        self.get_logger().error(
            "Malformed Paystack response",
            extra={**log_context, "reason": reason},
        )
        return GatewayFatalError(
            f"Malformed gateway response: {reason}",
            error_code="GATEWAY_MALFORMED_RESPONSE",
        )


__all__ = ["PaystackAdapter"]
