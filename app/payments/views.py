"""
API views for payments.

URL Structure (under /api/v1/payments/):
    initialize/                      POST  Start a checkout
    verify/{reference}/              GET   Verify and settle a payment
    {id}/                            GET   Payment detail
    {id}/refund/                     POST  Refund a completed payment (staff)
    {id}/cancel/                     POST  Cancel an open payment
    parents/{parent_id}/             GET   A parent's payments
    ""                               GET   All payments with total (staff)
    statistics/                      GET   Counts and revenue (staff)
    wallets/{parent_id}/             GET   Wallet balance and transactions
    wallets/{parent_id}/entries/     POST  Manual credit or debit (staff)
    webhooks/paystack/               POST  Paystack webhook (no auth)

All business logic lives in PaymentOrchestrator and WalletService. Views
validate input shape, call the service and map typed errors to HTTP:
    ValidationError -> 400, NotFoundError -> 404, ConflictError -> 409
    (including InsufficientFunds),
    GatewayRetryableError -> 503, GatewayFatalError -> 502

Non-staff callers only reach the parent named in their access token
(see payments.permissions).
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from payments.exceptions import GatewayError, GatewayRetryableError
from payments.models import TransactionDirection
from payments.permissions import IsParentOrStaff
from payments.serializers import (
    CancelRequestSerializer,
    CheckoutResultSerializer,
    InitializePaymentSerializer,
    PaymentFilterSerializer,
    PaymentListSerializer,
    PaymentSerializer,
    PaymentStatisticsSerializer,
    RefundRequestSerializer,
    WalletEntryResultSerializer,
    WalletEntrySerializer,
    WalletSerializer,
)
from payments.services import PaymentOrchestrator
from payments.wallet.services import WalletService

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS_MAP: list[tuple[type[BaseApplicationError], int]] = [
    (GatewayRetryableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (GatewayError, status.HTTP_502_BAD_GATEWAY),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
]


def error_status(exc: BaseApplicationError) -> int:
    for error_class, code in ERROR_STATUS_MAP:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


class PaymentAPIView(APIView):
    """
    Base view that renders application errors as ``to_dict()`` bodies.

    Subclasses call the orchestrator through ``get_orchestrator()`` so
    tests can patch one place to inject a fake gateway.
    """

    permission_classes = [IsAuthenticated, IsParentOrStaff]

    def get_orchestrator(self) -> PaymentOrchestrator:
        return PaymentOrchestrator()

    def handle_exception(self, exc):
        if isinstance(exc, BaseApplicationError):
            code = error_status(exc)
            log = logger.error if code >= 500 else logger.info
            log(
                "Request failed",
                extra={
                    "path": self.request.path,
                    "error_code": exc.error_code,
                    "status_code": code,
                },
            )
            return Response(exc.to_dict(), status=code)
        return super().handle_exception(exc)


# =============================================================================
# Checkout and Settlement
# =============================================================================


class InitializePaymentView(PaymentAPIView):
    """Start a checkout and return where to send the parent."""

    @extend_schema(
        operation_id="initialize_payment",
        summary="Initialize payment",
        tags=["Payments"],
        request=InitializePaymentSerializer,
        responses={
            201: CheckoutResultSerializer,
            400: OpenApiResponse(description="Invalid amount, items, type or method"),
            403: OpenApiResponse(description="Checkout for another parent"),
            502: OpenApiResponse(description="Gateway rejected the checkout"),
            503: OpenApiResponse(description="Gateway unavailable, retry later"),
        },
    )
    def post(self, request):
        serializer = InitializePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        params = serializer.to_params()
        self.check_object_permissions(request, params)

        checkout = self.get_orchestrator().initialize_payment(params)
        return Response(
            CheckoutResultSerializer(checkout).data,
            status=status.HTTP_201_CREATED,
        )


class VerifyPaymentView(PaymentAPIView):
    """Verify a payment with the gateway; idempotent."""

    @extend_schema(
        operation_id="verify_payment",
        summary="Verify payment",
        tags=["Payments"],
        responses={
            200: PaymentSerializer,
            403: OpenApiResponse(description="Another parent's payment"),
            404: OpenApiResponse(description="Unknown reference"),
            503: OpenApiResponse(description="Gateway unavailable, retry later"),
        },
    )
    def get(self, request, reference: str):
        orchestrator = self.get_orchestrator()
        self.check_object_permissions(request, orchestrator.get_by_reference(reference))

        payment = orchestrator.verify_payment(reference)
        return Response(PaymentSerializer(payment).data)


class PaymentDetailView(PaymentAPIView):
    @extend_schema(
        operation_id="get_payment",
        summary="Get payment",
        tags=["Payments"],
        responses={
            200: PaymentSerializer,
            403: OpenApiResponse(description="Another parent's payment"),
            404: OpenApiResponse(description="Not found"),
        },
    )
    def get(self, request, payment_id):
        payment = self.get_orchestrator().get_payment(payment_id)
        self.check_object_permissions(request, payment)
        return Response(PaymentSerializer(payment).data)


class RefundPaymentView(PaymentAPIView):
    """Refund a completed payment. Staff only."""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="refund_payment",
        summary="Refund payment",
        tags=["Payments"],
        request=RefundRequestSerializer,
        responses={
            200: PaymentSerializer,
            400: OpenApiResponse(description="Invalid refund amount"),
            404: OpenApiResponse(description="Not found"),
            409: OpenApiResponse(description="Not refundable or refund in progress"),
            502: OpenApiResponse(description="Gateway rejected the refund"),
            503: OpenApiResponse(description="Gateway unavailable, retry later"),
        },
    )
    def post(self, request, payment_id):
        serializer = RefundRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        payment = self.get_orchestrator().refund_payment(
            payment_id,
            amount=serializer.validated_data.get("amount"),
            reason=serializer.validated_data["reason"],
        )
        return Response(PaymentSerializer(payment).data)


class CancelPaymentView(PaymentAPIView):
    @extend_schema(
        operation_id="cancel_payment",
        summary="Cancel payment",
        tags=["Payments"],
        request=CancelRequestSerializer,
        responses={
            200: PaymentSerializer,
            403: OpenApiResponse(description="Another parent's payment"),
            404: OpenApiResponse(description="Not found"),
        },
    )
    def post(self, request, payment_id):
        serializer = CancelRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        orchestrator = self.get_orchestrator()
        self.check_object_permissions(request, orchestrator.get_payment(payment_id))

        payment = orchestrator.cancel_payment(
            payment_id=payment_id,
            reason=serializer.validated_data["reason"],
        )
        return Response(PaymentSerializer(payment).data)


# =============================================================================
# Listing and Reporting
# =============================================================================


class ParentPaymentsView(PaymentAPIView):
    @extend_schema(
        operation_id="list_parent_payments",
        summary="List a parent's payments",
        tags=["Payments"],
        parameters=[PaymentFilterSerializer],
        responses={
            200: PaymentSerializer(many=True),
            403: OpenApiResponse(description="Another parent's payments"),
        },
    )
    def get(self, request, parent_id):
        filters = PaymentFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)

        payments = self.get_orchestrator().list_for_parent(
            parent_id,
            status=filters.validated_data.get("status"),
            payment_type=filters.validated_data.get("payment_type"),
        )
        return Response(PaymentSerializer(payments, many=True).data)


class PaymentListView(PaymentAPIView):
    """All payments in a window with the completed total. Staff only."""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="list_payments",
        summary="List payments",
        tags=["Payments - Admin"],
        parameters=[PaymentFilterSerializer],
        responses={200: PaymentListSerializer},
    )
    def get(self, request):
        filters = PaymentFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)

        payments, total_amount = self.get_orchestrator().list_payments(**filters.validated_data)
        return Response(
            PaymentListSerializer({"payments": payments, "total_amount": total_amount}).data
        )


class PaymentStatisticsView(PaymentAPIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="payment_statistics",
        summary="Payment statistics",
        tags=["Payments - Admin"],
        parameters=[PaymentFilterSerializer],
        responses={200: PaymentStatisticsSerializer},
    )
    def get(self, request):
        filters = PaymentFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)

        stats = self.get_orchestrator().get_statistics(
            start=filters.validated_data.get("start"),
            end=filters.validated_data.get("end"),
        )
        return Response(PaymentStatisticsSerializer(stats).data)


# =============================================================================
# Wallet
# =============================================================================


class WalletView(PaymentAPIView):
    """A parent's wallet balance and transaction log."""

    @extend_schema(
        operation_id="get_wallet",
        summary="Get parent wallet",
        tags=["Wallets"],
        responses={
            200: WalletSerializer,
            403: OpenApiResponse(description="Another parent's wallet"),
            404: OpenApiResponse(description="No wallet"),
        },
    )
    def get(self, request, parent_id):
        wallet = WalletService.get_wallet(parent_id)
        return Response(
            WalletSerializer(
                {
                    "parent_id": wallet.parent_id,
                    "balance": wallet.balance,
                    "currency": wallet.currency,
                    "transactions": WalletService.get_transactions(wallet),
                }
            ).data
        )


class WalletEntryView(PaymentAPIView):
    """
    Post a manual credit or debit to a parent's wallet. Staff only.

    The reference is the idempotency key: replaying it returns the original
    entry with 200 and leaves the balance alone. A credit opens the wallet
    on first use; a debit needs an existing wallet with enough balance.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="create_wallet_entry",
        summary="Post wallet entry",
        tags=["Wallets"],
        request=WalletEntrySerializer,
        responses={
            200: WalletEntryResultSerializer,
            201: WalletEntryResultSerializer,
            400: OpenApiResponse(description="Invalid amount or direction"),
            404: OpenApiResponse(description="No wallet to debit"),
            409: OpenApiResponse(description="Insufficient funds"),
        },
    )
    def post(self, request, parent_id):
        serializer = WalletEntrySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data["direction"] == TransactionDirection.CREDIT:
            wallet = WalletService.get_or_create_wallet(parent_id)
            post_entry = WalletService.credit
        else:
            wallet = WalletService.get_wallet(parent_id)
            post_entry = WalletService.debit

        result = post_entry(
            wallet,
            amount=data["amount"],
            description=data["description"],
            reference=data["reference"],
            metadata={"posted_by": str(request.user.pk)},
        )
        wallet.refresh_from_db()

        return Response(
            WalletEntryResultSerializer(
                {
                    "created": result.created,
                    "balance": wallet.balance,
                    "transaction": result.transaction,
                }
            ).data,
            status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        )
