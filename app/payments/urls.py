"""
URL configuration for payments app.

Mounted at /api/v1/payments/ by config.urls.
"""

from django.urls import path

from payments import views
from payments.webhooks.views import paystack_webhook

app_name = "payments"

urlpatterns = [
    path("", views.PaymentListView.as_view(), name="payment-list"),
    path("initialize/", views.InitializePaymentView.as_view(), name="initialize"),
    path("verify/<str:reference>/", views.VerifyPaymentView.as_view(), name="verify"),
    path("statistics/", views.PaymentStatisticsView.as_view(), name="statistics"),
    path(
        "parents/<uuid:parent_id>/",
        views.ParentPaymentsView.as_view(),
        name="parent-payments",
    ),
    path("wallets/<uuid:parent_id>/", views.WalletView.as_view(), name="wallet"),
    path(
        "wallets/<uuid:parent_id>/entries/",
        views.WalletEntryView.as_view(),
        name="wallet-entries",
    ),
    path("webhooks/paystack/", paystack_webhook, name="paystack-webhook"),
    path("<uuid:payment_id>/", views.PaymentDetailView.as_view(), name="payment-detail"),
    path(
        "<uuid:payment_id>/refund/",
        views.RefundPaymentView.as_view(),
        name="payment-refund",
    ),
    path(
        "<uuid:payment_id>/cancel/",
        views.CancelPaymentView.as_view(),
        name="payment-cancel",
    ),
]
