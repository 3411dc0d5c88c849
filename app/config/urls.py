"""
URL configuration for the tutoring payments service.

URL Structure:
    /                                       - ReDoc API documentation
    /admin/                                 - Django admin interface
    /health/                                - Health check endpoint
    /schema/                                - OpenAPI schema (YAML)
    /api/v1/payments/                       - Payment endpoints
        (root)                              - All payments with total (staff)
        initialize/                         - Start a checkout (POST)
        verify/{reference}/                 - Verify with the gateway (GET)
        statistics/                         - Revenue statistics (staff)
        parents/{parent_id}/                - A parent's payments
        wallets/{parent_id}/                - A parent's wallet
        {payment_id}/                       - Payment detail
        {payment_id}/refund/                - Refund a completed payment (staff)
        {payment_id}/cancel/                - Cancel an open checkout
        webhooks/paystack/                  - Paystack webhook endpoint (POST)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Payments Admin"
admin.site.site_title = "Payments Admin Portal"
admin.site.index_title = "Payments, refunds and wallets"
