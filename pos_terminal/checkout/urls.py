"""
PATH: checkout/urls.py

CHECKOUT URLS

Purpose:
- Finalize a sale draft
- Offline pending-sales queue (list / replay / retry one)
- Connectivity signal
- Payment-method catalog
"""

from django.urls import path

from checkout.views.api import (
    FinalizeCheckoutView,
    PendingSaleListView,
    ReplayPendingSalesView,
    RetryPendingSaleView,
    ConnectivityView,
    PaymentMethodListView,
)

app_name = "checkout"

urlpatterns = [
    path("finalize/", FinalizeCheckoutView.as_view(), name="finalize"),

    path("pending/", PendingSaleListView.as_view(), name="pending-list"),
    path("pending/replay/", ReplayPendingSalesView.as_view(), name="pending-replay"),
    path("pending/<str:record_id>/retry/", RetryPendingSaleView.as_view(), name="pending-retry"),

    path("connectivity/", ConnectivityView.as_view(), name="connectivity"),
    path("payment-methods/", PaymentMethodListView.as_view(), name="payment-methods"),
]
