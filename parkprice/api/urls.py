"""API URL configuration."""
from __future__ import annotations

from django.urls import path

from parkprice.api.views import HealthView, ParkingPricesView, ParkingStatusView

urlpatterns = [
    path("parking-prices", ParkingPricesView.as_view(), name="parking-prices"),
    path("parking-status", ParkingStatusView.as_view(), name="parking-status"),
    path("admin/health", HealthView.as_view(), name="admin-health"),
]
