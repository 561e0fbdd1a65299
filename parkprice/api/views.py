"""REST API views for parking prices and sensor ingestion."""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from parkprice.core.models import PersistenceError
from parkprice.core.services.factory import get_health_registry, get_pipeline
from parkprice.ingest.schemas import DecodeError, decode_batch

logger = logging.getLogger(__name__)


class ParkingPricesView(APIView):
    """Current dynamic price of every known spot."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        """Return one quote per spot, grouped by cluster."""
        try:
            quotes = get_pipeline().quote_prices()
        except PersistenceError:
            logger.exception("Error calculating prices")
            return Response({"detail": "Error calculating prices."}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response([quote.as_dict() for quote in quotes], status=status.HTTP_200_OK)


class ParkingStatusView(APIView):
    """Accept a sensor batch over HTTP."""

    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        try:
            batch = decode_batch(request.data)
        except DecodeError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        result = get_pipeline().ingest(batch)
        return Response(result.as_dict(), status=status.HTTP_201_CREATED)


class HealthView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        return Response(get_health_registry().snapshot(), status=status.HTTP_200_OK)
