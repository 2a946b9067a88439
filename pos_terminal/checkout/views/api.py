# checkout/views/api.py

"""
CHECKOUT API VIEWS

Purpose:
- Finalize a sale draft sent by the cashier UI (checkout orchestrator)
- Inspect and replay the offline pending-sales queue
- Receive online/offline signals from the UI
- Serve the payment-method catalog

Hard rules:
- One finalize in flight per user (cache lock); a second one gets 409.
- Totals are recomputed server-side from the draft items.
"""

from __future__ import annotations

from django.conf import settings
from django.core.cache import cache

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from drf_spectacular.utils import extend_schema, OpenApiExample

from checkout.serializers import (
    CatalogEntrySerializer,
    ConnectivityInputSerializer,
    PendingSaleSerializer,
    ReplayReportSerializer,
    SaleDraftInputSerializer,
)
from checkout.services.checkout_orchestrator import CheckoutState
from checkout.services.exceptions import (
    CheckoutValidationError,
    NumberingConflictUnresolved,
    OfflineDuringSubmission,
    PendingSaleNotFound,
    PersistenceRejected,
)
from checkout.services.numbering import SaleNumberResolver
from checkout.services.payment_catalog import PaymentMethodCatalog
from checkout.services import wiring


# =====================================================
# API ERROR NORMALIZATION
# =====================================================

def error_response(*, code: str, message: str, http_status: int, **extra):
    body = {"error": {"code": code, "message": message}}
    body.update(extra)
    return Response(body, status=http_status)


# =====================================================
# HELPERS
# =====================================================

def _finalize_lock_key(user) -> str:
    return f"pos_finalize_lock:{user.pk}"


def _vendor_name(user) -> str | None:
    full = (user.get_full_name() or "").strip() if hasattr(user, "get_full_name") else ""
    return full or getattr(user, "username", None) or None


def _outcome_status(outcome) -> int:
    if outcome.state == CheckoutState.SUCCEEDED:
        return status.HTTP_201_CREATED
    if outcome.state == CheckoutState.QUEUED:
        return status.HTTP_202_ACCEPTED
    if isinstance(outcome.error, CheckoutValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(outcome.error, NumberingConflictUnresolved):
        return status.HTTP_409_CONFLICT
    if isinstance(outcome.error, PersistenceRejected):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# =====================================================
# CHECKOUT
# =====================================================

class FinalizeCheckoutView(APIView):
    """
    Finalize a sale draft.

    Outcomes:
    - 201 succeeded (receipt included)
    - 202 queued offline (pending id included)
    - 400 validation / 409 numbering conflict or checkout in progress
    - 502 persistence rejected / 500 fatal
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=SaleDraftInputSerializer,
        responses={201: dict, 202: dict},
        description="Finalize a sale draft (direct sale or deferred order).",
        examples=[
            OpenApiExample(
                "Cash sale with change",
                value={
                    "items": [
                        {"product_id": 12, "product_name": "Jeans", "quantity": 1, "unit_price": "50000"}
                    ],
                    "payments": [{"method": "cash", "amount": "60000"}],
                },
                request_only=True,
            ),
            OpenApiExample(
                "Layaway with initial installment",
                value={
                    "items": [
                        {"product_id": 7, "product_name": "Jacket", "quantity": 1, "unit_price": "100000"}
                    ],
                    "payments": [{"method": "separado", "amount": "30000", "settlement_method": "cash"}],
                    "customer": {"id": 4, "name": "Ana"},
                },
                request_only=True,
            ),
        ],
    )
    def post(self, request):
        serializer = SaleDraftInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        lock_key = _finalize_lock_key(request.user)
        if not cache.add(lock_key, True, settings.POS_FINALIZE_LOCK_SECONDS):
            return error_response(
                code="CHECKOUT_IN_PROGRESS",
                message="Another checkout is already being processed.",
                http_status=status.HTTP_409_CONFLICT,
            )

        try:
            orchestrator = wiring.build_orchestrator()
            try:
                draft = serializer.to_draft(
                    catalog=orchestrator.catalog,
                    pos_name=settings.POS_NAME or None,
                    station_id=settings.POS_STATION_ID or None,
                    vendor_name=_vendor_name(request.user),
                )
            except ValueError as exc:
                return error_response(
                    code="VALIDATION_FAILED",
                    message=str(exc),
                    http_status=status.HTTP_400_BAD_REQUEST,
                )

            outcome = orchestrator.finalize(
                draft, document_kind=serializer.validated_data["document_kind"]
            )
        finally:
            cache.delete(lock_key)

        data = outcome.to_dict()
        if outcome.error_code:
            error = data.pop("error")
            return error_response(
                code=error["code"],
                message=error["message"],
                http_status=_outcome_status(outcome),
                outcome=data,
            )
        return Response(data, status=_outcome_status(outcome))


# =====================================================
# PENDING QUEUE
# =====================================================

class PendingSaleListView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PendingSaleSerializer

    @extend_schema(
        responses={200: PendingSaleSerializer(many=True)},
        description="Sales queued while offline, in replay order.",
    )
    def get(self, request):
        records = wiring.build_queue().list()
        return Response(PendingSaleSerializer(records, many=True).data, status=status.HTTP_200_OK)


class ReplayPendingSalesView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = ReplayReportSerializer

    @extend_schema(
        request=None,
        responses={200: ReplayReportSerializer},
        description="Replay every pending sale in insertion order.",
    )
    def post(self, request):
        report = wiring.replay_pending()
        return Response(ReplayReportSerializer(report).data, status=status.HTTP_200_OK)


class RetryPendingSaleView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=None,
        responses={200: dict},
        description="Manually resend one pending sale.",
    )
    def post(self, request, record_id: str):
        client = wiring.build_client()
        queue = wiring.build_queue()

        try:
            sent = queue.replay_one(record_id, SaleNumberResolver(client=client))
        except PendingSaleNotFound as exc:
            return error_response(code=exc.code, message=exc.message, http_status=status.HTTP_404_NOT_FOUND)
        except OfflineDuringSubmission as exc:
            wiring.build_connectivity(client=client).mark_offline()
            return error_response(
                code=exc.code,
                message=exc.message,
                http_status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        except NumberingConflictUnresolved as exc:
            return error_response(code=exc.code, message=exc.message, http_status=status.HTTP_409_CONFLICT)
        except PersistenceRejected as exc:
            return error_response(code=exc.code, message=exc.message, http_status=status.HTTP_502_BAD_GATEWAY)

        return Response(
            {
                "record_id": sent.record_id,
                "sale_number": sent.sale_number,
                "status": sent.status,
                "remaining": len(queue),
            },
            status=status.HTTP_200_OK,
        )


# =====================================================
# CONNECTIVITY
# =====================================================

class ConnectivityView(APIView):
    """
    Online/offline signal.

    GET returns the cached flag. POST records what the UI observed; an
    offline -> online transition replays the pending queue.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: dict}, description="Current connectivity flag.")
    def get(self, request):
        monitor = wiring.build_connectivity()
        return Response(
            {"online": monitor.is_online(), "pending_count": len(wiring.build_queue())},
            status=status.HTTP_200_OK,
        )

    @extend_schema(
        request=ConnectivityInputSerializer,
        responses={200: dict},
        description="Report online/offline; reconnecting triggers a replay.",
    )
    def post(self, request):
        serializer = ConnectivityInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        monitor = wiring.build_connectivity()
        reconnected = monitor.set_online(serializer.validated_data["online"])

        return Response(
            {
                "online": monitor.is_online(),
                "reconnected": reconnected,
                "pending_count": len(wiring.build_queue()),
            },
            status=status.HTTP_200_OK,
        )


# =====================================================
# PAYMENT METHODS
# =====================================================

class PaymentMethodListView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CatalogEntrySerializer

    @extend_schema(
        responses={200: CatalogEntrySerializer(many=True)},
        description="Active payment methods the cashier can pick.",
    )
    def get(self, request):
        catalog = PaymentMethodCatalog.from_database()
        entries = [m.to_dict() for m in catalog.active()]
        return Response(CatalogEntrySerializer(entries, many=True).data, status=status.HTTP_200_OK)
