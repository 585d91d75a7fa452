"""API views for the booking core.

The active property comes from the ``property_id`` claim of the
authenticated JWT; it is set for the duration of the request and cleared
in ``finalize_response``, which DRF always runs, error or not.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.exceptions import PermissionDenied  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.finances.models import Payment
from shared.infrastructure.tenancy import apply_tenant_setting, clear_tenant_context, set_tenant_context

from .application import interface
from .models import Booking
from .serializers import (
    AvailabilityQuerySerializer,
    BookingCreateSerializer,
    BookingHistorySerializer,
    BookingSerializer,
    BookingUpdateSerializer,
    PaymentCreateSerializer,
    PaymentSerializer,
    PriceQuerySerializer,
    TransitionSerializer,
)

PROPERTY_CLAIM = "property_id"


def property_id_from_request(request) -> int:
    token = request.auth
    property_id = token.get(PROPERTY_CLAIM) if token is not None else None
    if property_id in (None, ""):
        raise PermissionDenied("Token is not bound to a property.")
    return property_id


class TenantScopedViewMixin:
    """Bracket every request with the property of the caller's token."""

    property_id = None
    _tenant_token = None

    def initial(self, request, *args, **kwargs):  # type: ignore
        super().initial(request, *args, **kwargs)
        self.property_id = property_id_from_request(request)
        self._tenant_token = set_tenant_context(self.property_id)
        apply_tenant_setting(self.property_id)

    def finalize_response(self, request, response, *args, **kwargs):  # type: ignore
        if self._tenant_token is not None:
            apply_tenant_setting(None)
            clear_tenant_context(self._tenant_token)
            self._tenant_token = None
        return super().finalize_response(request, response, *args, **kwargs)


class BookingViewSet(
    TenantScopedViewMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Bookings of the caller's property."""

    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["status", "room", "guest", "source"]

    def get_queryset(self):  # type: ignore
        return Booking.objects.select_related("room", "guest")

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        booking = interface.create_booking(
            self.property_id,
            data["room_id"],
            data["guest_id"],
            data["check_in"],
            data["check_out"],
            adults=data["adults"],
            children=data["children"],
            source=data["source"],
            total_amount_override=data.get("total_amount"),
            rate_id=data.get("rate_id"),
            notes=data.get("notes"),
            source_reference=data.get("source_reference"),
        )
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None, *args, **kwargs):  # type: ignore
        booking = self.get_object()
        serializer = BookingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = interface.update_booking(self.property_id, booking.pk, **serializer.validated_data)
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=["post"])
    def transition(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = interface.transition_booking(
            self.property_id,
            booking.pk,
            serializer.validated_data["status"],
            serializer.validated_data.get("reason"),
        )
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=["get", "post"])
    def payments(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        if request.method == "GET":
            payments = Payment.objects.filter(booking=booking)
            return Response(PaymentSerializer(payments, many=True).data)

        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        receipt = interface.record_payment(
            self.property_id,
            booking.pk,
            data["amount"],
            data["method"],
            reference=data.get("reference"),
            notes=data.get("notes"),
        )
        return Response(
            {
                "payment": PaymentSerializer(receipt.payment).data,
                "paid_amount": receipt.paid_amount,
                "balance": receipt.balance,
                "warnings": receipt.warnings,
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["delete"], url_path=r"payments/(?P<payment_id>\d+)")
    def delete_payment(self, request, payment_id=None):  # type: ignore
        interface.delete_payment(self.property_id, int(payment_id))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        return Response(BookingHistorySerializer(booking.history.all(), many=True).data)

    @action(detail=False, methods=["get"])
    def availability(self, request):  # type: ignore
        serializer = AvailabilityQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        available = interface.check_availability(
            self.property_id,
            data["room_id"],
            data["check_in"],
            data["check_out"],
            data.get("exclude_booking_id"),
        )
        return Response({"room_id": data["room_id"], "available": available})

    @action(detail=False, methods=["get"])
    def price(self, request):  # type: ignore
        serializer = PriceQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        stay = interface.price_stay(
            self.property_id,
            data["room_id"],
            data["check_in"],
            data["check_out"],
            data.get("rate_id"),
        )
        return Response(stay.to_dict())
