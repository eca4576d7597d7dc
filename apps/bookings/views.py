"""API views for the booking domain."""

from __future__ import annotations

import logging

from django.utils import timezone  # type: ignore
from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.payments.serializers import PaymentDetailSerializer, PaymentSerializer
from apps.payments.services import verified_intent
from apps.venues.models import Court
from shared.domain.outcomes import ErrorKind, Failure
from shared.interfaces.http import failure_response
from shared.interfaces.pagination import PageLimitPagination

from .application.command_handlers import (
    ApplyPaymentResultCommand,
    ApplyPaymentResultHandler,
    CancelBookingCommand,
    CancelBookingHandler,
    CompleteFinishedBookingsCommand,
    CompleteFinishedBookingsHandler,
    ReserveCourtCommand,
    ReserveCourtHandler,
)
from .models import Booking
from .serializers import (
    AvailabilityQuerySerializer,
    BookedRangeSerializer,
    BookingDetailSerializer,
    BookingSerializer,
    PaymentConfirmationSerializer,
    ReservationRequestSerializer,
    TimeSlotSerializer,
    court_summary,
)
from .services import court_day_availability

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "HTTP_IDEMPOTENCY_KEY"


class IsBookingOwner(permissions.BasePermission):
    """Players see and change only their own bookings."""

    message = "You do not have access to this booking."

    def has_object_permission(self, request, view, obj: Booking) -> bool:  # type: ignore
        return obj.user_id == request.user.id


class BookingViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Viewset for reserving courts and managing the player's bookings."""

    queryset = Booking.objects.select_related("court", "court__venue", "payment").all()
    permission_classes = [permissions.IsAuthenticated, IsBookingOwner]
    pagination_class = PageLimitPagination
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["status"]
    lookup_value_regex = r"\d+"

    def get_serializer_class(self):  # type: ignore
        if self.action == "list":
            return BookingSerializer
        return BookingDetailSerializer

    def get_queryset(self):  # type: ignore
        qs = super().get_queryset()
        if self.action == "list":
            return qs.filter(user=self.request.user).order_by("-start_at")
        # Detail lookups see every booking so other users' get 403, not 404.
        return qs

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = ReservationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        outcome = ReserveCourtHandler().handle(
            ReserveCourtCommand(
                requester_id=request.user.id,
                court_id=data["courtId"],
                day=data["date"],
                start_hour=data["startTime"],
                duration_hours=data["duration"],
                note=data.get("notes", ""),
                idempotency_key=request.META.get(IDEMPOTENCY_HEADER),
            )
        )
        if not outcome.is_ok:
            return failure_response(outcome.failure)

        reservation = outcome.value
        body = {
            "booking": BookingDetailSerializer(reservation.booking).data,
            "payment": PaymentSerializer(reservation.payment).data,
        }
        code = status.HTTP_200_OK if reservation.replayed else status.HTTP_201_CREATED
        return Response(body, status=code)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        outcome = CancelBookingHandler().handle(
            CancelBookingCommand(booking_id=int(pk), requester_id=request.user.id)
        )
        if not outcome.is_ok:
            return failure_response(outcome.failure)
        booking = outcome.value
        return Response({"id": booking.pk, "status": booking.status}, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get", "post"])
    def payment(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore

        if request.method == "GET":
            return Response(PaymentDetailSerializer(booking.payment).data)

        serializer = PaymentConfirmationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reference = serializer.validated_data["paymentIntentId"]

        # The client's claim is only a hint; the provider decides.
        verified = verified_intent(booking.payment, reference)
        if not verified.is_ok:
            return failure_response(verified.failure)
        provider = verified.value
        if provider["status"] != serializer.validated_data["status"]:
            logger.warning(
                f"Client reported '{serializer.validated_data['status']}' for booking {booking.pk}, "
                f"provider says '{provider['status']}'"
            )

        outcome = ApplyPaymentResultHandler().handle(
            ApplyPaymentResultCommand(
                booking_id=booking.pk,
                status=provider["status"],
                provider_reference=reference,
                receipt=provider.get("receipt") or "",
                source="client",
            )
        )
        if not outcome.is_ok:
            return failure_response(outcome.failure)
        applied = outcome.value
        return Response(
            {
                "booking": BookingSerializer(applied.booking).data,
                "payment": PaymentSerializer(applied.payment).data,
            }
        )

    @action(
        detail=False,
        methods=["get"],
        permission_classes=[permissions.AllowAny],
        authentication_classes=[],
    )
    def availability(self, request):  # type: ignore
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        court = (
            Court.objects.select_related("venue")
            .filter(
                pk=query.validated_data["courtId"],
                is_active=True,
                venue__status="approved",
            )
            .first()
        )
        if court is None:
            return failure_response(Failure(ErrorKind.NOT_FOUND, "Court not found."))

        grid = court_day_availability(court, query.validated_data["date"], timezone.now())
        return Response(
            {
                "courtId": court.pk,
                "date": grid.day.isoformat(),
                "timeSlots": TimeSlotSerializer(
                    grid.slots, many=True, context={"price": court.price_per_hour}
                ).data,
                "bookings": BookedRangeSerializer(grid.bookings, many=True).data,
                "court": court_summary(court),
            }
        )

    @action(
        detail=False,
        methods=["post"],
        url_path="complete-finished",
        permission_classes=[permissions.IsAdminUser],
    )
    def complete_finished(self, request):  # type: ignore
        updated = CompleteFinishedBookingsHandler().handle(CompleteFinishedBookingsCommand())
        return Response({"updatedCount": updated}, status=status.HTTP_200_OK)
