import logging
import uuid

from django.db import transaction

from .exceptions import BookingValidationError
from .models import Booking
from .serializers import BookingSerializer, format_errors

logger = logging.getLogger(__name__)


class StatusChange:
    """Result of a status write: the updated booking and the status it had before."""

    def __init__(self, booking, previous_status):
        self.booking = booking
        self.previous_status = previous_status

    @property
    def changed(self):
        return self.previous_status != self.booking.status


class BookingStore:
    """Single-collection access to Booking records.

    Every write touches one row. Status writes lock the row for the duration
    of the update so concurrent webhook deliveries and staff verification
    serialize on the same booking.
    """

    def __init__(self, model=Booking):
        self.model = model

    def _parse_id(self, booking_id):
        try:
            return uuid.UUID(str(booking_id))
        except (TypeError, ValueError):
            raise BookingValidationError(f'Invalid booking id: {booking_id}')

    def create(self, record):
        serializer = BookingSerializer(data=record)
        if not serializer.is_valid():
            raise BookingValidationError(format_errors(serializer.errors), errors=serializer.errors)
        booking = serializer.save()
        logger.info("Booking %s created (refId=%s)", booking.id, booking.ref_id)
        return booking

    def get(self, booking_id):
        pk = self._parse_id(booking_id)
        return self.model.objects.filter(pk=pk).first()

    def _set_status(self, lookup, ordering, status):
        with transaction.atomic():
            booking = (
                self.model.objects.select_for_update()
                .filter(**lookup)
                .order_by(*ordering)
                .first()
            )
            if booking is None:
                return None
            previous_status = booking.status
            booking.status = status
            booking.save(update_fields=['status', 'updated_at'])
        return StatusChange(booking, previous_status)

    def find_one_and_set_status(self, payment_id, status):
        if not payment_id:
            return None
        return self._set_status({'payment_id': payment_id}, ['created_at'], status)

    def set_status_by_id(self, booking_id, status):
        pk = self._parse_id(booking_id)
        return self._set_status({'pk': pk}, ['pk'], status)

    def delete_by_id(self, booking_id):
        pk = self._parse_id(booking_id)
        deleted, _ = self.model.objects.filter(pk=pk).delete()
        return deleted > 0

    def query(self, booking_filter):
        return list(self.model.objects.filter(booking_filter.to_q()).order_by(*booking_filter.ordering))
