import json
import logging

from django.conf import settings
from django.db import DatabaseError
from django.http import JsonResponse, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods
from rest_framework.utils.encoders import JSONEncoder

from . import paystack
from .exceptions import BookingValidationError
from .filters import BookingFilter
from .models import BookingStatus
from .serializers import BookingSerializer
from .services import get_booking_store, get_notifier

logger = logging.getLogger(__name__)


def _json(data, status=200):
    return JsonResponse(data, status=status, encoder=JSONEncoder, safe=not isinstance(data, list))


def _error(message, status, errors=None):
    body = {'message': message}
    if errors:
        body['errors'] = errors
    return _json(body, status=status)


@csrf_exempt
@require_http_methods(["GET", "POST"])
def bookings_collection(request):
    if request.method == 'POST':
        return create_booking(request)
    return list_bookings(request)


def create_booking(request):
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return _error('Invalid JSON', 400)
    if not isinstance(data, dict):
        return _error('Booking payload must be a JSON object', 400)

    if not data.get('refId'):
        data['refId'] = data.get('paymentId')

    try:
        booking = get_booking_store().create(data)
    except BookingValidationError as e:
        logger.warning("Rejected booking payload: %s", e.message)
        return _error(e.message, 400, e.errors)
    except DatabaseError as e:
        logger.exception("Error creating booking")
        return _error(str(e), 400)

    return _json(BookingSerializer(booking).data, status=201)


def list_bookings(request):
    try:
        booking_filter = BookingFilter.from_query_params(request.GET)
    except BookingValidationError as e:
        return _error(e.message, 400)

    try:
        bookings = get_booking_store().query(booking_filter)
    except DatabaseError as e:
        logger.exception("Error fetching bookings with %r", booking_filter)
        return _error(str(e), 500)

    return _json(BookingSerializer(bookings, many=True).data)


@csrf_exempt
@require_http_methods(["GET", "DELETE"])
def booking_detail(request, booking_id):
    store = get_booking_store()
    try:
        if request.method == 'DELETE':
            deleted = store.delete_by_id(booking_id)
            if not deleted:
                return _error('Booking not found', 404)
            logger.info("Booking %s deleted", booking_id)
            return _json({'message': 'Booking deleted successfully'})

        booking = store.get(booking_id)
        if booking is None:
            return _error('Booking not found', 404)
        return _json(BookingSerializer(booking).data)

    except BookingValidationError as e:
        return _error(e.message, 400)
    except DatabaseError as e:
        logger.exception("Error handling %s for booking %s", request.method, booking_id)
        return _error(str(e), 500)


@csrf_exempt
@require_http_methods(["PATCH"])
def verify_booking(request, booking_id):
    try:
        change = get_booking_store().set_status_by_id(booking_id, BookingStatus.PAID)
    except BookingValidationError as e:
        return _error(e.message, 400)
    except DatabaseError as e:
        logger.exception("Error verifying booking %s", booking_id)
        return _error(str(e), 400)

    if change is None:
        return _error('Booking not found', 404)

    logger.info("Booking %s manually verified (was %s)", booking_id, change.previous_status)
    return _json(BookingSerializer(change.booking).data)


@csrf_exempt
@require_http_methods(["POST"])
def paystack_webhook(request):
    payload = request.body

    if settings.PAYSTACK_VERIFY_SIGNATURE:
        signature = request.headers.get(paystack.SIGNATURE_HEADER)
        if not paystack.verify_signature(payload, signature, settings.PAYSTACK_SECRET_KEY):
            logger.warning("Paystack webhook rejected: invalid signature")
            return _error('Invalid signature', 400)

    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Paystack webhook rejected: invalid JSON")
        return _error('Invalid JSON', 400)
    if not isinstance(event, dict):
        return _error('Invalid payload', 400)

    event_type = event.get('event')
    if event_type == paystack.CHARGE_SUCCESS:
        handle_charge_success(event)
    else:
        logger.debug("Ignoring Paystack event %s", event_type)

    # Paystack retries any non-2xx, so every structurally valid delivery is acknowledged.
    return HttpResponse('Webhook received', status=200, content_type='text/plain')


def handle_charge_success(event):
    reference = paystack.get_reference(event)
    if not reference:
        logger.warning("charge.success event without data.reference")
        return

    try:
        change = get_booking_store().find_one_and_set_status(reference, BookingStatus.PAID)
    except DatabaseError:
        logger.exception("Error updating booking status for paymentId %s", reference)
        return

    if change is None:
        logger.info("No booking found with paymentId %s", reference)
        return

    booking = change.booking
    if not change.changed:
        logger.info("Booking %s already paid, skipping confirmation", booking.id)
        return

    logger.info("Booking %s updated to paid", booking.id)
    notify_booking_paid(booking)


def notify_booking_paid(booking):
    if not booking.email:
        logger.warning("Booking %s has no email, confirmation not sent", booking.id)
        return
    try:
        get_notifier().send_booking_confirmation(booking)
    except Exception:
        logger.exception("Failed to send confirmation for booking %s", booking.id)
