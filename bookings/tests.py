import datetime
import json
import uuid
from decimal import Decimal
from unittest.mock import patch, MagicMock

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core import mail
from django.db import DatabaseError
from django.test import TestCase, Client, override_settings

from . import paystack
from .exceptions import BookingValidationError
from .filters import BookingFilter
from .models import Booking
from .notifications import EmailNotifier
from .services import get_notifier
from .store import BookingStore

UTC = datetime.timezone.utc


def day(year, month, date, hour=0, minute=0):
    return datetime.datetime(year, month, date, hour, minute, tzinfo=UTC)


def make_booking(**overrides):
    fields = {
        'ref_id': 'REF1',
        'payment_id': 'PAY1',
        'name': 'Mary Okafor',
        'email': 'mary@example.com',
        'intention': 'For the repose of the soul of John Okafor',
        'time': '7:00 AM',
        'start_date': day(2024, 1, 10),
        'amount': Decimal('2000.00'),
        'status': 'pending',
    }
    fields.update(overrides)
    return Booking.objects.create(**fields)


class RecordingNotifier(EmailNotifier):
    def __init__(self):
        self.sent = []

    def send(self, from_email, to, subject, text, html=None):
        self.sent.append((from_email, to, subject))
        return 'recorded'


class BookingCreationTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.payload = {
            'paymentId': 'PAY1',
            'name': 'Mary Okafor',
            'email': 'mary@example.com',
            'intention': 'Thanksgiving for a safe delivery',
            'time': '7:00 AM',
            'startDate': '2024-01-10',
            'endDate': '2024-01-12',
            'amount': 2000,
        }

    def post(self, payload):
        return self.client.post(
            '/api/bookings',
            data=json.dumps(payload),
            content_type='application/json'
        )

    def test_ref_id_defaults_to_payment_id(self):
        response = self.post(self.payload)

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual(data['refId'], 'PAY1')
        self.assertEqual(data['paymentId'], 'PAY1')

        booking = Booking.objects.get(id=data['id'])
        self.assertEqual(booking.ref_id, 'PAY1')

    def test_explicit_ref_id_is_preserved(self):
        self.payload['refId'] = 'CUSTOM'
        response = self.post(self.payload)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['refId'], 'CUSTOM')
        self.assertEqual(Booking.objects.get().ref_id, 'CUSTOM')

    def test_generated_fields_are_returned(self):
        response = self.post(self.payload)

        data = response.json()
        self.assertTrue(data['id'])
        self.assertTrue(data['createdAt'])
        self.assertEqual(data['status'], 'pending')
        self.assertEqual(data['startDate'], '2024-01-10T00:00:00Z')
        self.assertEqual(data['endDate'], '2024-01-12T00:00:00Z')
        self.assertEqual(data['amount'], 2000.0)

    def test_caller_status_is_kept(self):
        self.payload['status'] = 'office_pending'
        response = self.post(self.payload)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['status'], 'office_pending')

    def test_missing_start_date_returns_400(self):
        del self.payload['startDate']
        response = self.post(self.payload)

        self.assertEqual(response.status_code, 400)
        self.assertIn('startDate', response.json()['message'])
        self.assertEqual(Booking.objects.count(), 0)

    def test_malformed_start_date_returns_400(self):
        self.payload['startDate'] = 'next tuesday'
        response = self.post(self.payload)

        self.assertEqual(response.status_code, 400)
        self.assertIn('startDate', response.json()['message'])

    def test_invalid_json_returns_400(self):
        response = self.client.post(
            '/api/bookings',
            data='{not json',
            content_type='application/json'
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'Invalid JSON')


class PaystackWebhookTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.booking = make_booking(ref_id='REF-42', payment_id='PAY1')

    def deliver(self, event, **extra):
        return self.client.post(
            '/api/bookings/webhook/paystack',
            data=json.dumps(event),
            content_type='application/json',
            **extra
        )

    def test_charge_success_marks_booking_paid_once(self):
        event = {'event': 'charge.success', 'data': {'reference': 'PAY1'}}

        response1 = self.deliver(event)
        response2 = self.deliver(event)

        self.assertEqual(response1.status_code, 200)
        self.assertEqual(response2.status_code, 200)
        self.assertEqual(response1.content, b'Webhook received')
        self.assertEqual(Booking.objects.filter(status='paid').count(), 1)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'paid')

    def test_redelivery_sends_single_confirmation(self):
        event = {'event': 'charge.success', 'data': {'reference': 'PAY1'}}

        self.deliver(event)
        self.deliver(event)

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ['mary@example.com'])
        self.assertIn('REF-42', message.subject)
        self.assertIn('REF-42', message.body)
        self.assertIn('10 January 2024', message.body)
        self.assertIn('7:00 AM', message.body)
        self.assertIn('2000.00', message.body)
        self.assertIn('John Okafor', message.body)

    def test_unknown_reference_is_acknowledged(self):
        response = self.deliver({'event': 'charge.success', 'data': {'reference': 'UNKNOWN'}})

        self.assertEqual(response.status_code, 200)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'pending')
        self.assertEqual(Booking.objects.count(), 1)
        self.assertEqual(len(mail.outbox), 0)

    def test_unrelated_event_is_ignored(self):
        response = self.deliver({'event': 'charge.failed', 'data': {'reference': 'PAY1'}})

        self.assertEqual(response.status_code, 200)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'pending')
        self.assertEqual(len(mail.outbox), 0)

    def test_missing_reference_is_acknowledged(self):
        response = self.deliver({'event': 'charge.success'})

        self.assertEqual(response.status_code, 200)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'pending')

    @patch('bookings.views.get_notifier')
    def test_notification_failure_does_not_affect_response(self, mock_get_notifier):
        notifier = MagicMock()
        notifier.send_booking_confirmation.side_effect = ConnectionRefusedError('smtp down')
        mock_get_notifier.return_value = notifier

        response = self.deliver({'event': 'charge.success', 'data': {'reference': 'PAY1'}})

        self.assertEqual(response.status_code, 200)
        notifier.send_booking_confirmation.assert_called_once()
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'paid')

    @patch('bookings.views.get_booking_store')
    def test_store_error_is_acknowledged(self, mock_get_store):
        mock_get_store.return_value.find_one_and_set_status.side_effect = DatabaseError('connection lost')

        response = self.deliver({'event': 'charge.success', 'data': {'reference': 'PAY1'}})

        self.assertEqual(response.status_code, 200)

    def test_invalid_json_returns_400(self):
        response = self.client.post(
            '/api/bookings/webhook/paystack',
            data='{not json',
            content_type='application/json'
        )
        self.assertEqual(response.status_code, 400)

    def test_signature_header_ignored_in_trust_mode(self):
        response = self.deliver(
            {'event': 'charge.success', 'data': {'reference': 'PAY1'}},
            HTTP_X_PAYSTACK_SIGNATURE='bogus'
        )
        self.assertEqual(response.status_code, 200)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'paid')


@override_settings(PAYSTACK_VERIFY_SIGNATURE=True)
class PaystackSignatureTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.booking = make_booking(payment_id='PAY1')
        self.body = json.dumps({'event': 'charge.success', 'data': {'reference': 'PAY1'}})

    def test_rejects_missing_signature(self):
        response = self.client.post(
            '/api/bookings/webhook/paystack',
            data=self.body,
            content_type='application/json'
        )
        self.assertEqual(response.status_code, 400)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'pending')

    def test_rejects_invalid_signature(self):
        response = self.client.post(
            '/api/bookings/webhook/paystack',
            data=self.body,
            content_type='application/json',
            HTTP_X_PAYSTACK_SIGNATURE='0' * 128
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'Invalid signature')

    def test_accepts_valid_signature(self):
        signature = paystack.compute_signature(self.body, settings.PAYSTACK_SECRET_KEY)
        response = self.client.post(
            '/api/bookings/webhook/paystack',
            data=self.body,
            content_type='application/json',
            HTTP_X_PAYSTACK_SIGNATURE=signature
        )
        self.assertEqual(response.status_code, 200)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'paid')

    def test_rejects_non_ascii_signature(self):
        response = self.client.post(
            '/api/bookings/webhook/paystack',
            data=self.body,
            content_type='application/json',
            HTTP_X_PAYSTACK_SIGNATURE='caf\u00e9'
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'Invalid signature')
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'pending')


class PaystackSignatureHelperTest(TestCase):
    def test_missing_secret_or_signature_fails(self):
        self.assertFalse(paystack.verify_signature(b'{}', None, 'secret'))
        self.assertFalse(paystack.verify_signature(b'{}', 'abc', ''))

    def test_signature_is_sha512_hex(self):
        signature = paystack.compute_signature(b'{}', 'secret')
        self.assertEqual(len(signature), 128)
        self.assertTrue(paystack.verify_signature(b'{}', signature.upper(), 'secret'))


class BookingListFilterTest(TestCase):
    def setUp(self):
        self.client = Client()

    def get(self, **params):
        response = self.client.get('/api/bookings', params)
        self.assertEqual(response.status_code, 200)
        return [item['refId'] for item in response.json()]

    def test_overlapping_range_includes_booking(self):
        make_booking(ref_id='RANGE', start_date=day(2024, 1, 10), end_date=day(2024, 1, 12))

        self.assertEqual(self.get(dateFrom='2024-01-11', dateTo='2024-01-20'), ['RANGE'])

    def test_range_ending_before_start_excludes_booking(self):
        make_booking(ref_id='RANGE', start_date=day(2024, 1, 10), end_date=day(2024, 1, 12))

        self.assertEqual(self.get(dateTo='2024-01-05'), [])

    def test_range_starting_after_end_excludes_booking(self):
        make_booking(ref_id='RANGE', start_date=day(2024, 1, 10), end_date=day(2024, 1, 12))

        self.assertEqual(self.get(dateFrom='2024-01-13'), [])

    def test_single_day_booking_before_date_from_still_matches(self):
        # Current behaviour: bookings without endDate skip the dateFrom check.
        make_booking(ref_id='SINGLE', start_date=day(2024, 1, 1), end_date=None)

        self.assertEqual(self.get(dateFrom='2024-06-01', dateTo='2024-06-30'), ['SINGLE'])

    @override_settings(BOOKINGS_DATE_OVERLAP='symmetric')
    def test_symmetric_mode_excludes_single_day_booking_before_date_from(self):
        make_booking(ref_id='SINGLE', start_date=day(2024, 1, 1), end_date=None)
        make_booking(ref_id='INSIDE', start_date=day(2024, 6, 2), end_date=None)

        self.assertEqual(self.get(dateFrom='2024-06-01', dateTo='2024-06-30'), ['INSIDE'])

    def test_date_to_includes_whole_day(self):
        make_booking(ref_id='EVENING', start_date=day(2024, 1, 5, 18, 30))

        self.assertEqual(self.get(dateTo='2024-01-05'), ['EVENING'])

    def test_status_filter_is_exact(self):
        make_booking(ref_id='A', status='pending')
        make_booking(ref_id='B', status='office_pending')
        make_booking(ref_id='C', status='paid')

        self.assertEqual(self.get(status='office_pending'), ['B'])

    def test_status_and_date_filters_combine(self):
        make_booking(ref_id='A', status='paid', start_date=day(2024, 3, 1))
        make_booking(ref_id='B', status='pending', start_date=day(2024, 3, 2))
        make_booking(ref_id='C', status='paid', start_date=day(2024, 5, 1))

        self.assertEqual(self.get(status='paid', dateFrom='2024-03-01', dateTo='2024-03-31'), ['A'])

    def test_date_filter_orders_by_start_date(self):
        make_booking(ref_id='LATE', start_date=day(2024, 2, 20))
        make_booking(ref_id='EARLY', start_date=day(2024, 2, 1))
        make_booking(ref_id='MIDDLE', start_date=day(2024, 2, 10))

        self.assertEqual(self.get(dateFrom='2024-01-01'), ['EARLY', 'MIDDLE', 'LATE'])

    def test_without_date_filter_orders_newest_first(self):
        older = make_booking(ref_id='OLDER')
        newer = make_booking(ref_id='NEWER')
        Booking.objects.filter(pk=older.pk).update(created_at=day(2024, 1, 1))
        Booking.objects.filter(pk=newer.pk).update(created_at=day(2024, 1, 2))

        self.assertEqual(self.get(), ['NEWER', 'OLDER'])

    def test_malformed_date_returns_400(self):
        response = self.client.get('/api/bookings', {'dateFrom': 'soon'})

        self.assertEqual(response.status_code, 400)
        self.assertIn('dateFrom', response.json()['message'])

    @patch('bookings.views.get_booking_store')
    def test_store_error_returns_500(self, mock_get_store):
        mock_get_store.return_value.query.side_effect = DatabaseError('connection lost')

        response = self.client.get('/api/bookings')

        self.assertEqual(response.status_code, 500)
        self.assertIn('connection lost', response.json()['message'])


class BookingFilterTest(TestCase):
    def test_date_to_is_normalized_to_end_of_day(self):
        booking_filter = BookingFilter.from_query_params({'dateTo': '2024-01-05'})

        self.assertEqual(booking_filter.date_to, datetime.datetime(2024, 1, 5, 23, 59, 59, 999000, tzinfo=UTC))

    def test_empty_params_have_no_date_range(self):
        booking_filter = BookingFilter.from_query_params({})

        self.assertFalse(booking_filter.has_date_range)
        self.assertEqual(booking_filter.ordering, ['-created_at'])

    def test_date_to_keeps_callers_calendar_day(self):
        booking_filter = BookingFilter.from_query_params({'dateTo': '2024-01-05T00:30:00+05:00'})

        offset = datetime.timezone(datetime.timedelta(hours=5))
        self.assertEqual(booking_filter.date_to, datetime.datetime(2024, 1, 5, 23, 59, 59, 999000, tzinfo=offset))

    def test_unknown_overlap_mode_is_rejected(self):
        with self.assertRaises(ValueError):
            BookingFilter(overlap='fuzzy')


class BookingVerifyTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.booking = make_booking(status='office_pending')

    def test_verify_marks_booking_paid(self):
        response = self.client.patch(f'/api/bookings/{self.booking.id}/verify')

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['id'], str(self.booking.id))
        self.assertEqual(data['status'], 'paid')
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'paid')
        self.assertEqual(len(mail.outbox), 0)

    def test_verify_unknown_booking_returns_404(self):
        response = self.client.patch(f'/api/bookings/{uuid.uuid4()}/verify')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['message'], 'Booking not found')

    def test_verify_malformed_id_returns_400(self):
        response = self.client.patch('/api/bookings/not-an-id/verify')

        self.assertEqual(response.status_code, 400)

    @patch('bookings.views.get_booking_store')
    def test_verify_store_error_returns_400(self, mock_get_store):
        mock_get_store.return_value.set_status_by_id.side_effect = DatabaseError('down')

        response = self.client.patch(f'/api/bookings/{self.booking.id}/verify')

        self.assertEqual(response.status_code, 400)
        self.assertIn('down', response.json()['message'])


class BookingDeleteTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.booking = make_booking()

    def test_delete_is_permanent(self):
        response = self.client.delete(f'/api/bookings/{self.booking.id}')

        self.assertEqual(response.status_code, 200)
        self.assertIn('message', response.json())
        self.assertFalse(Booking.objects.filter(pk=self.booking.pk).exists())

        response = self.client.get(f'/api/bookings/{self.booking.id}')
        self.assertEqual(response.status_code, 404)

    def test_delete_unknown_booking_returns_404(self):
        response = self.client.delete(f'/api/bookings/{uuid.uuid4()}')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(Booking.objects.count(), 1)

    def test_delete_malformed_id_returns_400(self):
        response = self.client.delete('/api/bookings/12345')

        self.assertEqual(response.status_code, 400)

    @patch('bookings.views.get_booking_store')
    def test_delete_store_error_returns_500(self, mock_get_store):
        mock_get_store.return_value.delete_by_id.side_effect = DatabaseError('down')

        response = self.client.delete(f'/api/bookings/{self.booking.id}')

        self.assertEqual(response.status_code, 500)
        self.assertIn('down', response.json()['message'])
        self.assertTrue(Booking.objects.filter(pk=self.booking.pk).exists())

    def test_get_booking(self):
        response = self.client.get(f'/api/bookings/{self.booking.id}')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['refId'], 'REF1')


class BookingStoreTest(TestCase):
    def setUp(self):
        self.store = BookingStore()

    def test_find_one_and_set_status_miss_returns_none(self):
        self.assertIsNone(self.store.find_one_and_set_status('NOPE', 'paid'))
        self.assertIsNone(self.store.find_one_and_set_status('', 'paid'))

    def test_status_change_reports_transition(self):
        make_booking(payment_id='PAY9')

        first = self.store.find_one_and_set_status('PAY9', 'paid')
        second = self.store.find_one_and_set_status('PAY9', 'paid')

        self.assertTrue(first.changed)
        self.assertEqual(first.previous_status, 'pending')
        self.assertFalse(second.changed)

    def test_find_one_updates_oldest_match(self):
        older = make_booking(payment_id='DUP', ref_id='OLDER')
        newer = make_booking(payment_id='DUP', ref_id='NEWER')
        Booking.objects.filter(pk=older.pk).update(created_at=day(2024, 1, 1))
        Booking.objects.filter(pk=newer.pk).update(created_at=day(2024, 1, 2))

        change = self.store.find_one_and_set_status('DUP', 'paid')

        self.assertEqual(change.booking.pk, older.pk)
        newer.refresh_from_db()
        self.assertEqual(newer.status, 'pending')

    def test_create_rejects_invalid_email(self):
        with self.assertRaises(BookingValidationError) as ctx:
            self.store.create({
                'name': 'X',
                'email': 'not-an-email',
                'intention': 'Y',
                'startDate': '2024-01-01',
                'amount': 10,
            })
        self.assertIn('email', ctx.exception.errors)

    def test_get_malformed_id_raises(self):
        with self.assertRaises(BookingValidationError):
            self.store.get('abc')


class NotifierTest(TestCase):
    def test_confirmation_email_has_text_and_html(self):
        booking = make_booking(ref_id='REF7', start_date=day(2024, 1, 10), end_date=day(2024, 1, 12))

        delivery_id = EmailNotifier().send_booking_confirmation(booking)

        self.assertTrue(delivery_id)
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.from_email, settings.DEFAULT_FROM_EMAIL)
        self.assertIn('10 January 2024 to 12 January 2024', message.body)
        html, mimetype = message.alternatives[0]
        self.assertEqual(mimetype, 'text/html')
        self.assertIn('REF7', html)

    def test_date_range_display_single_day(self):
        booking = make_booking(start_date=day(2024, 3, 4), end_date=None)

        self.assertEqual(booking.date_range_display(), '4 March 2024')

    def test_notifier_follows_setting_override(self):
        get_notifier()
        with override_settings(BOOKINGS_NOTIFIER='bookings.tests.RecordingNotifier'):
            self.assertIsInstance(get_notifier(), RecordingNotifier)
        self.assertNotIsInstance(get_notifier(), RecordingNotifier)


class BookingAdminTest(TestCase):
    def setUp(self):
        self.client = Client()
        User = get_user_model()
        self.admin = User.objects.create_superuser(username='admin', email='admin@example.com', password='pass')
        self.client.force_login(self.admin)

    def test_mark_as_paid_action(self):
        first = make_booking(status='office_pending')
        second = make_booking(status='pending', payment_id='PAY2')

        response = self.client.post('/admin/bookings/booking/', {
            'action': 'mark_as_paid',
            '_selected_action': [str(first.pk), str(second.pk)],
        })

        self.assertEqual(response.status_code, 302)
        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(first.status, 'paid')
        self.assertEqual(second.status, 'paid')
