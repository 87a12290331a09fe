import datetime

from django.utils.dateparse import parse_date
from rest_framework import serializers

from .models import Booking


class BookingDateTimeField(serializers.DateTimeField):
    """ISO-8601 datetime that also accepts a bare ``YYYY-MM-DD`` date (midnight)."""

    def to_internal_value(self, value):
        if isinstance(value, str):
            try:
                day = parse_date(value.strip())
            except ValueError:
                self.fail('invalid', format='YYYY-MM-DD or YYYY-MM-DDThh:mm[:ss[.uuuuuu]][+HH:MM|-HH:MM|Z]')
            if day is not None:
                value = datetime.datetime.combine(day, datetime.time.min)
        elif isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
            value = datetime.datetime.combine(value, datetime.time.min)
        return super().to_internal_value(value)


class BookingSerializer(serializers.ModelSerializer):
    refId = serializers.CharField(source='ref_id', required=False, allow_blank=True, allow_null=True, max_length=255)
    paymentId = serializers.CharField(source='payment_id', required=False, allow_blank=True, allow_null=True, max_length=255)
    startDate = BookingDateTimeField(source='start_date')
    endDate = BookingDateTimeField(source='end_date', required=False, allow_null=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, coerce_to_string=False)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Booking
        fields = [
            'id', 'refId', 'paymentId', 'name', 'email', 'intention', 'time',
            'startDate', 'endDate', 'amount', 'status', 'createdAt', 'updatedAt',
        ]
        read_only_fields = ['id']

    def validate_refId(self, value):
        return value or ''


def format_errors(errors):
    """Flatten serializer errors into a single ``field: message`` string."""
    parts = []
    for field, messages in errors.items():
        if isinstance(messages, dict):
            messages = [format_errors(messages)]
        elif not isinstance(messages, (list, tuple)):
            messages = [messages]
        text = ' '.join(str(message) for message in messages)
        parts.append(text if field == 'non_field_errors' else f"{field}: {text}")
    return '; '.join(parts)
