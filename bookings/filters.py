import datetime

from django.conf import settings
from django.db.models import Q
from django.utils.dateparse import parse_datetime
from rest_framework import serializers

from .exceptions import BookingValidationError
from .serializers import BookingDateTimeField

ASYMMETRIC = 'asymmetric'
SYMMETRIC = 'symmetric'

END_OF_DAY = datetime.time(23, 59, 59, 999000)


def _parse_date_param(name, value):
    try:
        return BookingDateTimeField().run_validation(value)
    except serializers.ValidationError as e:
        detail = ' '.join(str(message) for message in e.detail)
        raise BookingValidationError(f"{name}: {detail}", errors={name: e.detail})


def _caller_datetime(value):
    """Aware datetime in the offset the caller sent, or None."""
    try:
        parsed = parse_datetime(value.strip())
    except ValueError:
        return None
    if parsed is None or parsed.tzinfo is None:
        return None
    return parsed


class BookingFilter:
    """Status and date-overlap filter for listing bookings.

    A booking occupies ``[start_date, end_date or start_date]``. ``date_to``
    bounds the start, ``date_from`` bounds the end. In asymmetric mode a
    booking without ``end_date`` always passes the ``date_from`` check, so a
    single-day booking dated before ``date_from`` is still listed. Symmetric
    mode compares its ``start_date`` instead.
    """

    def __init__(self, status=None, date_from=None, date_to=None, overlap=None):
        self.status = status or None
        self.date_from = date_from
        self.date_to = date_to
        self.overlap = overlap or getattr(settings, 'BOOKINGS_DATE_OVERLAP', ASYMMETRIC)
        if self.overlap not in (ASYMMETRIC, SYMMETRIC):
            raise ValueError(f"Unknown date overlap mode: {self.overlap!r}")

    @classmethod
    def from_query_params(cls, params, overlap=None):
        date_from = params.get('dateFrom')
        date_to = params.get('dateTo')
        if date_from:
            date_from = _parse_date_param('dateFrom', date_from)
        if date_to:
            parsed = _caller_datetime(date_to) or _parse_date_param('dateTo', date_to)
            date_to = datetime.datetime.combine(parsed.date(), END_OF_DAY, tzinfo=parsed.tzinfo)
        return cls(
            status=params.get('status'),
            date_from=date_from or None,
            date_to=date_to or None,
            overlap=overlap,
        )

    @property
    def has_date_range(self):
        return self.date_from is not None or self.date_to is not None

    @property
    def ordering(self):
        if self.has_date_range:
            return ['start_date']
        return ['-created_at']

    def to_q(self):
        q = Q()
        if self.status:
            q &= Q(status=self.status)
        if self.date_to is not None:
            q &= Q(start_date__lte=self.date_to)
        if self.date_from is not None:
            if self.overlap == SYMMETRIC:
                open_ended = Q(end_date__isnull=True, start_date__gte=self.date_from)
            else:
                open_ended = Q(end_date__isnull=True)
            q &= Q(end_date__gte=self.date_from) | open_ended
        return q

    def __repr__(self):
        return (
            f"BookingFilter(status={self.status!r}, date_from={self.date_from!r}, "
            f"date_to={self.date_to!r}, overlap={self.overlap!r})"
        )
