import uuid

from django.db import models
from django.utils.dateformat import format as format_date


class BookingStatus:
    """Known status values. Status is stored as an open string, callers may use others."""

    PENDING = 'pending'
    OFFICE_PENDING = 'office_pending'
    PAID = 'paid'


class Booking(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    ref_id = models.CharField(max_length=255, blank=True, default='', db_index=True)
    payment_id = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    name = models.CharField(max_length=255)
    email = models.EmailField()
    intention = models.TextField()
    time = models.CharField(max_length=100, blank=True, default='')
    start_date = models.DateTimeField(db_index=True)
    end_date = models.DateTimeField(null=True, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=32, default=BookingStatus.PENDING, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'bookings_booking'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'start_date'], name='booking_status_start_idx'),
        ]

    def __str__(self):
        return f"{self.ref_id or self.id} - {self.name} - {self.status}"

    @property
    def is_paid(self):
        return self.status == BookingStatus.PAID

    def date_range_display(self, fmt='j F Y'):
        start = format_date(self.start_date, fmt)
        if self.end_date is None or self.end_date.date() == self.start_date.date():
            return start
        return f"{start} to {format_date(self.end_date, fmt)}"
