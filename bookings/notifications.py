import logging
from email.utils import make_msgid, parseaddr

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)

CONFIRMATION_SUBJECT = 'Mass Intention Booking Confirmed - {ref}'


class BaseNotifier:
    """Sends booking notifications. Subclasses implement ``send``."""

    def send(self, from_email, to, subject, text, html=None):
        raise NotImplementedError

    def send_booking_confirmation(self, booking):
        context = {
            'booking': booking,
            'reference': booking.ref_id or booking.payment_id or str(booking.id),
            'date_range': booking.date_range_display(),
        }
        subject = CONFIRMATION_SUBJECT.format(ref=context['reference'])
        text = render_to_string('bookings/email/confirmation.txt', context)
        html = render_to_string('bookings/email/confirmation.html', context)
        delivery_id = self.send(settings.DEFAULT_FROM_EMAIL, booking.email, subject, text, html)
        logger.info("Confirmation %s sent to %s for booking %s", delivery_id, booking.email, booking.id)
        return delivery_id


class EmailNotifier(BaseNotifier):

    def send(self, from_email, to, subject, text, html=None):
        message_id = make_msgid(domain=parseaddr(from_email)[1].rpartition('@')[2] or None)
        message = EmailMultiAlternatives(
            subject=subject,
            body=text,
            from_email=from_email,
            to=[to],
            headers={'Message-ID': message_id},
        )
        if html:
            message.attach_alternative(html, 'text/html')
        message.send(fail_silently=False)
        return message_id
