from functools import lru_cache

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver
from django.utils.module_loading import import_string

from .store import BookingStore


@lru_cache(maxsize=None)
def get_booking_store():
    return BookingStore()


@lru_cache(maxsize=None)
def get_notifier():
    return import_string(settings.BOOKINGS_NOTIFIER)()


@receiver(setting_changed)
def reset_notifier(sender, setting, **kwargs):
    if setting == 'BOOKINGS_NOTIFIER':
        get_notifier.cache_clear()
