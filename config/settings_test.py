from .settings import *

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
DEFAULT_FROM_EMAIL = 'bookings@parish.test'

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

PAYSTACK_SECRET_KEY = 'sk_test_fake_key_for_testing'
PAYSTACK_VERIFY_SIGNATURE = False
BOOKINGS_DATE_OVERLAP = 'asymmetric'
BOOKINGS_NOTIFIER = 'bookings.notifications.EmailNotifier'
