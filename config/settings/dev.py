"""Development settings for CourtBook.

Debug on, every host allowed and mail printed to the console. With no
``PAYMENT_PROVIDER_API_KEY`` the payment gateway emulates the provider, so
bookings can be paid and confirmed without network access.
"""

import os

from .base import *  # noqa: F401,F403

DEBUG = True

ALLOWED_HOSTS = ['*']

EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

# Signed webhooks can be replayed locally with this secret
PAYMENT_WEBHOOK_SECRET = os.environ.get('PAYMENT_WEBHOOK_SECRET', 'dev-webhook-secret')

CORS_ALLOW_ALL_ORIGINS = True

LOGGING['handlers']['console']['level'] = 'DEBUG'  # noqa: F405
LOGGING['loggers']['apps']['level'] = 'DEBUG'  # noqa: F405
