"""Development settings for the booking core.

Extends the base settings with debug enabled and readable console logs.
Do not use these settings in production!
"""

import structlog

from .base import *  # noqa: F401,F403

DEBUG = True

ALLOWED_HOSTS = ['*']

# Dates are often faked during local testing
BOOKING_ENFORCE_CHECK_IN_DATE = env_bool('BOOKING_ENFORCE_CHECK_IN_DATE', False)  # noqa: F405

LOGGING['formatters']['json']['processor'] = structlog.dev.ConsoleRenderer()  # noqa: F405
LOG_LEVEL = 'DEBUG'
for _name in ('apps', 'shared'):
    LOGGING['loggers'][_name]['level'] = LOG_LEVEL  # noqa: F405
