"""Test settings.

In-memory SQLite, a single database alias for both the request and the
maintenance path, eager Celery and quiet logs.
"""

from .base import *  # noqa: F401,F403

DEBUG = False

SECRET_KEY = 'test-secret-key'
ENCRYPTION_KEY = 'test-encryption-key'

DATABASES = {
    'default': {
        'ENGINE': os.environ.get('DB_ENGINE', 'django.db.backends.sqlite3'),  # noqa: F405
        'NAME': os.environ.get('DB_NAME', ':memory:'),  # noqa: F405
        'USER': os.environ.get('DB_USER', ''),  # noqa: F405
        'PASSWORD': os.environ.get('DB_PASSWORD', ''),  # noqa: F405
        'HOST': os.environ.get('DB_HOST', ''),  # noqa: F405
        'PORT': os.environ.get('DB_PORT', ''),  # noqa: F405
    },
}

MAINTENANCE_DB_ALIAS = 'default'

BOOKING_ENFORCE_CHECK_IN_DATE = True

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

# The API is JWT-only and django.contrib.sessions is not installed; DRF's
# APIClient.force_authenticate()/logout() still touches client.session, so
# use a session engine that needs no database model.
SESSION_ENGINE = 'django.contrib.sessions.backends.signed_cookies'

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

for _name in ('apps', 'shared', 'django', 'celery'):
    LOGGING['loggers'][_name]['level'] = 'WARNING'  # noqa: F405
