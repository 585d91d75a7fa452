"""Production settings for the booking core.

Sensitive values must come from environment variables. The database is
expected to be PostgreSQL so the overlap exclusion constraint and the
row-level security policies are in place.
"""

from django.core.exceptions import ImproperlyConfigured  # type: ignore

from .base import *  # noqa: F401,F403

# Never run with debug enabled in production
DEBUG = False

# Allowed hosts should be defined explicitly via environment variable
ALLOWED_HOSTS = os.environ.get('DJANGO_ALLOWED_HOSTS', '').split(',')  # noqa: F405

SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

for _var in ('DJANGO_SECRET_KEY', 'ENCRYPTION_KEY'):
    if not os.environ.get(_var):  # noqa: F405
        raise ImproperlyConfigured(f"Missing required environment variable: {_var}")

if DATABASES['default']['ENGINE'] != 'django.db.backends.postgresql':  # noqa: F405
    raise ImproperlyConfigured("Production requires DB_ENGINE=django.db.backends.postgresql")

DATABASES['default']['CONN_MAX_AGE'] = int(os.environ.get('DB_CONN_MAX_AGE', 60))  # noqa: F405
