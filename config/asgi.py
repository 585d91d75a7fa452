"""ASGI entry point of the booking core API.

The tenant scope lives in a ContextVar, so concurrent requests served by
one event loop never see each other's property.
"""

import os
from django.core.asgi import get_asgi_application  # type: ignore

# Production servers should set DJANGO_SETTINGS_MODULE explicitly.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.dev')

application = get_asgi_application()
