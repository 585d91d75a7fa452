"""URL configuration for the booking core.

Only the booking API is exposed; tokens are issued by the identity
service and verified here with ``rest_framework_simplejwt``.
"""
from django.urls import path, include  # type: ignore

urlpatterns = [
    path('api/v1/bookings/', include('apps.bookings.urls')),
]
