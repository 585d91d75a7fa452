import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("booking_core")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Stale new/confirmed bookings become no-shows, shortly after midnight
    "mark-no-show-bookings": {
        "task": "bookings.mark_no_shows",
        "schedule": crontab(minute=30, hour=0),
    },
}
