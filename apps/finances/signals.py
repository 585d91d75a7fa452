"""Model signal handlers that tag ledger aggregates affected by a write."""

from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from apps.bookings.models import Booking
from shared.application.uow import notify_affected

from .ledger import AFFECTED_BOOKING, AFFECTED_GUEST
from .models import Payment


@receiver([post_save, post_delete], sender=Payment)
def payment_changed(sender, instance, **kwargs):
    """Any ledger entry change invalidates the booking's paid amount."""
    notify_affected(AFFECTED_BOOKING, instance.booking_id)


@receiver(pre_save, sender=Booking)
def store_previous_aggregate_inputs(sender, instance, **kwargs):
    """Remember guest, status and total before an update for the post_save diff."""
    if instance._state.adding:
        instance._previous_values = {}
        return

    previous = instance.get_loaded_values()
    if not previous:
        previous = (
            sender._base_manager.filter(pk=instance.pk)
            .values(*sender.tracked_fields)
            .first()
            or {}
        )
    instance._previous_values = previous


@receiver(post_save, sender=Booking)
def booking_saved(sender, instance, created, **kwargs):
    previous = getattr(instance, "_previous_values", {})
    affected_guests = []

    if created:
        affected_guests.append(instance.guest_id)
    else:
        changed = [
            name
            for name in sender.tracked_fields
            if name in previous and previous[name] != getattr(instance, name)
        ]
        if changed:
            affected_guests.append(instance.guest_id)
        if "guest_id" in changed:
            affected_guests.append(previous["guest_id"])

    for guest_id in affected_guests:
        notify_affected(AFFECTED_GUEST, guest_id)
    instance.remember_tracked_values()


@receiver(post_delete, sender=Booking)
def booking_deleted(sender, instance, **kwargs):
    notify_affected(AFFECTED_GUEST, instance.guest_id)
