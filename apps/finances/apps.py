from django.apps import AppConfig


class FinancesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.finances"

    def ready(self) -> None:  # pragma: no cover - import side effects
        from shared.application.uow import register_recompute_handler

        from . import signals  # noqa: F401
        from .ledger import (
            AFFECTED_BOOKING,
            AFFECTED_GUEST,
            recompute_booking_paid_amount,
            recompute_guest_aggregates,
        )

        register_recompute_handler(AFFECTED_BOOKING, recompute_booking_paid_amount)
        register_recompute_handler(AFFECTED_GUEST, recompute_guest_aggregates)
