from django.apps import AppConfig


class BookingsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.bookings"

    def ready(self) -> None:  # pragma: no cover - import side effects
        from shared.application.message_bus import message_bus

        from .application.command_handlers import register_command_handlers

        register_command_handlers(message_bus)
