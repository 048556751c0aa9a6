import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class AuthenticationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "authentication"

    def ready(self):
        """
        Initialize process-wide observability.

        Tracing is configured here because this app loads first; the
        marketplace app only registers its event listeners.
        """
        try:
            from django.conf import settings

            from infrastructure.observability.tracing import setup_tracing

            setup_tracing(
                service_name=getattr(settings, "OTEL_SERVICE_NAME", "liggeey-marketplace"),
                enable=getattr(settings, "OTEL_TRACING_ENABLED", False),
                console_export=getattr(settings, "OTEL_CONSOLE_EXPORT", False),
            )
        except Exception as e:
            logger.warning(f"Failed to initialize OpenTelemetry tracing: {e}")
