import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class MarketplaceConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "marketplace"

    def ready(self):
        # Register event listeners, then start the bus (a no-op for the in-memory backend)
        try:
            from django.conf import settings

            from marketplace.infra.events.listeners import register_marketplace_listeners

            event_bus = register_marketplace_listeners()

            if getattr(settings, "INFRASTRUCTURE", {}).get("EVENT_BUS_START_LISTENER", True):
                event_bus.start_listening()
        except Exception as e:
            logger.error(f"Failed to register marketplace listeners: {e}")
