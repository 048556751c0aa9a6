import json
import logging
import threading
from typing import Callable

import redis
from django.conf import settings

from .event_bus_interface import EventBus


logger = logging.getLogger(__name__)


class RedisEventBus(EventBus):
    """Redis pub/sub implementation of event bus."""

    channel_prefix = "events."

    def __init__(self, redis_url: str = None):
        self.redis_url = redis_url or getattr(settings, "REDIS_URL", "redis://localhost:6379/0")

        try:
            self.redis_client = redis.from_url(self.redis_url)
        except Exception as e:
            logger.error(f"Failed to connect to Redis at {self.redis_url}: {e}")
            self.redis_client = None

        self._subscribers = {}
        self._listening = False

    def publish(self, event_type: str, payload: dict):
        """Publish event to Redis channel."""
        if not self.redis_client:
            logger.warning(f"Redis client not available. Event {event_type} dropped.")
            return

        try:
            message = self.build_envelope(event_type, payload)
            self.redis_client.publish(f"{self.channel_prefix}{event_type}", json.dumps(message))
            logger.info(f"Published event: {event_type}")
        except Exception as e:
            # Event publishing must not break business logic
            logger.error(f"Failed to publish event {event_type}: {str(e)}")

    def subscribe(self, event_type: str, handler: Callable):
        """Subscribe to event channel."""
        self._subscribers.setdefault(event_type, []).append(handler)
        logger.info(f"Registered handler for event: {event_type}")

    def start_listening(self):
        """Start listening to subscribed channels (background thread)."""
        if self._listening or not self.redis_client:
            return

        channels = [f"{self.channel_prefix}{et}" for et in self._subscribers]
        if not channels:
            return

        def listen():
            try:
                pubsub = self.redis_client.pubsub()
                pubsub.subscribe(*channels)
                logger.info(f"EventBus listening on: {channels}")

                for message in pubsub.listen():
                    if message["type"] == "message":
                        self._handle_message(message)
            except Exception as e:
                logger.error(f"EventBus listener crashed: {e}")
            finally:
                self._listening = False

        self._listening = True
        thread = threading.Thread(target=listen, name="redis-event-bus", daemon=True)
        thread.start()

    def _handle_message(self, message):
        """Decode a pub/sub message and fan it out to the registered handlers."""
        try:
            data = json.loads(message["data"])
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to decode event message: {str(e)}")
            return

        event_type = data.get("event_type")
        for handler in self._subscribers.get(event_type, []):
            try:
                handler(data)
            except Exception as e:
                logger.error(f"Handler error for {event_type}: {str(e)}", exc_info=True)
