"""
Redis Pub/Sub utilities for fanning Q.Vote changes out across processes.

Channels groups already reach every WebSocket consumer through the channel
layer, but in-process subscriptions (``apps.qvote.live_sync``) only see
changes published inside their own process. This module bridges that gap:

- Publisher: publishes config/candidate change events to Redis
- Subscriber: listens for events from other processes and replays them
  into the local live sync hub
- Graceful shutdown handling
- Connection failure recovery with exponential backoff
"""

import json
import logging
import signal
import threading
import time
import uuid
from typing import Any, Callable, Dict, Optional

import redis
from django.conf import settings

logger = logging.getLogger(__name__)

QVOTE_EVENTS_CHANNEL = "qvote:live_events"

# Identifies events published by this process so the subscriber can skip them
SERVER_ID = uuid.uuid4().hex

CONFIG_CHANGED = "config_changed"
CANDIDATES_CHANGED = "candidates_changed"

_redis_pool: Optional[redis.ConnectionPool] = None
_shutdown_event = threading.Event()


def get_redis_connection() -> redis.Redis:
    """
    Get a Redis connection from the pool.

    Returns:
        Redis client instance
    """
    global _redis_pool

    if _redis_pool is None:
        _redis_pool = redis.ConnectionPool(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )

    return redis.Redis(connection_pool=_redis_pool)


class QVoteEventPublisher:
    """Publishes Q.Vote change events to Redis Pub/Sub."""

    def __init__(self):
        self.redis_client: Optional[redis.Redis] = None
        self._connect()

    def _connect(self):
        try:
            self.redis_client = get_redis_connection()
            self.redis_client.ping()
            logger.info("QVoteEventPublisher: Connected to Redis")
        except redis.ConnectionError as e:
            logger.warning(f"QVoteEventPublisher: Failed to connect to Redis: {e}")
            self.redis_client = None
        except Exception as e:
            logger.error(f"QVoteEventPublisher: Unexpected error connecting to Redis: {e}")
            self.redis_client = None

    def publish(self, event_type: str, code_id: int) -> bool:
        """
        Publish a change event.

        Args:
            event_type: CONFIG_CHANGED or CANDIDATES_CHANGED
            code_id: The code whose Q.Vote state changed

        Returns:
            True if published successfully, False otherwise
        """
        if not self.redis_client:
            self._connect()

        if not self.redis_client:
            logger.debug("QVoteEventPublisher: Redis not available, skipping publish")
            return False

        try:
            message = json.dumps(
                {
                    "type": event_type,
                    "code_id": code_id,
                    "origin": SERVER_ID,
                    "timestamp": time.time(),
                }
            )
            subscribers = self.redis_client.publish(QVOTE_EVENTS_CHANNEL, message)
            logger.debug(
                f"QVoteEventPublisher: Published {event_type} for code {code_id} "
                f"(subscribers={subscribers})"
            )
            return True
        except redis.ConnectionError:
            logger.warning("QVoteEventPublisher: Connection lost, attempting reconnect")
            self._connect()
            return False
        except Exception as e:
            logger.error(f"QVoteEventPublisher: Error publishing event: {e}")
            return False


_publisher_instance: Optional[QVoteEventPublisher] = None


def get_publisher() -> QVoteEventPublisher:
    """Get or create the global QVoteEventPublisher instance."""
    global _publisher_instance
    if _publisher_instance is None:
        _publisher_instance = QVoteEventPublisher()
    return _publisher_instance


def publish_event(event_type: str, code_id: int) -> bool:
    """Convenience wrapper around the global publisher."""
    return get_publisher().publish(event_type, code_id)


class QVoteEventSubscriber:
    """
    Listens for Q.Vote change events published by other processes and
    replays them into the local live sync hub.
    """

    def __init__(self, event_handler: Optional[Callable[[Dict[str, Any]], None]] = None):
        """
        Initialize the subscriber.

        Args:
            event_handler: Optional callback for decoded events. Defaults to
                          replaying the event into ``apps.qvote.live_sync``.
        """
        self.redis_client: Optional[redis.Redis] = None
        self.pubsub = None
        self.event_handler = event_handler or self._default_event_handler
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self.reconnect_delay = 5
        self.max_reconnect_delay = 60
        self.current_reconnect_delay = self.reconnect_delay

    def _default_event_handler(self, event_data: Dict[str, Any]):
        from apps.qvote.live_sync import deliver_remote_event

        deliver_remote_event(event_data)

    def handle_message(self, raw: str):
        """Decode a raw pub/sub payload and dispatch it, skipping our own events."""
        try:
            event_data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"QVoteEventSubscriber: Invalid JSON in message: {e}")
            return

        if event_data.get("origin") == SERVER_ID:
            return
        if not event_data.get("code_id"):
            logger.warning("QVoteEventSubscriber: Received event without code_id")
            return

        try:
            self.event_handler(event_data)
        except Exception as e:
            logger.error(f"QVoteEventSubscriber: Error processing message: {e}")

    def _connect(self) -> bool:
        try:
            self.redis_client = get_redis_connection()
            self.redis_client.ping()
            self.pubsub = self.redis_client.pubsub()
            self.pubsub.subscribe(QVOTE_EVENTS_CHANNEL)
            logger.info("QVoteEventSubscriber: Connected to Redis and subscribed to channel")
            self.current_reconnect_delay = self.reconnect_delay
            return True
        except redis.ConnectionError as e:
            logger.error(f"QVoteEventSubscriber: Failed to connect to Redis: {e}")
        except Exception as e:
            logger.error(f"QVoteEventSubscriber: Unexpected error connecting: {e}")
        self.pubsub = None
        self.redis_client = None
        return False

    def _disconnect(self):
        try:
            if self.pubsub:
                self.pubsub.unsubscribe()
                self.pubsub.close()
                self.pubsub = None
            if self.redis_client:
                self.redis_client.close()
                self.redis_client = None
            logger.info("QVoteEventSubscriber: Disconnected from Redis")
        except Exception as e:
            logger.error(f"QVoteEventSubscriber: Error disconnecting: {e}")

    def _listen_loop(self):
        logger.info("QVoteEventSubscriber: Starting listen loop")

        while self.running and not _shutdown_event.is_set():
            try:
                if not self.pubsub:
                    if not self._connect():
                        logger.warning(
                            f"QVoteEventSubscriber: Reconnecting in {self.current_reconnect_delay}s"
                        )
                        time.sleep(self.current_reconnect_delay)
                        self.current_reconnect_delay = min(
                            self.current_reconnect_delay * 2, self.max_reconnect_delay
                        )
                        continue

                message = self.pubsub.get_message(timeout=1.0, ignore_subscribe_messages=True)
                if message is None:
                    continue

                if message["type"] == "message":
                    self.handle_message(message["data"])

            except redis.ConnectionError:
                logger.warning("QVoteEventSubscriber: Connection error, reconnecting")
                self._disconnect()
                self.current_reconnect_delay = min(
                    self.current_reconnect_delay * 2, self.max_reconnect_delay
                )
            except Exception as e:
                logger.error(f"QVoteEventSubscriber: Unexpected error in listen loop: {e}")
                time.sleep(1)

        logger.info("QVoteEventSubscriber: Listen loop stopped")
        self._disconnect()

    def start(self):
        """Start the subscriber in a background thread."""
        if self.running:
            logger.warning("QVoteEventSubscriber: Already running")
            return

        self.running = True
        self.thread = threading.Thread(target=self._listen_loop, daemon=True)
        self.thread.start()
        logger.info("QVoteEventSubscriber: Started")

    def stop(self):
        """Stop the subscriber."""
        if not self.running:
            return

        logger.info("QVoteEventSubscriber: Stopping...")
        self.running = False
        if self.thread:
            self.thread.join(timeout=5)
        self._disconnect()
        logger.info("QVoteEventSubscriber: Stopped")

    def is_running(self) -> bool:
        return self.running


_subscriber_instance: Optional[QVoteEventSubscriber] = None


def get_subscriber() -> QVoteEventSubscriber:
    """Get or create the global QVoteEventSubscriber instance."""
    global _subscriber_instance
    if _subscriber_instance is None:
        _subscriber_instance = QVoteEventSubscriber()
    return _subscriber_instance


def setup_signal_handlers():
    """Setup signal handlers for graceful shutdown."""

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        _shutdown_event.set()
        if _subscriber_instance:
            _subscriber_instance.stop()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)
