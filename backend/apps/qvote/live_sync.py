"""
Live sync bridge: pushes Q.Vote config and candidate changes to viewers.

Three delivery paths are fed from one publish call:

- in-process subscriptions (``subscribe_config`` / ``subscribe_candidates``)
  used by headless viewer sessions, tasks and tests
- Channels groups, reaching every WebSocket consumer through the channel layer
- a Redis pub/sub event so other processes refresh their in-process
  subscriptions (see ``core.utils.redis_pubsub``)

Subscriptions deliver the current state immediately, then every change in
the order it was published. ``Subscription.cancel()`` returns only after any
in-flight callback has finished, and no callback runs after it returns.
"""

import logging
import threading
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings

from core.utils.redis_pubsub import CANDIDATES_CHANGED, CONFIG_CHANGED, publish_event

logger = logging.getLogger(__name__)

CONFIG_TOPIC = "config"
CANDIDATES_TOPIC = "candidates"


def get_config_group_name(code_id: int) -> str:
    """Generate channel group name for a code's config document."""
    return f"qvote_{code_id}_config"


def get_candidates_group_name(code_id: int) -> str:
    """Generate channel group name for a code's candidate collection."""
    return f"qvote_{code_id}_candidates"


class Subscription:
    """Handle for a live subscription; call ``cancel()`` to stop deliveries."""

    def __init__(self, hub, topic: str, code_id: int, callback: Callable, filters=None):
        self.hub = hub
        self.topic = topic
        self.code_id = code_id
        self.callback = callback
        self.filters = filters
        self._active = True
        # Re-entrant so a callback may cancel its own subscription
        self._lock = threading.RLock()

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, payload) -> bool:
        with self._lock:
            if not self._active:
                return False
            self.callback(payload)
            return True

    def cancel(self):
        with self._lock:
            if not self._active:
                return
            self._active = False
        self.hub.remove(self)
        logger.debug(f"Subscription cancelled: {self.topic} code={self.code_id}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cancel()


class LiveSyncHub:
    """In-process registry of subscriptions keyed by (topic, code_id)."""

    def __init__(self):
        self._subscriptions: Dict[tuple, List[Subscription]] = defaultdict(list)
        self._lock = threading.Lock()
        self._publish_locks: Dict[tuple, threading.RLock] = defaultdict(threading.RLock)

    def add(self, subscription: Subscription) -> Subscription:
        with self._lock:
            self._subscriptions[(subscription.topic, subscription.code_id)].append(subscription)
        return subscription

    def remove(self, subscription: Subscription):
        key = (subscription.topic, subscription.code_id)
        with self._lock:
            subscriptions = self._subscriptions.get(key, [])
            if subscription in subscriptions:
                subscriptions.remove(subscription)
            if not subscriptions:
                self._subscriptions.pop(key, None)

    def subscribers(self, topic: str, code_id: int) -> List[Subscription]:
        with self._lock:
            return list(self._subscriptions.get((topic, code_id), []))

    def publish_lock(self, topic: str, code_id: int):
        with self._lock:
            return self._publish_locks[(topic, code_id)]

    def publish(self, topic: str, code_id: int, payload_for: Callable[[Subscription], object]):
        """
        Deliver to every active subscriber of a topic.

        Payloads are built inside the per-topic lock so concurrent publishes
        reach each subscriber in the order their state was read.
        """
        with self.publish_lock(topic, code_id):
            for subscription in self.subscribers(topic, code_id):
                try:
                    subscription.deliver(payload_for(subscription))
                except Exception:
                    logger.exception(
                        f"Live sync callback failed: {topic} code={code_id}"
                    )

    def clear(self):
        with self._lock:
            subscriptions = [s for subs in self._subscriptions.values() for s in subs]
        for subscription in subscriptions:
            subscription.cancel()


hub = LiveSyncHub()


def load_config_payload(code_id: int) -> Optional[dict]:
    """Serialized public config document, or None if the code is gone."""
    from .models import QVoteConfig
    from .serializers import QVoteConfigSerializer

    config = QVoteConfig.objects.select_related("code").filter(code_id=code_id).first()
    if config is None:
        return None
    return dict(QVoteConfigSerializer(config).data)


def load_candidates_payload(code_id: int, filters=None) -> list:
    from apps.candidates.serializers import CandidateSerializer
    from apps.candidates.services import get_candidates

    return list(CandidateSerializer(get_candidates(code_id, filters), many=True).data)


def subscribe_config(code_id: int, on_change: Callable[[dict], None], deliver_initial: bool = True) -> Subscription:
    """
    Subscribe to a code's config document.

    ``on_change`` receives the full serialized config on every change
    (and once immediately unless ``deliver_initial`` is False).
    """
    subscription = Subscription(hub, CONFIG_TOPIC, code_id, on_change)
    if deliver_initial:
        with hub.publish_lock(CONFIG_TOPIC, code_id):
            hub.add(subscription)
            subscription.deliver(load_config_payload(code_id))
    else:
        hub.add(subscription)
    logger.debug(f"Config subscription opened for code {code_id}")
    return subscription


def subscribe_candidates(
    code_id: int, filters, on_change: Callable[[list], None], deliver_initial: bool = True
) -> Subscription:
    """
    Subscribe to a code's candidates, filtered with ``CandidateFilters``.

    ``on_change`` receives the filtered, serialized list on every change.
    """
    subscription = Subscription(hub, CANDIDATES_TOPIC, code_id, on_change, filters=filters)
    if deliver_initial:
        with hub.publish_lock(CANDIDATES_TOPIC, code_id):
            hub.add(subscription)
            subscription.deliver(load_candidates_payload(code_id, filters))
    else:
        hub.add(subscription)
    logger.debug(f"Candidates subscription opened for code {code_id}")
    return subscription


def _cross_process_enabled() -> bool:
    return getattr(settings, "QVOTE", {}).get("CROSS_PROCESS_EVENTS", True)


def _group_send(group_name: str, message: dict):
    try:
        channel_layer = get_channel_layer()
        if not channel_layer:
            logger.warning("Channel layer not configured, skipping broadcast")
            return
        async_to_sync(channel_layer.group_send)(group_name, message)
    except Exception as e:
        logger.error(f"Error broadcasting to {group_name}: {e}")


def publish_config_change(code_id: int, broadcast: bool = True):
    """
    Push the current config of a code to every subscriber.

    Args:
        code_id: Code whose config changed
        broadcast: Also notify WebSocket groups and other processes
    """
    payload = {}

    def payload_for(subscription):
        if "config" not in payload:
            payload["config"] = load_config_payload(code_id)
        return payload["config"]

    hub.publish(CONFIG_TOPIC, code_id, payload_for)

    if broadcast:
        config = payload["config"] if "config" in payload else load_config_payload(code_id)
        if config is not None:
            _group_send(
                get_config_group_name(code_id),
                {"type": "qvote_config_update", "code_id": code_id, "config": config},
            )
        if _cross_process_enabled():
            publish_event(CONFIG_CHANGED, code_id)


def publish_candidates_change(code_id: int, broadcast: bool = True):
    """
    Push the candidate collection of a code to every subscriber.

    Each subscription receives the list filtered with its own filters;
    WebSocket consumers re-query with theirs when notified.
    """
    by_filters = {}

    def payload_for(subscription):
        key = repr(subscription.filters)
        if key not in by_filters:
            by_filters[key] = load_candidates_payload(code_id, subscription.filters)
        return by_filters[key]

    hub.publish(CANDIDATES_TOPIC, code_id, payload_for)

    if broadcast:
        _group_send(
            get_candidates_group_name(code_id),
            {"type": "qvote_candidates_update", "code_id": code_id},
        )
        if _cross_process_enabled():
            publish_event(CANDIDATES_CHANGED, code_id)


def deliver_remote_event(event: dict):
    """Replay a change published by another process into the local hub."""
    code_id = event.get("code_id")
    event_type = event.get("type")
    if event_type == CONFIG_CHANGED:
        publish_config_change(code_id, broadcast=False)
    elif event_type == CANDIDATES_CHANGED:
        publish_candidates_change(code_id, broadcast=False)
    else:
        logger.warning(f"Unknown live sync event type: {event_type}")
