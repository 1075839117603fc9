"""
Tests for the Redis Pub/Sub bridge between processes.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from core.utils.redis_pubsub import (
    CANDIDATES_CHANGED,
    CONFIG_CHANGED,
    QVOTE_EVENTS_CHANNEL,
    SERVER_ID,
    QVoteEventPublisher,
    QVoteEventSubscriber,
    get_publisher,
    get_subscriber,
)


@pytest.fixture
def mock_redis_client():
    mock_client = MagicMock()
    mock_client.ping.return_value = True
    mock_client.publish.return_value = 1
    return mock_client


class TestQVoteEventPublisher:
    def test_publish_includes_origin(self, mock_redis_client):
        with patch("core.utils.redis_pubsub.get_redis_connection", return_value=mock_redis_client):
            publisher = QVoteEventPublisher()
            assert publisher.publish(CONFIG_CHANGED, 7) is True

        channel, payload = mock_redis_client.publish.call_args[0]
        assert channel == QVOTE_EVENTS_CHANNEL
        event = json.loads(payload)
        assert event["type"] == CONFIG_CHANGED
        assert event["code_id"] == 7
        assert event["origin"] == SERVER_ID

    def test_publish_without_redis_returns_false(self):
        import redis

        with patch(
            "core.utils.redis_pubsub.get_redis_connection",
            side_effect=redis.ConnectionError("down"),
        ):
            publisher = QVoteEventPublisher()
            assert publisher.redis_client is None
            assert publisher.publish(CANDIDATES_CHANGED, 7) is False

    def test_get_publisher_singleton(self, mock_redis_client):
        with patch("core.utils.redis_pubsub.get_redis_connection", return_value=mock_redis_client):
            assert get_publisher() is get_publisher()


class TestQVoteEventSubscriber:
    def test_remote_events_are_dispatched(self):
        handler = MagicMock()
        subscriber = QVoteEventSubscriber(event_handler=handler)

        subscriber.handle_message(
            json.dumps({"type": CONFIG_CHANGED, "code_id": 3, "origin": "other-server"})
        )

        handler.assert_called_once()
        assert handler.call_args[0][0]["code_id"] == 3

    def test_own_events_are_skipped(self):
        handler = MagicMock()
        subscriber = QVoteEventSubscriber(event_handler=handler)

        subscriber.handle_message(
            json.dumps({"type": CONFIG_CHANGED, "code_id": 3, "origin": SERVER_ID})
        )

        handler.assert_not_called()

    def test_invalid_json_is_ignored(self):
        handler = MagicMock()
        subscriber = QVoteEventSubscriber(event_handler=handler)

        subscriber.handle_message("not json")

        handler.assert_not_called()

    def test_handler_errors_do_not_escape(self):
        handler = MagicMock(side_effect=RuntimeError("boom"))
        subscriber = QVoteEventSubscriber(event_handler=handler)

        subscriber.handle_message(
            json.dumps({"type": CANDIDATES_CHANGED, "code_id": 3, "origin": "other"})
        )

        handler.assert_called_once()

    def test_get_subscriber_singleton(self):
        assert get_subscriber() is get_subscriber()
        assert get_subscriber().is_running() is False
