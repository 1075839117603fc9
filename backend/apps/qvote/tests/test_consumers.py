"""
Tests for the WebSocket viewer consumer.
"""

import pytest
from channels.db import database_sync_to_async
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.core.cache import cache

from apps.qvote.consumers import QVoteViewerConsumer, get_viewer_cache_key
from apps.qvote.live_sync import get_candidates_group_name
from apps.qvote.phases import Phase
from apps.qvote.routing import websocket_urlpatterns
from apps.qvote.services import advance_phase
from apps.votes.models import Vote
from apps.votes.services import submit_votes


def make_communicator(short_id, voter_id="voter-1"):
    return WebsocketCommunicator(
        URLRouter(websocket_urlpatterns), f"/ws/qvote/{short_id}/?voter_id={voter_id}"
    )


async def connect(communicator):
    connected, _ = await communicator.connect()
    assert connected is True
    hello = await communicator.receive_json_from()
    session = await communicator.receive_json_from()
    candidates = await communicator.receive_json_from()
    return hello, session, candidates


async def receive_until(communicator, message_type, timeout=2):
    while True:
        message = await communicator.receive_json_from(timeout=timeout)
        if message["type"] == message_type:
            return message


@pytest.mark.django_db(transaction=True)
@pytest.mark.asyncio
class TestViewerConnection:
    async def test_connect_sends_session_and_candidates(self, qvote_config, candidates):
        communicator = make_communicator(qvote_config.code.short_id)
        hello, session, candidate_list = await connect(communicator)

        assert hello["type"] == "connected"
        assert hello["voter_id"] == "voter-1"
        assert session["type"] == "session"
        assert session["data"]["phase"] == "voting"
        assert session["data"]["state"] == "tracking"
        assert [c["name"] for c in candidate_list["data"]] == ["Alice", "Bob", "Carol"]

        await communicator.disconnect()

    async def test_unknown_code_is_rejected(self, db):
        communicator = make_communicator("missing")
        connected, _ = await communicator.connect()
        assert connected is False

    async def test_ping(self, qvote_config):
        communicator = make_communicator(qvote_config.code.short_id)
        await connect(communicator)

        await communicator.send_json_to({"type": "ping"})
        response = await communicator.receive_json_from()
        assert response["type"] == "pong"

        await communicator.disconnect()

    async def test_invalid_json(self, qvote_config):
        communicator = make_communicator(qvote_config.code.short_id)
        await connect(communicator)

        await communicator.send_to(text_data="not json")
        response = await communicator.receive_json_from()
        assert response["type"] == "error"

        await communicator.disconnect()

    async def test_unsubscribe_stops_updates(self, qvote_config, candidates):
        communicator = make_communicator(qvote_config.code.short_id)
        await connect(communicator)
        await communicator.send_json_to({"type": "select", "candidate_id": candidates[0].id})
        await communicator.receive_json_from()

        await communicator.send_json_to({"type": "unsubscribe"})
        response = await communicator.receive_json_from()
        assert response["type"] == "unsubscribed"

        # Would start a grace period (and its clock) if still subscribed
        await database_sync_to_async(advance_phase)(qvote_config.code_id, Phase.CALCULATING)
        await get_channel_layer().group_send(
            get_candidates_group_name(qvote_config.code_id),
            {"type": "qvote_candidates_update", "code_id": qvote_config.code_id},
        )

        assert await communicator.receive_nothing(timeout=0.5)

        await communicator.disconnect()

    async def test_server_vote_state_restored_on_connect(self, qvote_config, candidates):
        await database_sync_to_async(submit_votes)(qvote_config.code_id, "voter-1", [candidates[0].id])

        communicator = make_communicator(qvote_config.code.short_id)
        _, session, _ = await connect(communicator)

        assert session["data"]["voted_categories"] == {"1": [""]}
        assert session["data"]["view"]["has_voted"] is True

        await communicator.disconnect()


@pytest.mark.django_db(transaction=True)
@pytest.mark.asyncio
class TestViewerVoting:
    async def test_select_and_submit(self, qvote_config, candidates):
        communicator = make_communicator(qvote_config.code.short_id)
        await connect(communicator)

        await communicator.send_json_to({"type": "select", "candidate_id": candidates[1].id})
        session = await communicator.receive_json_from()
        assert session["data"]["selected"] == [candidates[1].id]

        await communicator.send_json_to({"type": "submit_vote"})
        result = await receive_until(communicator, "vote_result")
        assert result["success"] is True
        assert result["votes_submitted"] == 1

        vote = await database_sync_to_async(Vote.objects.get)(voter_id="voter-1")
        assert vote.round == 1

        await communicator.disconnect()
        hint = await database_sync_to_async(cache.get)(get_viewer_cache_key(qvote_config.code_id, "voter-1"))
        assert hint["voted_categories"] == {"1": [""]}

    async def test_rejected_vote_reports_error_code(self, qvote_config, candidates):
        await database_sync_to_async(submit_votes)(qvote_config.code_id, "voter-1", [candidates[0].id])
        communicator = make_communicator(qvote_config.code.short_id, voter_id="voter-2")
        await connect(communicator)

        # Empty selection
        await communicator.send_json_to({"type": "submit_vote"})
        result = await receive_until(communicator, "vote_result")
        assert result["success"] is False
        assert result["errorCode"] == "EMPTY_SELECTION"

        await communicator.disconnect()

    async def test_reset_vote(self, qvote_config, candidates):
        qvote_config.max_vote_changes = 1
        await database_sync_to_async(qvote_config.save)()
        await database_sync_to_async(submit_votes)(qvote_config.code_id, "voter-1", [candidates[0].id])

        communicator = make_communicator(qvote_config.code.short_id)
        await connect(communicator)

        await communicator.send_json_to({"type": "reset_vote"})
        result = await receive_until(communicator, "reset_result")
        assert result["success"] is True
        assert result["removed_votes"] == 1
        assert result["new_change_count"] == 1

        session = await receive_until(communicator, "session")
        assert session["data"]["view"]["has_voted"] is False

        await communicator.disconnect()


@pytest.mark.django_db(transaction=True)
@pytest.mark.asyncio
class TestViewerPhaseChanges:
    async def test_phase_change_is_adopted(self, qvote_config, candidates):
        communicator = make_communicator(qvote_config.code.short_id)
        await connect(communicator)

        await database_sync_to_async(advance_phase)(qvote_config.code_id, Phase.RESULTS)

        session = await receive_until(communicator, "session")
        assert session["data"]["phase"] == "results"
        assert session["data"]["view"]["screen"] == "results"

        await communicator.disconnect()

    async def test_mid_vote_viewer_gets_grace_then_submits(self, qvote_config, candidates):
        communicator = make_communicator(qvote_config.code.short_id)
        await connect(communicator)
        await communicator.send_json_to({"type": "select", "candidate_id": candidates[0].id})
        await communicator.receive_json_from()

        await database_sync_to_async(advance_phase)(qvote_config.code_id, Phase.CALCULATING)

        session = await receive_until(communicator, "session")
        assert session["data"]["state"] == "grace_period"
        assert session["data"]["phase"] == "voting"
        assert session["data"]["authoritative_phase"] == "calculating"

        # Server still accepts the vote right after voting closed
        await communicator.send_json_to({"type": "submit_vote"})
        result = await receive_until(communicator, "vote_result")
        assert result["success"] is True

        session = await receive_until(communicator, "session")
        assert session["data"]["state"] == "tracking"
        assert session["data"]["phase"] == "calculating"

        await communicator.disconnect()

    async def test_submit_during_results_grace_is_closed(self, qvote_config, candidates):
        communicator = make_communicator(qvote_config.code.short_id)
        await connect(communicator)
        await communicator.send_json_to({"type": "select", "candidate_id": candidates[0].id})
        await communicator.receive_json_from()

        await database_sync_to_async(advance_phase)(qvote_config.code_id, Phase.RESULTS)
        session = await receive_until(communicator, "session")
        assert session["data"]["state"] == "grace_period"

        await communicator.send_json_to({"type": "submit_vote"})
        result = await receive_until(communicator, "vote_result")
        assert result["success"] is False
        assert result["errorCode"] == "VOTING_CLOSED"

        session = await receive_until(communicator, "session")
        assert session["data"]["state"] == "tracking"
        assert session["data"]["phase"] == "results"
        assert await database_sync_to_async(Vote.objects.filter(code_id=qvote_config.code_id).count)() == 0

        await communicator.disconnect()

    async def test_grace_expires_on_clock(self, qvote_config, candidates, monkeypatch, settings):
        monkeypatch.setattr(QVoteViewerConsumer, "tick_seconds", 0.01)
        settings.QVOTE = {**settings.QVOTE, "GRACE_PERIOD_SECONDS": 3}

        communicator = make_communicator(qvote_config.code.short_id)
        await connect(communicator)
        await communicator.send_json_to({"type": "select", "candidate_id": candidates[0].id})
        await communicator.receive_json_from()

        await database_sync_to_async(advance_phase)(qvote_config.code_id, Phase.RESULTS)

        while True:
            message = await receive_until(communicator, "session")
            if message["data"]["state"] == "tracking":
                break
        assert message["data"]["phase"] == "results"
        assert message["data"]["selected"] == []

        await communicator.disconnect()
