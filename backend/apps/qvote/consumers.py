"""
WebSocket consumer for Q.Vote viewers.
"""

import asyncio
import json
import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.core.cache import cache

from apps.candidates.serializers import CandidateSerializer
from apps.candidates.services import CandidateFilters, get_candidates
from apps.votes.services import get_voter_status, reset_vote, submit_votes
from core.exceptions import CodeNotFoundError, QVoteError

from .live_sync import get_candidates_group_name, get_config_group_name, load_config_payload
from .phases import Phase
from .services import get_code, qvote_setting
from .viewer import GRACE_ENDED, PHASE_ADOPTED, TABLET_RESET, VOTES_WIPED, ViewerSession

logger = logging.getLogger(__name__)


def get_viewer_cache_key(code_id: int, voter_id: str) -> str:
    return f"qvote_viewer:{code_id}:{voter_id}"


class QVoteViewerConsumer(AsyncWebsocketConsumer):
    """
    WebSocket consumer hosting one viewer session.

    Handles:
    - Following the code's config and candidates through group broadcasts
    - The grace period and tablet countdowns (1 second clock)
    - Selecting candidates, submitting and resetting votes
    """

    tick_seconds = 1.0

    async def connect(self):
        """Handle WebSocket connection."""
        self.short_id = self.scope["url_route"]["kwargs"]["short_id"]
        query = parse_qs(self.scope.get("query_string", b"").decode())
        voter_id = (query.get("voter_id") or [""])[0]
        self._clock_task = None
        self.session = None
        self.unsubscribed = False

        self.code_id = await self.get_code_id()
        if self.code_id is None:
            await self.close(code=4004)  # Not Found
            return

        config = await database_sync_to_async(load_config_payload)(self.code_id)
        hint = await self.load_cache_hint(voter_id) if voter_id else None
        self.session = ViewerSession.from_cache(hint, config=config) if hint else ViewerSession(voter_id, config=config)

        # The cache is only a hint; the ledger is the truth
        status = await database_sync_to_async(get_voter_status)(self.code_id, self.session.voter_id)
        self.session.apply_voter_status(status)

        self.config_group = get_config_group_name(self.code_id)
        self.candidates_group = get_candidates_group_name(self.code_id)
        await self.channel_layer.group_add(self.config_group, self.channel_name)
        await self.channel_layer.group_add(self.candidates_group, self.channel_name)

        await self.accept()
        await self.send_json({"type": "connected", "code_id": self.code_id, "voter_id": self.session.voter_id})
        await self.send_session()
        await self.send_candidates()

        logger.info(f"Viewer connected: code_id={self.code_id}, voter_id={self.session.voter_id}")

    async def disconnect(self, close_code):
        """Handle WebSocket disconnection."""
        self.stop_clock()
        if self.session is None:
            return
        await self.leave_groups()
        await self.save_cache_hint()
        logger.info(f"Viewer disconnected: code_id={self.code_id}, close_code={close_code}")

    async def leave_groups(self):
        await self.channel_layer.group_discard(self.config_group, self.channel_name)
        await self.channel_layer.group_discard(self.candidates_group, self.channel_name)

    async def receive(self, text_data):
        """Handle messages received from WebSocket."""
        try:
            data = json.loads(text_data)
            message_type = data.get("type")

            if message_type == "select":
                self.session.select(data.get("candidate_id"))
                await self.send_session()
            elif message_type == "deselect":
                self.session.deselect(data.get("candidate_id"))
                await self.send_session()
            elif message_type == "choose_category":
                self.session.choose_category(data.get("category_id"))
                await self.send_session()
                await self.send_candidates()
            elif message_type == "submit_vote":
                await self.handle_submit(data)
            elif message_type == "reset_vote":
                await self.handle_reset(data)
            elif message_type == "unsubscribe":
                self.unsubscribed = True
                self.stop_clock()
                await self.leave_groups()
                await self.send_json({"type": "unsubscribed", "code_id": self.code_id})
            elif message_type == "ping":
                await self.send_json({"type": "pong", "code_id": self.code_id})
            else:
                await self.send_json({"type": "error", "message": f"Unknown message type: {message_type}"})
        except (json.JSONDecodeError, AttributeError):
            await self.send_json({"type": "error", "message": "Invalid JSON format"})
        except (TypeError, ValueError):
            await self.send_json({"type": "error", "message": "Invalid message payload"})
        except Exception as e:
            logger.error(f"Error handling viewer message: {e}", exc_info=True)
            await self.send_json({"type": "error", "message": "Internal server error"})

    async def handle_submit(self, data):
        submission = self.session.build_submission()
        round_number = submission["round"]
        category_key = self.session.category_key
        try:
            result = await database_sync_to_async(submit_votes)(
                self.code_id,
                phone=data.get("phone") or None,
                session_token=data.get("session_token") or None,
                **submission,
            )
        except QVoteError as e:
            events = self.session.record_vote_failure(e.error_code)
            await self.send_json({"type": "vote_result", **e.to_dict()})
            await self.after_transition(events)
            return

        events = self.session.record_vote_success(round_number, category_key)
        body = {
            "type": "vote_result",
            "success": True,
            "round": result.round,
            "category_id": result.category_id,
            "votes_submitted": result.votes_submitted,
        }
        if result.votes_remaining is not None:
            body["votes_remaining"] = result.votes_remaining
        await self.send_json(body)
        await self.after_transition(events)

    async def handle_reset(self, data):
        round_number = int(data.get("round") or self.session.current_round)
        category_id = data.get("category_id", self.session.current_category) or None
        try:
            result = await database_sync_to_async(reset_vote)(
                self.code_id, self.session.voter_id, round=round_number, category_id=category_id
            )
        except QVoteError as e:
            await self.send_json({"type": "reset_result", **e.to_dict()})
            return

        self.session.record_reset(result.new_change_count, round_number, category_id or "")
        await self.send_json(
            {
                "type": "reset_result",
                "success": True,
                "removed_votes": result.removed_votes,
                "new_change_count": result.new_change_count,
            }
        )
        await self.after_transition([])

    async def after_transition(self, events):
        await self.send_session()
        if {PHASE_ADOPTED, GRACE_ENDED, VOTES_WIPED, TABLET_RESET} & set(events):
            await self.send_candidates()
        self.ensure_clock()
        await self.save_cache_hint()

    # Group broadcasts

    async def qvote_config_update(self, event):
        """Handle a config broadcast from the live sync bridge."""
        if self.unsubscribed:
            return
        events = self.session.apply_config(event.get("config"))
        await self.after_transition(events)

    async def qvote_candidates_update(self, event):
        if self.unsubscribed:
            return
        await self.send_candidates()

    # Clock

    def ensure_clock(self):
        if self.unsubscribed:
            return
        if self.session.needs_clock and (self._clock_task is None or self._clock_task.done()):
            self._clock_task = asyncio.ensure_future(self.run_clock())

    def stop_clock(self):
        if self._clock_task is not None and not self._clock_task.done():
            self._clock_task.cancel()
        self._clock_task = None

    async def run_clock(self):
        try:
            while self.session.needs_clock:
                await asyncio.sleep(self.tick_seconds)
                events = self.session.tick()
                await self.send_session()
                if {PHASE_ADOPTED, TABLET_RESET} & set(events):
                    await self.send_candidates()
                if TABLET_RESET in events:
                    await self.save_cache_hint()
        except asyncio.CancelledError:
            pass

    # Sending

    async def send_json(self, payload):
        await self.send(text_data=json.dumps(payload))

    async def send_session(self):
        await self.send_json({"type": "session", "code_id": self.code_id, "data": self.session.snapshot()})

    async def send_candidates(self):
        try:
            candidates = await self.get_visible_candidates()
            await self.send_json({"type": "candidates", "code_id": self.code_id, "data": candidates})
        except Exception as e:
            logger.error(f"Error sending candidates: {e}")
            await self.send_json({"type": "error", "message": "Failed to fetch candidates"})

    # Persistence

    def candidate_filters(self) -> CandidateFilters:
        return CandidateFilters(
            approved_only=True,
            exclude_hidden=True,
            finalists_only=self.session.user_phase == Phase.FINALS,
            order_by_votes=self.session.user_phase == Phase.RESULTS,
            category_id=self.session.current_category,
            round=self.session.current_round,
        )

    @database_sync_to_async
    def get_code_id(self):
        try:
            return get_code(self.short_id).id
        except CodeNotFoundError:
            return None

    @database_sync_to_async
    def get_visible_candidates(self):
        return list(CandidateSerializer(get_candidates(self.code_id, self.candidate_filters()), many=True).data)

    @database_sync_to_async
    def load_cache_hint(self, voter_id):
        return cache.get(get_viewer_cache_key(self.code_id, voter_id))

    @database_sync_to_async
    def save_cache_hint(self):
        timeout = qvote_setting("SESSION_TTL_HOURS", 24) * 3600
        cache.set(get_viewer_cache_key(self.code_id, self.session.voter_id), self.session.to_cache(), timeout)
