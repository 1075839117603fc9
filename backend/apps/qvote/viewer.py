"""
Viewer session: what one voter's screen shows and when.

The server's phase is authoritative, but a viewer in the middle of voting
does not jump straight to ``calculating``/``results``. It keeps showing the
voting screen for a short grace period so an in-flight vote can land:

    tracking(p)        --[phase p' != p, not mid-vote]--> tracking(p')
    tracking(p)        --[phase p' != p, mid-vote]------> grace_period(p, p', N)
    grace_period(...)  --[vote submitted]---------------> tracking(latest)
    grace_period(.., n)--[tick, n > 1]------------------> grace_period(.., n - 1)
    grace_period(.., 1)--[tick]-------------------------> tracking(latest)

Only the repaint is delayed; the server already changed phase. One grace
period runs at a time and later phase changes never restart it.

Both ``calculating`` and ``results`` start a grace period, but only
``calculating`` still accepts late votes (for ``GRACE_ACCEPT_SECONDS``).
A submission during a ``results`` grace period is rejected with
``VOTING_CLOSED``, which ends the grace period at once.

``ViewerSession`` holds no I/O. The WebSocket consumer feeds it config
broadcasts, clock ticks and vote outcomes, and renders what it returns.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .phases import CLOSING_PHASES, Phase, is_voting_phase, round_for_phase

logger = logging.getLogger(__name__)

TRACKING = "tracking"
GRACE_PERIOD = "grace_period"

# Events returned by session transitions
PHASE_ADOPTED = "phase_adopted"
GRACE_STARTED = "grace_started"
GRACE_TICK = "grace_tick"
GRACE_ENDED = "grace_ended"
VOTES_WIPED = "votes_wiped"
TABLET_TICK = "tablet_tick"
TABLET_RESET = "tablet_reset"

ALREADY_VOTED_CODES = frozenset({"ALREADY_VOTED", "ALREADY_VOTED_CATEGORY", "ALREADY_VOTED_ALL"})


def _qvote_setting(name, default):
    return getattr(settings, "QVOTE", {}).get(name, default)


def new_voter_id() -> str:
    return uuid.uuid4().hex


@dataclass
class GracePeriod:
    old_phase: Phase
    new_phase: Phase
    seconds_left: int


class ViewerSession:
    """
    Phase-adoption automaton plus local vote state for one viewer.

    Args:
        voter_id: Anonymous voter identity (a fresh one is generated if empty)
        config: Serialized config document to start from
        grace_seconds: Grace countdown length (defaults to settings)
    """

    def __init__(self, voter_id: str = "", config: Optional[dict] = None, grace_seconds: Optional[int] = None):
        self.voter_id = voter_id or new_voter_id()
        self.grace_seconds = grace_seconds or _qvote_setting("GRACE_PERIOD_SECONDS", 10)
        self.config: dict = {}
        self.stats: dict = {}
        self.authoritative_phase: Phase = Phase.REGISTRATION
        self.user_phase: Phase = Phase.REGISTRATION
        self.grace: Optional[GracePeriod] = None
        self.selected: List[int] = []
        self.current_category: Optional[str] = None
        self.voted_categories: Dict[int, Set[str]] = {}
        self.change_count = 0
        self.tablet_countdown: Optional[int] = None

        if config:
            self.config = dict(config)
            self.stats = dict(config.get("stats") or {})
            self.authoritative_phase = self.user_phase = Phase(config.get("current_phase", Phase.REGISTRATION))

    # State

    @property
    def state(self) -> str:
        return GRACE_PERIOD if self.grace is not None else TRACKING

    @property
    def needs_clock(self) -> bool:
        return self.grace is not None or self.tablet_countdown is not None

    @property
    def current_round(self) -> int:
        return round_for_phase(self.user_phase)

    @property
    def category_key(self) -> str:
        return self.current_category or ""

    @property
    def categories(self) -> List[dict]:
        return [c for c in self.config.get("categories") or [] if c.get("is_active", True)]

    @property
    def max_selections(self) -> int:
        return self.config.get("max_selections_per_voter") or _qvote_setting("DEFAULT_MAX_SELECTIONS", 3)

    @property
    def max_vote_changes(self) -> int:
        return self.config.get("max_vote_changes", 0)

    @property
    def tablet_enabled(self) -> bool:
        return bool((self.config.get("tablet_mode") or {}).get("enabled"))

    @property
    def tablet_reset_seconds(self) -> int:
        tablet = self.config.get("tablet_mode") or {}
        return tablet.get("reset_delay_seconds") or _qvote_setting("TABLET_RESET_SECONDS", 5)

    def has_voted(self, round_number: Optional[int] = None, category_key: Optional[str] = None) -> bool:
        round_number = round_number or self.current_round
        key = self.category_key if category_key is None else category_key
        return key in self.voted_categories.get(round_number, set())

    def has_voted_all(self, round_number: Optional[int] = None) -> bool:
        round_number = round_number or self.current_round
        voted = self.voted_categories.get(round_number, set())
        if not self.categories:
            return "" in voted
        return all(str(c["id"]) in voted for c in self.categories)

    def is_mid_vote(self) -> bool:
        return (
            is_voting_phase(self.user_phase)
            and bool(self.selected)
            and not self.has_voted(self.current_round, self.category_key)
        )

    # Config updates

    def apply_config(self, config: Optional[dict]) -> List[str]:
        """
        Take in a new config broadcast.

        Returns:
            list of events (``votes_wiped``, ``grace_started``,
            ``phase_adopted``, ``grace_ended``)
        """
        if not config:
            return []
        events = []

        new_stats = dict(config.get("stats") or {})
        if self._is_vote_wipe(self.stats, new_stats):
            self._clear_votes()
            events.append(VOTES_WIPED)
            logger.info(f"Viewer {self.voter_id}: votes were reset, local vote state cleared")

        self.config = dict(config)
        self.stats = new_stats

        new_phase = Phase(config.get("current_phase", self.authoritative_phase))
        self.authoritative_phase = new_phase

        if self.grace is not None:
            # Operator went back to the phase still on screen
            if new_phase == self.grace.old_phase:
                self.grace = None
                events.append(GRACE_ENDED)
            return events

        if new_phase == self.user_phase:
            return events

        if new_phase in CLOSING_PHASES and self.is_mid_vote():
            self.grace = GracePeriod(self.user_phase, new_phase, self.grace_seconds)
            events.append(GRACE_STARTED)
            logger.info(
                f"Viewer {self.voter_id}: grace period {self.user_phase} -> {new_phase} ({self.grace_seconds}s)"
            )
            return events

        self._adopt(new_phase)
        events.append(PHASE_ADOPTED)
        return events

    @staticmethod
    def _is_vote_wipe(previous: dict, incoming: dict) -> bool:
        if not previous:
            return False
        had_votes = previous.get("total_voters", 0) > 0 or previous.get("total_votes", 0) > 0
        now_empty = incoming.get("total_voters", 0) == 0 and incoming.get("total_votes", 0) == 0
        return had_votes and now_empty

    def _adopt(self, phase: Phase):
        previous_round = self.current_round
        self.user_phase = phase
        self.selected = []
        if round_for_phase(phase) != previous_round:
            self.current_category = None

    def _end_grace(self) -> List[str]:
        if self.grace is None:
            return []
        self.grace = None
        self._adopt(self.authoritative_phase)
        return [GRACE_ENDED, PHASE_ADOPTED]

    def _clear_votes(self):
        self.voted_categories = {}
        self.selected = []
        self.current_category = None

    # Clock

    def tick(self) -> List[str]:
        """Advance local countdowns by one second."""
        events = []
        if self.grace is not None:
            if self.grace.seconds_left > 1:
                self.grace.seconds_left -= 1
                events.append(GRACE_TICK)
            else:
                # Unsubmitted selection is dropped
                events.extend(self._end_grace())
                logger.info(f"Viewer {self.voter_id}: grace period expired, showing {self.user_phase}")

        if self.tablet_countdown is not None:
            if self.tablet_countdown > 1:
                self.tablet_countdown -= 1
                events.append(TABLET_TICK)
            else:
                self._reset_for_next_voter()
                events.append(TABLET_RESET)
        return events

    def _reset_for_next_voter(self):
        self.tablet_countdown = None
        self._clear_votes()
        self.change_count = 0
        self.voter_id = new_voter_id()
        logger.info(f"Tablet session reset, next voter {self.voter_id}")

    # Voter actions

    def select(self, candidate_id: int) -> bool:
        """Add a candidate to the selection; False if it can't be added."""
        if not is_voting_phase(self.user_phase) or self.has_voted():
            return False
        if self.categories and not self.current_category:
            return False
        candidate_id = int(candidate_id)
        if candidate_id in self.selected:
            return True
        if len(self.selected) >= self.max_selections:
            return False
        self.selected.append(candidate_id)
        return True

    def deselect(self, candidate_id: int) -> bool:
        candidate_id = int(candidate_id)
        if candidate_id not in self.selected:
            return False
        self.selected.remove(candidate_id)
        return True

    def choose_category(self, category_id: Optional[str]):
        category_id = str(category_id) if category_id else None
        if category_id != self.current_category:
            self.selected = []
        self.current_category = category_id

    def build_submission(self) -> dict:
        """Arguments for ``submit_votes`` from the on-screen state."""
        return {
            "voter_id": self.voter_id,
            "candidate_ids": list(self.selected),
            "round": self.current_round,
            "category_id": self.current_category,
        }

    def record_vote_success(self, round_number: Optional[int] = None, category_key: Optional[str] = None) -> List[str]:
        round_number = round_number or self.current_round
        key = self.category_key if category_key is None else (category_key or "")
        self.voted_categories.setdefault(round_number, set()).add(key)
        self.selected = []
        if self.categories:
            self.current_category = None

        events = self._end_grace()
        if self.tablet_enabled:
            self.tablet_countdown = self.tablet_reset_seconds
        return events

    def record_vote_failure(self, error_code: str) -> List[str]:
        events = []
        if error_code == "VOTING_CLOSED":
            events.extend(self._end_grace())
        elif error_code in ALREADY_VOTED_CODES:
            if error_code == "ALREADY_VOTED_ALL":
                for category in self.categories or [{"id": ""}]:
                    self.voted_categories.setdefault(self.current_round, set()).add(str(category["id"]))
            else:
                self.voted_categories.setdefault(self.current_round, set()).add(self.category_key)
            self.selected = []
            if self.categories:
                # Send the voter back to the category picker
                self.current_category = None
            events.extend(self._end_grace())
        return events

    def record_reset(self, new_change_count: int, round_number: Optional[int] = None, category_key: Optional[str] = None):
        round_number = round_number or self.current_round
        key = self.category_key if category_key is None else (category_key or "")
        self.voted_categories.get(round_number, set()).discard(key)
        self.change_count = new_change_count
        self.tablet_countdown = None

    def apply_voter_status(self, status: dict):
        """Replace the local vote state with the server's view."""
        self.voted_categories = {
            int(round_number): set(keys)
            for round_number, keys in (status.get("voted_categories") or {}).items()
        }
        self.change_count = status.get("change_count", 0)

    # Cache hint

    def to_cache(self) -> dict:
        return {
            "voter_id": self.voter_id,
            "voted_categories": {
                str(round_number): sorted(keys) for round_number, keys in self.voted_categories.items()
            },
            "change_count": self.change_count,
        }

    def load_cache(self, hint: Optional[dict]):
        """Seed local state from a cached hint; revalidate with the server after."""
        if not hint:
            return
        self.voter_id = hint.get("voter_id") or self.voter_id
        self.apply_voter_status(hint)

    @classmethod
    def from_cache(cls, hint: Optional[dict], config: Optional[dict] = None) -> "ViewerSession":
        session = cls(voter_id=(hint or {}).get("voter_id", ""), config=config)
        session.load_cache(hint)
        return session

    # Rendering

    def view(self) -> dict:
        return PHASE_VIEWS[self.user_phase](self)

    def snapshot(self) -> dict:
        return {
            "voter_id": self.voter_id,
            "state": self.state,
            "phase": self.user_phase.value,
            "authoritative_phase": self.authoritative_phase.value,
            "grace_seconds_left": self.grace.seconds_left if self.grace else None,
            "tablet_countdown": self.tablet_countdown,
            "selected": list(self.selected),
            "current_category": self.current_category,
            "voted_categories": self.to_cache()["voted_categories"],
            "change_count": self.change_count,
            "view": self.view(),
        }


def _registration_view(session):
    return {
        "screen": "registration",
        "allow_self_registration": session.config.get("allow_self_registration", True),
        "form_fields": session.config.get("form_fields") or [],
    }


def _preparation_view(session):
    return {"screen": "preparation"}


def _voting_view(session):
    round_number = session.current_round
    view = {
        "screen": "voting",
        "round": round_number,
        "max_selections": session.max_selections,
        "selected_count": len(session.selected),
        "has_voted": session.has_voted(),
        "can_change_vote": session.change_count < session.max_vote_changes,
    }
    if session.categories:
        voted = session.voted_categories.get(round_number, set())
        view["categories"] = [
            {**category, "voted": str(category["id"]) in voted} for category in session.categories
        ]
        view["needs_category"] = session.current_category is None
        view["has_voted_all"] = session.has_voted_all(round_number)
    return view


def _calculating_view(session):
    return {"screen": "calculating"}


def _results_view(session):
    return {"screen": "results", "stats": session.stats}


PHASE_VIEWS: Dict[Phase, Callable[[ViewerSession], dict]] = {
    Phase.REGISTRATION: _registration_view,
    Phase.PREPARATION: _preparation_view,
    Phase.VOTING: _voting_view,
    Phase.FINALS: _voting_view,
    Phase.CALCULATING: _calculating_view,
    Phase.RESULTS: _results_view,
}

_missing_views = set(Phase) - set(PHASE_VIEWS)
if _missing_views:
    raise ImproperlyConfigured(f"No viewer screen for phases: {sorted(_missing_views)}")
