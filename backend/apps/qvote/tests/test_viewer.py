"""
Tests for the viewer session (phase adoption and grace period).
"""

import pytest

from apps.qvote.phases import Phase
from apps.qvote.viewer import (
    GRACE_ENDED,
    GRACE_PERIOD,
    GRACE_STARTED,
    GRACE_TICK,
    PHASE_ADOPTED,
    PHASE_VIEWS,
    TABLET_RESET,
    TABLET_TICK,
    TRACKING,
    VOTES_WIPED,
    ViewerSession,
)


def make_config(phase="voting", **overrides):
    config = {
        "current_phase": phase,
        "max_selections_per_voter": 2,
        "max_vote_changes": 1,
        "categories": [],
        "tablet_mode": {"enabled": False, "reset_delay_seconds": 5},
        "stats": {"total_voters": 0, "total_votes": 0},
    }
    config.update(overrides)
    return config


@pytest.fixture
def session():
    return ViewerSession("voter-1", config=make_config(), grace_seconds=10)


@pytest.mark.unit
class TestPhaseTracking:
    def test_starts_on_config_phase(self, session):
        assert session.state == TRACKING
        assert session.user_phase == Phase.VOTING
        assert session.authoritative_phase == Phase.VOTING

    def test_generates_voter_id_when_missing(self):
        first = ViewerSession(config=make_config())
        second = ViewerSession(config=make_config())
        assert first.voter_id and second.voter_id
        assert first.voter_id != second.voter_id

    def test_adopts_phase_when_not_mid_vote(self, session):
        events = session.apply_config(make_config("calculating"))
        assert events == [PHASE_ADOPTED]
        assert session.user_phase == Phase.CALCULATING

    def test_adopts_phase_after_voting(self, session):
        session.select(1)
        session.record_vote_success()

        session.apply_config(make_config("results"))
        assert session.state == TRACKING
        assert session.user_phase == Phase.RESULTS

    def test_moving_to_non_closing_phase_never_graces(self, session):
        session.select(1)
        events = session.apply_config(make_config("finals"))
        assert events == [PHASE_ADOPTED]
        assert session.selected == []

    def test_empty_config_is_ignored(self, session):
        assert session.apply_config(None) == []
        assert session.user_phase == Phase.VOTING


@pytest.mark.unit
class TestGracePeriod:
    def test_mid_vote_starts_grace(self, session):
        session.select(1)
        events = session.apply_config(make_config("calculating"))

        assert events == [GRACE_STARTED]
        assert session.state == GRACE_PERIOD
        assert session.user_phase == Phase.VOTING
        assert session.authoritative_phase == Phase.CALCULATING
        assert session.grace.seconds_left == 10
        assert session.needs_clock

    def test_grace_expires_after_exactly_n_ticks(self, session):
        session.select(1)
        session.apply_config(make_config("calculating"))

        for _ in range(9):
            assert session.tick() == [GRACE_TICK]
            assert session.user_phase == Phase.VOTING
        assert session.grace.seconds_left == 1

        events = session.tick()
        assert events == [GRACE_ENDED, PHASE_ADOPTED]
        assert session.user_phase == Phase.CALCULATING
        assert session.selected == []
        assert not session.needs_clock

    def test_vote_during_grace_ends_it(self, session):
        session.select(1)
        session.apply_config(make_config("calculating"))
        for _ in range(3):
            session.tick()

        submission = session.build_submission()
        events = session.record_vote_success(submission["round"], "")

        assert submission["candidate_ids"] == [1]
        assert submission["round"] == 1
        assert events == [GRACE_ENDED, PHASE_ADOPTED]
        assert session.user_phase == Phase.CALCULATING
        assert session.has_voted(1, "")

    def test_first_grace_wins_and_latest_phase_is_adopted(self, session):
        session.select(1)
        session.apply_config(make_config("calculating"))
        session.tick()

        events = session.apply_config(make_config("results"))

        assert events == []
        assert session.grace.new_phase == Phase.CALCULATING
        assert session.grace.seconds_left == 9
        assert session.authoritative_phase == Phase.RESULTS

        for _ in range(9):
            session.tick()
        assert session.user_phase == Phase.RESULTS

    def test_return_to_old_phase_cancels_grace(self, session):
        session.select(1)
        session.apply_config(make_config("calculating"))

        events = session.apply_config(make_config("voting"))

        assert events == [GRACE_ENDED]
        assert session.state == TRACKING
        assert session.user_phase == Phase.VOTING
        assert session.selected == [1]

    def test_voting_closed_failure_ends_grace(self, session):
        session.select(1)
        session.apply_config(make_config("results"))

        events = session.record_vote_failure("VOTING_CLOSED")

        assert events == [GRACE_ENDED, PHASE_ADOPTED]
        assert session.user_phase == Phase.RESULTS

    def test_already_voted_failure_marks_voted(self, session):
        session.select(2)
        session.record_vote_failure("ALREADY_VOTED")
        assert session.has_voted()
        assert session.selected == []


@pytest.mark.unit
class TestSelection:
    def test_respects_max_selections(self, session):
        assert session.select(1)
        assert session.select(2)
        assert not session.select(3)
        assert session.selected == [1, 2]

    def test_duplicate_select_is_idempotent(self, session):
        session.select(1)
        assert session.select(1)
        assert session.selected == [1]

    def test_deselect(self, session):
        session.select(1)
        assert session.deselect(1)
        assert not session.deselect(1)

    def test_no_selection_outside_voting(self):
        session = ViewerSession("v", config=make_config("results"))
        assert not session.select(1)

    def test_no_selection_after_voting(self, session):
        session.record_vote_success()
        assert not session.select(1)

    def test_categories_need_a_choice_first(self):
        categories = [{"id": "singing", "name": "Singing"}, {"id": "dancing", "name": "Dancing"}]
        session = ViewerSession("v", config=make_config(categories=categories))

        assert not session.select(1)
        session.choose_category("singing")
        assert session.select(1)
        session.record_vote_success()

        assert session.current_category is None
        assert session.has_voted(1, "singing")
        assert not session.has_voted_all()
        session.choose_category("dancing")
        session.select(2)
        session.record_vote_success()
        assert session.has_voted_all()

    def test_switching_category_clears_selection(self):
        categories = [{"id": "singing"}, {"id": "dancing"}]
        session = ViewerSession("v", config=make_config(categories=categories))
        session.choose_category("singing")
        session.select(1)
        session.choose_category("dancing")
        assert session.selected == []


@pytest.mark.unit
class TestVoteWipeAndReset:
    def test_zeroed_stats_clear_local_votes(self, session):
        session.apply_config(make_config(stats={"total_voters": 3, "total_votes": 5}))
        session.record_vote_success()

        events = session.apply_config(make_config(stats={"total_voters": 0, "total_votes": 0}))

        assert VOTES_WIPED in events
        assert not session.has_voted()

    def test_stats_growing_is_not_a_wipe(self, session):
        session.record_vote_success()
        events = session.apply_config(make_config(stats={"total_voters": 1, "total_votes": 1}))
        assert VOTES_WIPED not in events
        assert session.has_voted()

    def test_record_reset_allows_voting_again(self, session):
        session.record_vote_success()
        session.record_reset(new_change_count=1, round_number=1, category_key="")

        assert not session.has_voted()
        assert session.change_count == 1
        assert session.select(1)

    def test_apply_voter_status_replaces_local_state(self, session):
        session.apply_voter_status({"voted_categories": {"1": [""], "2": [""]}, "change_count": 1})
        assert session.has_voted(1, "")
        assert session.has_voted(2, "")
        assert session.change_count == 1


@pytest.mark.unit
class TestTabletMode:
    def test_resets_for_next_voter(self):
        config = make_config(tablet_mode={"enabled": True, "reset_delay_seconds": 2})
        session = ViewerSession("voter-1", config=config)
        session.select(1)
        session.record_vote_success()

        assert session.tablet_countdown == 2
        assert session.tick() == [TABLET_TICK]
        assert session.tick() == [TABLET_RESET]
        assert session.voter_id != "voter-1"
        assert not session.has_voted()
        assert session.tablet_countdown is None

    def test_no_countdown_when_disabled(self, session):
        session.record_vote_success()
        assert session.tablet_countdown is None


@pytest.mark.unit
class TestRendering:
    def test_every_phase_has_a_screen(self):
        assert set(PHASE_VIEWS) == set(Phase)

    def test_snapshot(self, session):
        session.select(1)
        session.apply_config(make_config("calculating"))
        snapshot = session.snapshot()

        assert snapshot["state"] == GRACE_PERIOD
        assert snapshot["phase"] == "voting"
        assert snapshot["authoritative_phase"] == "calculating"
        assert snapshot["grace_seconds_left"] == 10
        assert snapshot["view"]["screen"] == "voting"

    def test_voting_view_with_categories(self):
        categories = [{"id": "singing", "name": "Singing"}]
        session = ViewerSession("v", config=make_config(categories=categories))
        view = session.view()
        assert view["needs_category"] is True
        assert view["categories"][0]["voted"] is False

    def test_cache_round_trip(self, session):
        session.record_vote_success()
        restored = ViewerSession.from_cache(session.to_cache(), config=make_config())
        assert restored.voter_id == "voter-1"
        assert restored.has_voted(1, "")
