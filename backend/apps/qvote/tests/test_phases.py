"""
Tests for phase helpers and phase schedule validation.
"""

from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from rest_framework import serializers

from apps.qvote.phases import (
    Phase,
    is_valid_phase_transition,
    is_voting_phase,
    next_phase,
    phase_sequence,
    round_for_phase,
)
from apps.qvote.serializers import validate_phase_schedule

T0 = datetime(2026, 10, 16, 18, 0, tzinfo=dt_timezone.utc)


@pytest.mark.unit
class TestPhaseHelpers:
    def test_only_voting_and_finals_accept_votes(self):
        assert is_voting_phase(Phase.VOTING)
        assert is_voting_phase(Phase.FINALS)
        assert not is_voting_phase(Phase.CALCULATING)
        assert not is_voting_phase(Phase.REGISTRATION)

    def test_finals_is_round_two(self):
        assert round_for_phase(Phase.FINALS) == 2
        assert round_for_phase(Phase.VOTING) == 1
        assert round_for_phase(Phase.RESULTS) == 1

    def test_sequence_skips_finals_when_disabled(self):
        assert Phase.FINALS not in phase_sequence(False)
        assert phase_sequence(True)[3] == Phase.FINALS

    def test_next_phase(self):
        assert next_phase(Phase.VOTING, enable_finals=False) == Phase.CALCULATING
        assert next_phase(Phase.VOTING, enable_finals=True) == Phase.FINALS
        assert next_phase(Phase.RESULTS, enable_finals=True) is None

    def test_advisory_transition_check(self):
        assert is_valid_phase_transition(Phase.VOTING, Phase.CALCULATING, False)
        assert is_valid_phase_transition(Phase.RESULTS, Phase.VOTING, False)
        assert not is_valid_phase_transition(Phase.VOTING, Phase.FINALS, False)
        assert not is_valid_phase_transition(Phase.REGISTRATION, Phase.RESULTS, False)


@pytest.mark.unit
class TestScheduleValidation:
    def test_ordered_schedule_is_normalized(self):
        schedule = {
            "voting": T0.isoformat(),
            "calculating": (T0 + timedelta(hours=1)).isoformat(),
        }
        result = validate_phase_schedule(schedule)
        assert set(result) == {"voting", "calculating"}
        assert result["voting"] == T0.isoformat()

    def test_out_of_order_schedule_is_rejected(self):
        schedule = {
            "voting": T0.isoformat(),
            "preparation": (T0 + timedelta(minutes=5)).isoformat(),
        }
        with pytest.raises(serializers.ValidationError):
            validate_phase_schedule(schedule)

    def test_equal_timestamps_are_rejected(self):
        schedule = {"voting": T0.isoformat(), "calculating": T0.isoformat()}
        with pytest.raises(serializers.ValidationError):
            validate_phase_schedule(schedule)

    def test_unknown_phase_is_rejected(self):
        with pytest.raises(serializers.ValidationError):
            validate_phase_schedule({"intermission": T0.isoformat()})

    def test_bad_timestamp_is_rejected(self):
        with pytest.raises(serializers.ValidationError):
            validate_phase_schedule({"voting": "tomorrow evening"})

    def test_finals_ignored_in_ordering_when_disabled(self):
        schedule = {
            "voting": T0.isoformat(),
            "finals": (T0 - timedelta(hours=1)).isoformat(),
            "calculating": (T0 + timedelta(hours=1)).isoformat(),
        }
        validate_phase_schedule(schedule, enable_finals=False)
        with pytest.raises(serializers.ValidationError):
            validate_phase_schedule(schedule, enable_finals=True)

    def test_empty_values_are_dropped(self):
        assert validate_phase_schedule({"voting": "", "results": None}) == {}
