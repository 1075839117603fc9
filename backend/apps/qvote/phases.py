"""
Q.Vote phase definitions and phase helpers.

The lifecycle is ``registration -> preparation -> voting -> finals ->
calculating -> results`` with ``finals`` only entered when the config
enables it. None of the helpers here restrict what an operator may do:
``advance_phase`` is a plain setter, and ``is_valid_phase_transition``
only serves advisory UI hints and schedule validation.
"""

from django.db import models


class Phase(models.TextChoices):
    REGISTRATION = "registration", "Registration"
    PREPARATION = "preparation", "Preparation"
    VOTING = "voting", "Voting"
    FINALS = "finals", "Finals"
    CALCULATING = "calculating", "Calculating"
    RESULTS = "results", "Results"


PHASE_ORDER = [
    Phase.REGISTRATION,
    Phase.PREPARATION,
    Phase.VOTING,
    Phase.FINALS,
    Phase.CALCULATING,
    Phase.RESULTS,
]

VOTING_PHASES = frozenset({Phase.VOTING, Phase.FINALS})

# Phases that end an in-progress vote; viewers mid-vote get a grace period
CLOSING_PHASES = frozenset({Phase.CALCULATING, Phase.RESULTS})


def round_for_phase(phase) -> int:
    """Finals votes count in round 2, everything else in round 1."""
    return 2 if phase == Phase.FINALS else 1


def is_voting_phase(phase) -> bool:
    return phase in VOTING_PHASES


def phase_index(phase) -> int:
    return PHASE_ORDER.index(Phase(phase))


def phase_sequence(enable_finals: bool):
    """Phases in lifecycle order for a given finals setting."""
    if enable_finals:
        return list(PHASE_ORDER)
    return [phase for phase in PHASE_ORDER if phase != Phase.FINALS]


def next_phase(current, enable_finals: bool):
    """Return the phase after ``current``, or None at the end of the lifecycle."""
    sequence = phase_sequence(enable_finals)
    if current not in sequence:
        return None
    position = sequence.index(current)
    if position + 1 >= len(sequence):
        return None
    return sequence[position + 1]


def is_valid_phase_transition(current, target, enable_finals: bool) -> bool:
    """
    Advisory check for operator UIs.

    Moving one step forward, or backward to any earlier phase, is considered
    normal. Entering ``finals`` while finals are disabled or skipping ahead
    several phases is flagged.
    """
    if current == target:
        return True
    if target == Phase.FINALS and not enable_finals:
        return False
    sequence = phase_sequence(enable_finals)
    if current not in sequence or target not in sequence:
        return False
    if sequence.index(target) < sequence.index(current):
        return True
    return next_phase(current, enable_finals) == target
