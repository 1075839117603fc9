"""
Phase controller services for Q.Vote.

Owns the authoritative phase of every code, its schedule and the stats
cache. Phase changes are plain assignments: an operator may move to any
phase in any order, and legality is left to the operator UI.
"""

import logging
from datetime import timedelta
from typing import Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework import serializers as drf_serializers

from core.exceptions import CodeNotFoundError, InvalidScheduleError, VotingClosedError
from core.utils.helpers import coerce_datetime

from .models import Code, PhaseTransition, QVoteConfig
from .phases import Phase, is_voting_phase, phase_index, round_for_phase

logger = logging.getLogger(__name__)

STATS_RECALCULATE_ON = frozenset({Phase.CALCULATING, Phase.RESULTS})


def qvote_setting(name, default=None):
    return getattr(settings, "QVOTE", {}).get(name, default)


def get_code(code_ref) -> Code:
    """
    Resolve a code from an instance, a primary key or a short id.

    Raises:
        CodeNotFoundError: If no such code exists
    """
    if isinstance(code_ref, Code):
        return code_ref
    if isinstance(code_ref, int):
        lookup = Q(pk=code_ref)
    else:
        lookup = Q(short_id=str(code_ref))
    code = Code.objects.filter(lookup).first()
    if code is None and isinstance(code_ref, str) and code_ref.isdigit():
        code = Code.objects.filter(pk=int(code_ref)).first()
    if code is None:
        raise CodeNotFoundError(f"Code {code_ref} not found")
    return code


def get_config(code_ref, for_update: bool = False) -> QVoteConfig:
    """
    Return the Q.Vote config for a code, creating the default one on first use.

    Args:
        code_ref: Code instance, id or short id
        for_update: Lock the config row (must be inside a transaction)
    """
    code = get_code(code_ref)
    defaults = {
        "max_selections_per_voter": qvote_setting("DEFAULT_MAX_SELECTIONS", 3),
        "message_quota_limit": qvote_setting("MESSAGE_QUOTA_DEFAULT", 25),
    }
    if for_update:
        QVoteConfig.objects.get_or_create(code=code, defaults=defaults)
        return QVoteConfig.objects.select_for_update().select_related("code").get(code=code)
    config, _ = QVoteConfig.objects.select_related("code").get_or_create(code=code, defaults=defaults)
    return config


def broadcast_config_on_commit(code_id: int):
    """Fan the config out to viewers once the current transaction commits."""
    from .live_sync import publish_config_change

    transaction.on_commit(lambda: publish_config_change(code_id))


def advance_phase(code_ref, target_phase, trigger: str = "manual", user=None) -> QVoteConfig:
    """
    Set the current phase of a code.

    No transition is refused. Entering ``calculating`` or ``results``
    rebuilds the stats cache so results screens show settled numbers.
    Finalists must already be flagged by the operator before ``finals``.

    Args:
        code_ref: Code instance, id or short id
        target_phase: Phase to move to
        trigger: 'manual' or 'scheduled'
        user: Operator making the change (optional)

    Returns:
        The updated QVoteConfig
    """
    target = Phase(target_phase)

    with transaction.atomic():
        config = get_config(code_ref, for_update=True)
        current = config.current_phase
        if current == target:
            return config

        config.previous_phase = current
        config.current_phase = target
        config.phase_changed_at = timezone.now()
        config.save(update_fields=["previous_phase", "current_phase", "phase_changed_at", "updated_at"])

        PhaseTransition.objects.create(
            config=config,
            from_phase=current,
            to_phase=target,
            trigger=trigger,
            triggered_by=user if user is not None and user.is_authenticated else None,
        )

        if target in STATS_RECALCULATE_ON:
            recalculate_stats(config.code)
            config.refresh_from_db()

        broadcast_config_on_commit(config.code_id)

    logger.info(f"Code {config.code_id}: phase {current} -> {target} ({trigger})")
    return config


def _latest_elapsed_phase(config, now) -> Optional[Tuple[Phase, object]]:
    latest = None
    for key, value in (config.schedule or {}).items():
        try:
            phase = Phase(key)
        except ValueError:
            continue
        if phase == Phase.FINALS and not config.enable_finals:
            continue
        when = coerce_datetime(value)
        if when is None or when > now:
            continue
        if (
            latest is None
            or when > latest[1]
            or (when == latest[1] and phase_index(phase) > phase_index(latest[0]))
        ):
            latest = (phase, when)
    return latest


def check_scheduled_transition(config, now) -> Optional[Phase]:
    """
    Return the phase the schedule says should be current, if it differs.

    Picks the phase with the latest scheduled time that is ``<= now``.
    Returns None when there is no schedule, nothing has elapsed, or the
    latest elapsed phase is already the current one. Scheduled ``finals``
    is ignored while finals are disabled.
    """
    latest = _latest_elapsed_phase(config, now)
    if latest is None or latest[0] == config.current_phase:
        return None
    return latest[0]


def apply_scheduled_transition(code_ref, now=None) -> Optional[Phase]:
    """
    Advance a code to its scheduled phase if one is due.

    A schedule entry only fires once: if the phase was changed (manually
    or by the scheduler) after that entry's time, the entry is spent and a
    manual override is left alone.

    Returns:
        The phase moved to, or None
    """
    now = now or timezone.now()
    config = get_config(code_ref)
    if config.schedule_mode == "manual":
        return None

    latest = _latest_elapsed_phase(config, now)
    if latest is None or latest[0] == config.current_phase:
        return None
    phase, when = latest
    if config.phase_changed_at and when <= config.phase_changed_at:
        return None

    advance_phase(config.code, phase, trigger="scheduled")
    return phase


def get_open_round(config: QVoteConfig, now=None) -> int:
    """
    Return the round currently accepting votes.

    ``voting`` and ``finals`` are open. Right after moving from one of them
    to ``calculating``, submissions stay open for a short window so viewers
    in their grace period can still land their vote. ``results`` is closed.

    Raises:
        VotingClosedError: If no round is open
    """
    phase = config.current_phase
    if is_voting_phase(phase):
        return round_for_phase(phase)

    if (
        phase == Phase.CALCULATING
        and is_voting_phase(config.previous_phase)
        and config.phase_changed_at is not None
    ):
        now = now or timezone.now()
        window = timedelta(seconds=qvote_setting("GRACE_ACCEPT_SECONDS", 15))
        if now - config.phase_changed_at <= window:
            return round_for_phase(config.previous_phase)

    raise VotingClosedError(f"Voting is closed (phase: {phase})")


def update_config(code_ref, data, partial: bool = True) -> QVoteConfig:
    """
    Validate and store operator changes to a config.

    Raises:
        InvalidScheduleError: If the schedule is not in phase order
        rest_framework.exceptions.ValidationError: For other invalid fields
    """
    from .serializers import QVoteConfigSerializer

    config = get_config(code_ref)
    serializer = QVoteConfigSerializer(config, data=data, partial=partial)
    if not serializer.is_valid():
        if "schedule" in serializer.errors:
            detail = serializer.errors["schedule"]
            raise InvalidScheduleError(str(detail[0]) if isinstance(detail, list) and detail else None)
        raise drf_serializers.ValidationError(serializer.errors)

    with transaction.atomic():
        config = serializer.save()
        broadcast_config_on_commit(config.code_id)

    logger.info(f"Code {config.code_id}: config updated ({', '.join(sorted(data.keys()))})")
    return config


def recalculate_stats(code_ref) -> dict:
    """
    Rebuild the stats cache from candidates and the vote ledger.

    Selections pointing at deleted candidates are ignored.
    """
    from apps.candidates.models import Candidate
    from apps.votes.models import Vote, VoteSelection

    code = get_code(code_ref)
    candidates = Candidate.objects.filter(code=code)
    live_selections = VoteSelection.objects.filter(vote__code=code, candidate__isnull=False)

    def voters(round_number):
        return (
            Vote.objects.filter(code=code, round=round_number, selections__candidate__isnull=False)
            .values("voter_id")
            .distinct()
            .count()
        )

    stats = {
        "total_candidates": candidates.count(),
        "approved_candidates": candidates.filter(is_approved=True).count(),
        "total_voters": voters(1),
        "total_votes": live_selections.filter(vote__round=1).count(),
        "finals_voters": voters(2),
        "finals_votes": live_selections.filter(vote__round=2).count(),
    }

    now = timezone.now()
    QVoteConfig.objects.filter(code=code).update(stats_updated_at=now, **stats)
    logger.info(f"Code {code.id}: stats recalculated {stats}")
    return {**stats, "last_updated": now.isoformat()}


def reset_all_votes(code_ref) -> dict:
    """
    Wipe every vote of a code.

    Deletes the ledger, zeroes all candidate counters and the vote stats.
    Viewers notice the zeroed stats and clear their local voted state.
    """
    from apps.candidates.models import Candidate
    from apps.votes.models import Vote

    code = get_code(code_ref)
    with transaction.atomic():
        config = get_config(code, for_update=True)
        deleted_votes = Vote.objects.filter(code=code).count()
        Vote.objects.filter(code=code).delete()
        affected = Candidate.objects.filter(code=code).update(vote_count=0, finals_vote_count=0)
        QVoteConfig.objects.filter(pk=config.pk).update(
            total_voters=0,
            total_votes=0,
            finals_voters=0,
            finals_votes=0,
            stats_updated_at=timezone.now(),
        )
        broadcast_config_on_commit(code.id)
        _broadcast_candidates_on_commit(code.id)

    logger.info(f"Code {code.id}: all votes reset ({deleted_votes} ledger entries removed)")
    return {"success": True, "deleted_votes": deleted_votes, "affected_candidates": affected}


def delete_all_data(code_ref) -> dict:
    """Delete every candidate and vote of a code and zero the stats."""
    from apps.candidates.models import Candidate
    from apps.votes.models import Vote

    code = get_code(code_ref)
    with transaction.atomic():
        config = get_config(code, for_update=True)
        deleted_votes, _ = Vote.objects.filter(code=code).delete()
        deleted_candidates = Candidate.objects.filter(code=code).count()
        Candidate.objects.filter(code=code).delete()
        QVoteConfig.objects.filter(pk=config.pk).update(
            total_candidates=0,
            approved_candidates=0,
            total_voters=0,
            total_votes=0,
            finals_voters=0,
            finals_votes=0,
            stats_updated_at=timezone.now(),
        )
        broadcast_config_on_commit(code.id)
        _broadcast_candidates_on_commit(code.id)

    logger.info(f"Code {code.id}: all Q.Vote data deleted")
    return {"success": True, "deleted_candidates": deleted_candidates}


def _broadcast_candidates_on_commit(code_id: int):
    from .live_sync import publish_candidates_change

    transaction.on_commit(lambda: publish_candidates_change(code_id))


def get_results(code_ref, round_number: int = 1, category_id=None, limit=None):
    """
    Candidates ranked by votes for a round.

    Only approved, visible candidates are ranked; finals results are
    restricted to finalists.
    """
    from apps.candidates.services import CandidateFilters, get_candidates

    filters = CandidateFilters(
        approved_only=True,
        exclude_hidden=True,
        finalists_only=round_number == 2,
        order_by_votes=True,
        round=round_number,
        category_id=category_id,
        limit=limit,
    )
    return get_candidates(code_ref, filters)


def get_winners(code_ref) -> dict:
    """
    Top candidate per category (or overall) for the deciding round.

    The deciding round is finals when finals are enabled and received votes.
    """
    config = get_config(code_ref)
    round_number = 2 if config.enable_finals and config.finals_votes > 0 else 1

    category_ids = [c["id"] for c in config.active_categories] or [None]
    winners = {}
    for category_id in category_ids:
        ranked = get_results(config.code, round_number, category_id=category_id, limit=1)
        winners[category_id or ""] = ranked[0] if ranked else None
    return {"round": round_number, "winners": winners}
