"""
Vote ledger services for Q.Vote.

Exactly-once counting per (voter, round, category) rests on the ledger's
unique constraint: the ledger row, candidate counter increments and stats
updates commit together or not at all, so a duplicate submission fails
before any counter moves. Counters are only ever changed with ``F()``
expressions so concurrent voters never lose updates, and decrements are
clamped at zero.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from django.db import IntegrityError, transaction
from django.db.models import Case, F, IntegerField, Value, When
from django.db.models.functions import Greatest
from django.utils import timezone

from apps.candidates.models import Candidate
from apps.candidates.services import visible_candidate_filter
from apps.qvote.models import QVoteConfig
from apps.qvote.services import broadcast_config_on_commit, get_config, get_open_round
from apps.votes.models import Vote, VoteAttempt, VoteReset, VoteSelection
from core.exceptions import (
    AlreadyVotedCategoryError,
    AlreadyVotedError,
    EmptySelectionError,
    InvalidCandidateError,
    QVoteError,
    TooManySelectionsError,
    VoteChangeLimitError,
    VoteChangesNotAllowedError,
    VotingClosedError,
)

logger = logging.getLogger(__name__)


@dataclass
class VoteResult:
    vote: Vote
    round: int
    category_id: Optional[str]
    candidate_ids: List[int]
    votes_remaining: Optional[int] = None
    max_votes: Optional[int] = None

    @property
    def votes_submitted(self):
        return len(self.candidate_ids)


@dataclass
class ResetResult:
    removed_votes: int
    new_change_count: int
    candidate_ids: List[int] = field(default_factory=list)
    success: bool = True


def _category_key(category_id) -> str:
    return str(category_id) if category_id else ""


def _normalize_candidate_ids(candidate_ids) -> List[int]:
    seen = []
    for candidate_id in candidate_ids or []:
        try:
            value = int(candidate_id)
        except (TypeError, ValueError):
            raise InvalidCandidateError(f"Invalid candidate id {candidate_id!r}")
        if value not in seen:
            seen.append(value)
    return seen


def _record_attempt(code, voter_id, round_number, category_key, candidate_ids,
                    ip_address, user_agent, error: Optional[QVoteError] = None):
    try:
        VoteAttempt.objects.create(
            code=code,
            voter_id=voter_id or "",
            round=round_number,
            category_key=category_key,
            candidate_ids=candidate_ids,
            ip_address=ip_address,
            user_agent=user_agent or "",
            success=error is None,
            error_code=error.error_code if error else "",
            error_message=error.message if error else "",
        )
    except Exception as e:
        logger.error(f"Failed to record vote attempt: {e}")


def _check_voted_flags(config, voter_id, round_number, category_key):
    if Vote.objects.filter(
        code=config.code, voter_id=voter_id, round=round_number, category_key=category_key
    ).exists():
        if category_key:
            raise AlreadyVotedCategoryError()
        raise AlreadyVotedError()


def _check_phone_category(config, phone, round_number, category_key):
    if Vote.objects.filter(
        code=config.code, phone=phone, round=round_number, category_key=category_key
    ).exists():
        raise AlreadyVotedCategoryError()


def submit_votes(
    code_ref,
    voter_id: str,
    candidate_ids,
    round=None,
    category_id=None,
    phone: Optional[str] = None,
    session_token: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: str = "",
) -> VoteResult:
    """
    Cast a vote-set for a voter.

    Args:
        code_ref: Code instance, id or short id
        voter_id: Anonymous voter identity
        candidate_ids: Selected candidates (1..max_selections_per_voter)
        round: 1 or 2; defaults to the round the current phase accepts
        category_id: Voting category, when the code has categories
        phone: Verified phone (verification-enabled codes)
        session_token: Verification session token
        ip_address: Client IP (audit)
        user_agent: Client user agent (audit)

    Returns:
        VoteResult

    Raises:
        VotingClosedError: No round is accepting votes
        EmptySelectionError / TooManySelectionsError: Bad selection size
        InvalidCandidateError: A candidate can't receive votes in this round
        AlreadyVotedError / AlreadyVotedCategoryError: Duplicate submission
        VerificationRequiredError, NotVerifiedError, InvalidSessionError,
        SessionExpiredError, VoteLimitReachedError: Verification failures
    """
    from apps.verification.services import consume_vote_quota, validate_session

    config = get_config(code_ref)
    code = config.code
    category_key = _category_key(category_id)
    selected = []
    round_number = round

    try:
        if not voter_id:
            raise QVoteError("A voter id is required", status_code=400)

        open_round = get_open_round(config)
        if round_number is None:
            round_number = open_round
        elif int(round_number) != open_round:
            raise VotingClosedError(f"Round {round_number} is not accepting votes")
        round_number = int(round_number)

        selected = _normalize_candidate_ids(candidate_ids)
        if not selected:
            raise EmptySelectionError()
        if len(selected) < config.min_selections_per_voter:
            raise EmptySelectionError(
                f"Select at least {config.min_selections_per_voter} candidates"
            )
        if len(selected) > config.max_selections_per_voter:
            raise TooManySelectionsError(
                f"You can select up to {config.max_selections_per_voter} candidates"
            )

        valid_ids = set(
            Candidate.objects.filter(code=code, pk__in=selected)
            .filter(visible_candidate_filter(round_number))
            .values_list("pk", flat=True)
        )
        if category_key:
            valid_ids = {
                c.pk
                for c in Candidate.objects.filter(pk__in=valid_ids)
                if c.in_category(category_key)
            }
        invalid = [c for c in selected if c not in valid_ids]
        if invalid:
            raise InvalidCandidateError(f"Candidates {invalid} cannot receive votes")

        _check_voted_flags(config, voter_id, round_number, category_key)

        verified_voter = None
        if config.verification_enabled:
            verified_voter = validate_session(code, phone, session_token)
            if category_key:
                _check_phone_category(config, verified_voter.phone, round_number, category_key)

        with transaction.atomic():
            first_in_round = not Vote.objects.filter(
                code=code, voter_id=voter_id, round=round_number
            ).exists()
            try:
                with transaction.atomic():
                    vote = Vote.objects.create(
                        code=code,
                        voter_id=voter_id,
                        round=round_number,
                        category_key=category_key,
                        phone=verified_voter.phone if verified_voter else "",
                        ip_address=ip_address,
                        user_agent=user_agent or "",
                    )
            except IntegrityError:
                if category_key:
                    raise AlreadyVotedCategoryError()
                raise AlreadyVotedError()

            if verified_voter is not None and not category_key:
                verified_voter = consume_vote_quota(verified_voter)

            VoteSelection.objects.bulk_create(
                [VoteSelection(vote=vote, candidate_id=candidate_id) for candidate_id in selected]
            )

            counter = "finals_vote_count" if round_number == 2 else "vote_count"
            Candidate.objects.filter(pk__in=selected).update(**{counter: F(counter) + 1})

            voters_field, votes_field = (
                ("finals_voters", "finals_votes") if round_number == 2 else ("total_voters", "total_votes")
            )
            stats_update = {
                votes_field: F(votes_field) + len(selected),
                "stats_updated_at": timezone.now(),
            }
            if first_in_round:
                stats_update[voters_field] = F(voters_field) + 1
            QVoteConfig.objects.filter(pk=config.pk).update(**stats_update)

            broadcast_config_on_commit(code.id)
            _broadcast_candidates_on_commit(code.id)

    except QVoteError as e:
        _record_attempt(code, voter_id, round_number, category_key, selected, ip_address, user_agent, e)
        logger.warning(
            f"Vote rejected: code={code.id} voter={voter_id} round={round_number} "
            f"category={category_key or '-'} reason={e.error_code}"
        )
        raise

    _record_attempt(code, voter_id, round_number, category_key, selected, ip_address, user_agent)
    logger.info(
        f"Vote accepted: code={code.id} voter={voter_id} round={round_number} "
        f"category={category_key or '-'} candidates={selected}"
    )

    return VoteResult(
        vote=vote,
        round=round_number,
        category_id=category_key or None,
        candidate_ids=selected,
        votes_remaining=verified_voter.votes_remaining if verified_voter else None,
        max_votes=verified_voter.max_votes if verified_voter else None,
    )


def _broadcast_candidates_on_commit(code_id: int):
    from apps.qvote.live_sync import publish_candidates_change

    transaction.on_commit(lambda: publish_candidates_change(code_id))


def get_change_count(code, voter_id: str) -> int:
    return VoteReset.objects.filter(code=code, voter_id=voter_id).count()


def reset_vote(code_ref, voter_id: str, round=1, category_id=None) -> ResetResult:
    """
    Undo a voter's vote-set so they can vote again.

    Decrements exactly the counters the vote-set incremented (clamped at
    zero, skipping candidates deleted since), removes the ledger entry and
    records the change. Resetting when nothing was cast is a no-op that does
    not consume a change.

    Args:
        code_ref: Code instance, id or short id
        voter_id: Anonymous voter identity
        round: 1 or 2
        category_id: Category of the vote-set, if any

    Returns:
        ResetResult with ``removed_votes`` and ``new_change_count``

    Raises:
        VoteChangesNotAllowedError: The code does not allow vote changes
        VoteChangeLimitError: The voter used all allowed changes
        VotingClosedError: Results are out
    """
    config = get_config(code_ref)
    code = config.code
    round_number = int(round or 1)
    category_key = _category_key(category_id)

    if config.max_vote_changes == 0:
        raise VoteChangesNotAllowedError()
    if config.current_phase == "results":
        raise VotingClosedError("Votes can't be changed after results are published")

    with transaction.atomic():
        vote = (
            Vote.objects.select_for_update()
            .filter(code=code, voter_id=voter_id, round=round_number, category_key=category_key)
            .first()
        )
        change_count = get_change_count(code, voter_id)
        if vote is None:
            return ResetResult(removed_votes=0, new_change_count=change_count)
        if change_count >= config.max_vote_changes:
            raise VoteChangeLimitError()

        candidate_ids = list(
            vote.selections.filter(candidate__isnull=False).values_list("candidate_id", flat=True)
        )
        counter = "finals_vote_count" if round_number == 2 else "vote_count"
        if candidate_ids:
            Candidate.objects.filter(pk__in=candidate_ids).update(
                **{counter: Greatest(F(counter) - 1, 0)}
            )

        vote.delete()

        last_in_round = not Vote.objects.filter(
            code=code, voter_id=voter_id, round=round_number
        ).exists()
        voters_field, votes_field = (
            ("finals_voters", "finals_votes") if round_number == 2 else ("total_voters", "total_votes")
        )
        stats_update = {
            votes_field: Greatest(F(votes_field) - len(candidate_ids), 0),
            "stats_updated_at": timezone.now(),
        }
        if last_in_round:
            stats_update[voters_field] = Case(
                When(**{f"{voters_field}__gt": 0}, then=F(voters_field) - 1),
                default=Value(0),
                output_field=IntegerField(),
            )
        QVoteConfig.objects.filter(pk=config.pk).update(**stats_update)

        if vote.phone and not category_key:
            from apps.verification.services import release_vote_quota

            release_vote_quota(code, vote.phone)

        VoteReset.objects.create(
            code=code,
            voter_id=voter_id,
            round=round_number,
            category_key=category_key,
            removed_votes=len(candidate_ids),
            candidate_ids=candidate_ids,
        )

        broadcast_config_on_commit(code.id)
        _broadcast_candidates_on_commit(code.id)

    new_change_count = change_count + 1
    logger.info(
        f"Vote reset: code={code.id} voter={voter_id} round={round_number} "
        f"category={category_key or '-'} removed={len(candidate_ids)} changes={new_change_count}"
    )
    return ResetResult(
        removed_votes=len(candidate_ids),
        new_change_count=new_change_count,
        candidate_ids=candidate_ids,
    )


def get_voter_status(code_ref, voter_id: str) -> dict:
    """
    Server-side truth about what a voter has already cast.

    Returns:
        dict with ``voted_categories`` (round -> category keys, "" for an
        uncategorized vote), ``change_count`` and ``max_vote_changes``
    """
    config = get_config(code_ref)
    voted_categories = {}
    for round_number, category_key in (
        Vote.objects.filter(code=config.code, voter_id=voter_id)
        .order_by("round", "category_key")
        .values_list("round", "category_key")
    ):
        voted_categories.setdefault(str(round_number), []).append(category_key)

    return {
        "voter_id": voter_id,
        "voted_categories": voted_categories,
        "change_count": get_change_count(config.code, voter_id),
        "max_vote_changes": config.max_vote_changes,
    }
