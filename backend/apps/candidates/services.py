"""
Candidate store services for Q.Vote.

Candidate CRUD keeps the ``total_candidates`` / ``approved_candidates``
stats in step using atomic updates, and notifies live viewers after each
committed change.
"""

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional

from django.core.files.storage import default_storage
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.db.models.functions import Greatest

from apps.qvote.models import QVoteConfig
from apps.qvote.phases import Phase
from apps.qvote.services import broadcast_config_on_commit, get_code, get_config, recalculate_stats
from core.exceptions import (
    AlreadyRegisteredError,
    CandidateNotFoundError,
    RegistrationClosedError,
    TooManyPhotosError,
)

from .models import MAX_PHOTOS_PER_CANDIDATE, Candidate, CandidatePhoto

logger = logging.getLogger(__name__)

STATUS_FIELDS = ("is_approved", "is_finalist", "is_hidden")
EDITABLE_FIELDS = (
    "name",
    "form_data",
    "category_id",
    "category_ids",
    "is_approved",
    "is_finalist",
    "is_hidden",
    "display_order",
)


@dataclass(frozen=True)
class CandidateFilters:
    """Independent, composable candidate query filters."""

    approved_only: bool = False
    finalists_only: bool = False
    exclude_hidden: bool = False
    order_by_votes: bool = False
    category_id: Optional[str] = None
    round: int = 1
    limit: Optional[int] = None


def _broadcast_candidates_on_commit(code_id: int):
    from apps.qvote.live_sync import publish_candidates_change

    transaction.on_commit(lambda: publish_candidates_change(code_id))


def _adjust_stats(code_id: int, total: int = 0, approved: int = 0):
    updates = {}
    if total:
        updates["total_candidates"] = Greatest(F("total_candidates") + total, 0)
    if approved:
        updates["approved_candidates"] = Greatest(F("approved_candidates") + approved, 0)
    if updates:
        QVoteConfig.objects.filter(code_id=code_id).update(**updates)
        broadcast_config_on_commit(code_id)


def get_candidates(code_ref, filters: Optional[CandidateFilters] = None) -> List[Candidate]:
    """
    Query a code's candidates.

    Without ``order_by_votes`` candidates come in ``display_order`` then
    creation order. Category membership matches either the single
    ``category_id`` or the ``category_ids`` list.
    """
    filters = filters or CandidateFilters()
    code = get_code(code_ref)
    queryset = Candidate.objects.filter(code=code).prefetch_related("photos")

    if filters.approved_only:
        queryset = queryset.filter(is_approved=True)
    if filters.finalists_only:
        queryset = queryset.filter(is_finalist=True)
    if filters.exclude_hidden:
        queryset = queryset.filter(is_hidden=False)

    if filters.order_by_votes:
        counter = "finals_vote_count" if filters.round == 2 else "vote_count"
        queryset = queryset.order_by(f"-{counter}", "display_order", "created_at", "id")
    else:
        queryset = queryset.order_by("display_order", "created_at", "id")

    candidates = list(queryset)

    # JSON list membership is filtered in Python to stay database-agnostic
    if filters.category_id:
        candidates = [c for c in candidates if c.in_category(filters.category_id)]

    if filters.limit:
        candidates = candidates[: filters.limit]
    return candidates


def get_candidate(code_ref, candidate_id) -> Candidate:
    code = get_code(code_ref)
    try:
        return Candidate.objects.get(code=code, pk=candidate_id)
    except (Candidate.DoesNotExist, ValueError):
        raise CandidateNotFoundError(f"Candidate {candidate_id} not found")


def create_candidate(
    code_ref,
    data: dict,
    source: str = Candidate.SOURCE_PRODUCER,
    visitor_id: str = "",
) -> Candidate:
    """
    Create a candidate.

    Self-registration is only open during ``registration`` when the code
    allows it, and each visitor may register a single candidate.

    Raises:
        RegistrationClosedError: Self-registration outside registration
        AlreadyRegisteredError: The visitor already registered a candidate
    """
    config = get_config(code_ref)
    code = config.code
    is_self = source == Candidate.SOURCE_SELF

    if is_self:
        if config.current_phase != Phase.REGISTRATION or not config.allow_self_registration:
            raise RegistrationClosedError()
        if not visitor_id:
            raise RegistrationClosedError("A visitor id is required to register")

    fields = {key: data[key] for key in EDITABLE_FIELDS if key in data}
    if is_self:
        # Visitors can't approve or feature themselves
        for key in STATUS_FIELDS:
            fields.pop(key, None)

    try:
        with transaction.atomic():
            if is_self and Candidate.objects.filter(
                code=code, source=Candidate.SOURCE_SELF, visitor_id=visitor_id
            ).exists():
                raise AlreadyRegisteredError()

            candidate = Candidate.objects.create(
                code=code, source=source, visitor_id=visitor_id or "", **fields
            )
            _adjust_stats(code.id, total=1, approved=1 if candidate.is_approved else 0)
            _broadcast_candidates_on_commit(code.id)
    except IntegrityError:
        # Concurrent registration by the same visitor
        raise AlreadyRegisteredError()

    logger.info(f"Code {code.id}: candidate {candidate.id} created (source={source})")
    return candidate


def bulk_create_candidates(code_ref, rows: Iterable[dict]) -> List[Candidate]:
    """Operator import of many candidates at once."""
    code = get_code(code_ref)
    with transaction.atomic():
        candidates = Candidate.objects.bulk_create(
            [
                Candidate(
                    code=code,
                    source=Candidate.SOURCE_PRODUCER,
                    **{key: row[key] for key in EDITABLE_FIELDS if key in row},
                )
                for row in rows
            ]
        )
        approved = sum(1 for c in candidates if c.is_approved)
        _adjust_stats(code.id, total=len(candidates), approved=approved)
        _broadcast_candidates_on_commit(code.id)

    logger.info(f"Code {code.id}: {len(candidates)} candidates imported")
    return candidates


def update_candidate(code_ref, candidate_id, patch: dict) -> Candidate:
    """Apply an operator edit; keeps the approved-count stat in step."""
    with transaction.atomic():
        candidate = get_candidate(code_ref, candidate_id)
        candidate = Candidate.objects.select_for_update().get(pk=candidate.pk)
        was_approved = candidate.is_approved

        changed = []
        for key in EDITABLE_FIELDS:
            if key in patch:
                setattr(candidate, key, patch[key])
                changed.append(key)
        if not changed:
            return candidate

        candidate.save(update_fields=changed + ["updated_at"])
        if candidate.is_approved != was_approved:
            _adjust_stats(candidate.code_id, approved=1 if candidate.is_approved else -1)
        _broadcast_candidates_on_commit(candidate.code_id)

    return candidate


def delete_candidate(code_ref, candidate_id) -> None:
    """
    Remove a candidate.

    Ledger selections for it are kept but detached (candidate set to null).
    The stats are then rebuilt from the ledger, so the votes and voters that
    only counted through this candidate drop out of the totals.
    """
    with transaction.atomic():
        candidate = get_candidate(code_ref, candidate_id)
        code_id = candidate.code_id
        for photo in candidate.photos.all():
            _delete_blob(photo)
        candidate.delete()
        recalculate_stats(code_id)
        broadcast_config_on_commit(code_id)
        _broadcast_candidates_on_commit(code_id)

    logger.info(f"Code {code_id}: candidate {candidate_id} deleted")


def batch_update_status(code_ref, candidate_ids: Iterable, patch: dict) -> dict:
    """
    Apply the same status patch to many candidates.

    Each candidate is updated in its own transaction: a failure on one does
    not roll back the others. Only ``is_approved``, ``is_finalist`` and
    ``is_hidden`` may be patched.

    Returns:
        dict with ``updated`` and ``failed`` id lists
    """
    status_patch = {key: bool(value) for key, value in patch.items() if key in STATUS_FIELDS}
    updated, failed = [], []

    for candidate_id in candidate_ids:
        try:
            update_candidate(code_ref, candidate_id, status_patch)
            updated.append(candidate_id)
        except CandidateNotFoundError:
            failed.append(candidate_id)
        except Exception as e:
            logger.error(f"Batch status update failed for candidate {candidate_id}: {e}")
            failed.append(candidate_id)

    return {"updated": updated, "failed": failed}


def _delete_blob(photo: CandidatePhoto):
    if not photo.storage_path:
        return
    try:
        default_storage.delete(photo.storage_path)
    except Exception as e:
        logger.warning(f"Could not delete blob {photo.storage_path}: {e}")


def add_photo(candidate: Candidate, upload) -> CandidatePhoto:
    """
    Store an uploaded photo in blob storage and attach it to a candidate.

    Raises:
        TooManyPhotosError: The candidate already has two photos
    """
    with transaction.atomic():
        candidate = Candidate.objects.select_for_update().get(pk=candidate.pk)
        existing = candidate.photos.count()
        if existing >= MAX_PHOTOS_PER_CANDIDATE:
            raise TooManyPhotosError()

        extension = os.path.splitext(getattr(upload, "name", "") or "")[1].lower() or ".jpg"
        path = default_storage.save(
            f"qvote/{candidate.code_id}/candidates/{candidate.id}/{uuid.uuid4().hex}{extension}",
            upload,
        )
        url = default_storage.url(path)
        photo = CandidatePhoto.objects.create(
            candidate=candidate,
            url=url,
            thumbnail_url=url,
            storage_path=path,
            size=default_storage.size(path),
            order=existing,
        )
        _broadcast_candidates_on_commit(candidate.code_id)
    return photo


def remove_photo(photo: CandidatePhoto) -> None:
    """Delete a photo and close the gap in photo order."""
    with transaction.atomic():
        candidate_id = photo.candidate_id
        code_id = photo.candidate.code_id
        _delete_blob(photo)
        photo.delete()
        for index, remaining in enumerate(CandidatePhoto.objects.filter(candidate_id=candidate_id)):
            if remaining.order != index:
                remaining.order = index
                remaining.save(update_fields=["order"])
        _broadcast_candidates_on_commit(code_id)


def visible_candidate_filter(round_number: int) -> Q:
    """Queryset filter for candidates that may receive votes in a round."""
    condition = Q(is_approved=True, is_hidden=False)
    if round_number == 2:
        condition &= Q(is_finalist=True)
    return condition
