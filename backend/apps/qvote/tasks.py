"""
Celery tasks for Q.Vote phase scheduling.
"""

import logging

from celery import shared_task
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task
def apply_scheduled_transition_task(code_id: int):
    """
    Move one code to its scheduled phase if one is due.

    Args:
        code_id: Code ID to check

    Returns:
        dict: Task result with the phase moved to, if any
    """
    try:
        from apps.qvote.services import apply_scheduled_transition

        phase = apply_scheduled_transition(code_id)
        if phase is None:
            return {"success": False, "code_id": code_id, "reason": "No transition due"}

        return {
            "success": True,
            "code_id": code_id,
            "phase": str(phase),
            "transitioned_at": timezone.now().isoformat(),
        }

    except Exception as e:
        logger.error(f"Error applying scheduled transition for code {code_id}: {e}", exc_info=True)
        return {
            "success": False,
            "code_id": code_id,
            "error": str(e),
        }


@shared_task
def process_scheduled_transitions():
    """
    Periodic task applying due phase transitions to every scheduled code.

    This task should run every few seconds via Celery Beat
    (``QVOTE["SCHEDULE_POLL_SECONDS"]``).

    Returns:
        dict: Summary of processed codes
    """
    try:
        from apps.qvote.models import QVoteConfig

        now = timezone.now()
        transitioned = 0
        errors = []

        code_ids = (
            QVoteConfig.objects.filter(schedule_mode__in=["scheduled", "hybrid"])
            .exclude(schedule={})
            .values_list("code_id", flat=True)
        )

        for code_id in code_ids:
            try:
                # Run inline rather than fanning out one task per code
                result = apply_scheduled_transition_task.apply(args=(code_id,))
                if result.result.get("success"):
                    transitioned += 1
                elif result.result.get("error"):
                    errors.append(f"Code {code_id}: {result.result['error']}")
            except Exception as e:
                logger.error(f"Error processing code {code_id} schedule: {e}")
                errors.append(f"Code {code_id}: {str(e)}")

        if transitioned or errors:
            logger.info(
                f"Processed scheduled transitions: {transitioned} transitioned, {len(errors)} errors"
            )

        return {
            "success": True,
            "transitioned_count": transitioned,
            "errors": errors,
            "processed_at": now.isoformat(),
        }

    except Exception as e:
        logger.error(f"Error processing scheduled transitions: {e}", exc_info=True)
        return {
            "success": False,
            "error": str(e),
        }
