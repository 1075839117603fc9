"""
Vote ledger models for Q.Vote with idempotency and audit logging.
"""

from django.db import models

from apps.candidates.models import Candidate
from apps.qvote.models import Code


class Vote(models.Model):
    """
    One ledger entry: the vote-set a voter cast for a round and category.

    Identity is ``(code, voter_id, round, category_key)``; the unique
    constraint makes a second submission for the same identity fail
    instead of double counting. ``category_key`` is "" when the code
    has no categories.
    """

    ROUND_CHOICES = [
        (1, "Voting"),
        (2, "Finals"),
    ]

    code = models.ForeignKey(Code, on_delete=models.CASCADE, related_name="votes")
    voter_id = models.CharField(max_length=128, db_index=True, help_text="Anonymous device/voter identity")
    round = models.PositiveSmallIntegerField(choices=ROUND_CHOICES, default=1)
    category_key = models.CharField(max_length=64, blank=True, default="")
    # Verification session that authorized this vote, when enabled
    phone = models.CharField(max_length=20, blank=True, db_index=True)
    # Tracking fields
    ip_address = models.GenericIPAddressField(null=True, blank=True, help_text="IP address of voter")
    user_agent = models.TextField(blank=True, help_text="User agent string")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["code", "voter_id", "round", "category_key"],
                name="unique_vote_per_voter_round_category",
            ),
            # A verified phone gets one vote-set per category, across devices
            models.UniqueConstraint(
                fields=["code", "phone", "round", "category_key"],
                condition=~models.Q(phone="") & ~models.Q(category_key=""),
                name="unique_vote_per_phone_round_category",
            ),
        ]
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["code", "round"], name="votes_code_round_idx"),
            models.Index(fields=["code", "phone", "round"], name="votes_code_phone_round_idx"),
        ]

    def __str__(self):
        category = f" [{self.category_key}]" if self.category_key else ""
        return f"{self.voter_id} round {self.round}{category} on {self.code}"

    @property
    def category_id(self):
        return self.category_key or None


class VoteSelection(models.Model):
    """
    A candidate chosen within a vote-set.

    Deleting a candidate nulls ``candidate`` instead of removing the row:
    the selection stays in the ledger but no longer counts anywhere.
    """

    vote = models.ForeignKey(Vote, on_delete=models.CASCADE, related_name="selections")
    candidate = models.ForeignKey(
        Candidate, on_delete=models.SET_NULL, null=True, blank=True, related_name="selections"
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["vote", "candidate"], name="unique_candidate_per_vote"),
        ]

    def __str__(self):
        return f"{self.vote_id} -> {self.candidate_id}"


class VoteReset(models.Model):
    """Audit row for each vote change; the count of rows is the change count."""

    code = models.ForeignKey(Code, on_delete=models.CASCADE, related_name="vote_resets")
    voter_id = models.CharField(max_length=128, db_index=True)
    round = models.PositiveSmallIntegerField(default=1)
    category_key = models.CharField(max_length=64, blank=True, default="")
    removed_votes = models.PositiveIntegerField(default=0)
    candidate_ids = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["code", "voter_id"], name="votes_reset_code_voter_idx"),
        ]

    def __str__(self):
        return f"Reset {self.voter_id} round {self.round} on {self.code}"


class VoteAttempt(models.Model):
    """
    Immutable audit log of ALL vote attempts (success/failure).
    This table tracks every attempt to vote, regardless of outcome.
    """

    code = models.ForeignKey(Code, on_delete=models.CASCADE, related_name="vote_attempts")
    voter_id = models.CharField(max_length=128, db_index=True, blank=True)
    round = models.PositiveSmallIntegerField(null=True, blank=True)
    category_key = models.CharField(max_length=64, blank=True, default="")
    candidate_ids = models.JSONField(default=list, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    success = models.BooleanField(default=False, help_text="Whether the vote attempt was successful")
    error_code = models.CharField(max_length=40, blank=True)
    error_message = models.TextField(blank=True, help_text="Error message if attempt failed")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["code", "voter_id"], name="votes_att_code_voter_idx"),
            models.Index(fields=["success", "created_at"], name="votes_att_success_idx"),
        ]

    def __str__(self):
        status = "SUCCESS" if self.success else f"FAILED ({self.error_code})"
        return f"Vote attempt {status} - {self.voter_id} at {self.created_at}"
