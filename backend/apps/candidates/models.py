"""
Candidate models for Q.Vote.
"""

from django.db import models
from django.db.models import Q

from apps.qvote.models import Code

MAX_PHOTOS_PER_CANDIDATE = 2


class Candidate(models.Model):
    """A votable option within a code's Q.Vote."""

    SOURCE_SELF = "self"
    SOURCE_PRODUCER = "producer"
    SOURCE_CHOICES = [
        (SOURCE_SELF, "Self-registered"),
        (SOURCE_PRODUCER, "Added by operator"),
    ]

    code = models.ForeignKey(Code, on_delete=models.CASCADE, related_name="candidates")
    name = models.CharField(max_length=200, blank=True)
    form_data = models.JSONField(default=dict, blank=True, help_text="Form field id -> value")
    category_id = models.CharField(max_length=64, blank=True)
    category_ids = models.JSONField(default=list, blank=True)
    is_approved = models.BooleanField(default=False)
    is_finalist = models.BooleanField(default=False)
    is_hidden = models.BooleanField(default=False)
    vote_count = models.IntegerField(default=0)
    finals_vote_count = models.IntegerField(default=0)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default=SOURCE_PRODUCER)
    visitor_id = models.CharField(max_length=128, blank=True)
    display_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["display_order", "created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["code", "visitor_id"],
                condition=Q(source="self") & ~Q(visitor_id=""),
                name="unique_self_registration_per_visitor",
            ),
        ]
        indexes = [
            models.Index(fields=["code", "display_order"], name="cand_code_order_idx"),
            models.Index(fields=["code", "is_approved", "is_hidden"], name="cand_code_visible_idx"),
        ]

    def __str__(self):
        return self.name or f"Candidate {self.pk}"

    def in_category(self, category_id):
        return self.category_id == category_id or category_id in (self.category_ids or [])

    def votes_for_round(self, round_number):
        return self.finals_vote_count if round_number == 2 else self.vote_count


class CandidatePhoto(models.Model):
    """Photo stored in blob storage; a candidate has one or two."""

    candidate = models.ForeignKey(Candidate, on_delete=models.CASCADE, related_name="photos")
    url = models.CharField(max_length=500)
    thumbnail_url = models.CharField(max_length=500, blank=True)
    storage_path = models.CharField(max_length=500, blank=True)
    size = models.PositiveIntegerField(default=0)
    order = models.PositiveSmallIntegerField(default=0)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["order", "uploaded_at"]

    def __str__(self):
        return f"{self.candidate} photo {self.order}"
