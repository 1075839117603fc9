"""
Q.Vote models: codes, per-code voting configuration and phase audit trail.
"""

import secrets
import string

from django.contrib.auth.models import User
from django.db import models

from .phases import Phase

SHORT_ID_ALPHABET = string.ascii_letters + string.digits

DEFAULT_VERIFICATION = {
    "enabled": False,
    "method": "whatsapp",
    "max_votes_per_phone": 1,
    "max_attempts": 5,
    "block_duration_minutes": 30,
    "authorized_voters_only": False,
    "authorized_voters": [],
}

DEFAULT_TABLET_MODE = {
    "enabled": False,
    "reset_delay_seconds": 5,
}


def generate_short_id(length=8):
    return "".join(secrets.choice(SHORT_ID_ALPHABET) for _ in range(length))


class Code(models.Model):
    """A shareable code (the thing a QR points at) owning a Q.Vote widget."""

    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name="codes")
    short_id = models.CharField(max_length=16, unique=True, default=generate_short_id)
    title = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.title or self.short_id


class QVoteConfig(models.Model):
    """
    Per-code Q.Vote configuration plus live state.

    ``current_phase`` is the authoritative phase every viewer follows. The
    stats columns are a denormalized cache that can always be rebuilt from
    candidates and the vote ledger; zeroing them signals a vote wipe.
    """

    SCHEDULE_MODE_CHOICES = [
        ("manual", "Manual"),
        ("scheduled", "Scheduled"),
        ("hybrid", "Hybrid"),
    ]

    code = models.OneToOneField(Code, on_delete=models.CASCADE, related_name="qvote_config")
    current_phase = models.CharField(max_length=20, choices=Phase.choices, default=Phase.REGISTRATION)
    previous_phase = models.CharField(max_length=20, choices=Phase.choices, blank=True)
    phase_changed_at = models.DateTimeField(null=True, blank=True)
    schedule = models.JSONField(default=dict, blank=True, help_text="Mapping of phase to ISO timestamp")
    schedule_mode = models.CharField(max_length=20, choices=SCHEDULE_MODE_CHOICES, default="manual")
    enable_finals = models.BooleanField(default=False)

    max_selections_per_voter = models.PositiveIntegerField(default=3)
    min_selections_per_voter = models.PositiveIntegerField(default=1)
    max_vote_changes = models.PositiveIntegerField(default=0, help_text="0 disables vote changes")
    allow_self_registration = models.BooleanField(default=True)

    categories = models.JSONField(default=list, blank=True, help_text="[{id, name, is_active}]")
    form_fields = models.JSONField(default=list, blank=True, help_text="[{id, label, type, required}]")
    verification = models.JSONField(default=dict, blank=True)
    tablet_mode = models.JSONField(default=dict, blank=True)

    message_quota_limit = models.PositiveIntegerField(default=25)
    message_quota_used = models.PositiveIntegerField(default=0)

    # Stats cache
    total_candidates = models.IntegerField(default=0)
    approved_candidates = models.IntegerField(default=0)
    total_voters = models.IntegerField(default=0)
    total_votes = models.IntegerField(default=0)
    finals_voters = models.IntegerField(default=0)
    finals_votes = models.IntegerField(default=0)
    stats_updated_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Q.Vote config"
        indexes = [
            models.Index(fields=["schedule_mode", "current_phase"], name="qvote_cfg_sched_phase_idx"),
        ]

    def __str__(self):
        return f"{self.code} ({self.current_phase})"

    @property
    def verification_settings(self):
        return {**DEFAULT_VERIFICATION, **(self.verification or {})}

    @property
    def verification_enabled(self):
        return bool(self.verification_settings["enabled"])

    @property
    def tablet_settings(self):
        return {**DEFAULT_TABLET_MODE, **(self.tablet_mode or {})}

    @property
    def active_categories(self):
        return [c for c in self.categories or [] if c.get("is_active", True)]

    @property
    def has_categories(self):
        return bool(self.active_categories)

    @property
    def stats(self):
        return {
            "total_candidates": self.total_candidates,
            "approved_candidates": self.approved_candidates,
            "total_voters": self.total_voters,
            "total_votes": self.total_votes,
            "finals_voters": self.finals_voters,
            "finals_votes": self.finals_votes,
            "last_updated": self.stats_updated_at.isoformat() if self.stats_updated_at else None,
        }


class PhaseTransition(models.Model):
    """Audit row for every phase change."""

    TRIGGER_CHOICES = [
        ("manual", "Manual"),
        ("scheduled", "Scheduled"),
    ]

    config = models.ForeignKey(QVoteConfig, on_delete=models.CASCADE, related_name="transitions")
    from_phase = models.CharField(max_length=20, choices=Phase.choices)
    to_phase = models.CharField(max_length=20, choices=Phase.choices)
    trigger = models.CharField(max_length=20, choices=TRIGGER_CHOICES, default="manual")
    triggered_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="phase_transitions"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["config", "created_at"], name="qvote_trans_cfg_created_idx"),
        ]

    def __str__(self):
        return f"{self.config_id}: {self.from_phase} -> {self.to_phase}"
