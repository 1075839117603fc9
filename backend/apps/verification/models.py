"""
Phone verification models for Q.Vote.
"""

from django.db import models
from django.utils import timezone

from apps.qvote.models import Code
from core.utils.phone import mask_phone


class VerificationCode(models.Model):
    """A hashed one-time code sent to a phone for one code's vote."""

    STATUS_PENDING = "pending"
    STATUS_VERIFIED = "verified"
    STATUS_EXPIRED = "expired"
    STATUS_BLOCKED = "blocked"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_VERIFIED, "Verified"),
        (STATUS_EXPIRED, "Expired"),
        (STATUS_BLOCKED, "Blocked"),
    ]

    METHOD_CHOICES = [
        ("whatsapp", "WhatsApp"),
        ("sms", "SMS"),
    ]

    code = models.ForeignKey(Code, on_delete=models.CASCADE, related_name="verification_codes")
    phone = models.CharField(max_length=20, db_index=True)
    code_hash = models.CharField(max_length=64)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    method = models.CharField(max_length=20, choices=METHOD_CHOICES, default="whatsapp")
    attempts = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField()
    verified_at = models.DateTimeField(null=True, blank=True)
    blocked_until = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["code", "phone", "created_at"], name="verif_code_phone_idx"),
            models.Index(fields=["status", "expires_at"], name="verif_status_expires_idx"),
        ]

    def __str__(self):
        return f"{mask_phone(self.phone)} ({self.status})"

    def is_expired(self, now=None):
        return (now or timezone.now()) >= self.expires_at

    def is_blocked(self, now=None):
        return self.blocked_until is not None and self.blocked_until > (now or timezone.now())


class VerifiedVoter(models.Model):
    """
    A phone that passed verification for a code.

    Holds the session token granting votes and the per-phone vote quota.
    """

    code = models.ForeignKey(Code, on_delete=models.CASCADE, related_name="verified_voters")
    phone = models.CharField(max_length=20)
    name = models.CharField(max_length=200, blank=True)
    votes_used = models.PositiveIntegerField(default=0)
    max_votes = models.PositiveIntegerField(default=1)
    session_token = models.CharField(max_length=64, db_index=True)
    session_expires_at = models.DateTimeField()
    verified_at = models.DateTimeField(default=timezone.now)
    last_verified_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["code", "phone"], name="unique_verified_phone_per_code"),
        ]

    def __str__(self):
        return f"{mask_phone(self.phone)} on {self.code}"

    @property
    def votes_remaining(self):
        return max(0, self.max_votes - self.votes_used)

    def session_valid(self, now=None):
        return self.session_expires_at > (now or timezone.now())


class MessageLog(models.Model):
    """One row per OTP delivery attempt, successful or not."""

    code = models.ForeignKey(Code, on_delete=models.CASCADE, related_name="message_logs")
    phone = models.CharField(max_length=20)
    method = models.CharField(max_length=20)
    status = models.CharField(max_length=20, choices=[("sent", "Sent"), ("failed", "Failed")])
    message_id = models.CharField(max_length=128, blank=True)
    error = models.TextField(blank=True)
    locale = models.CharField(max_length=8, default="he")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["code", "created_at"], name="verif_msglog_code_idx"),
        ]

    def __str__(self):
        return f"{self.method} to {mask_phone(self.phone)}: {self.status}"
