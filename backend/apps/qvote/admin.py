"""
Admin configuration for Q.Vote app.
"""

from django.contrib import admin

from .models import Code, PhaseTransition, QVoteConfig


@admin.register(Code)
class CodeAdmin(admin.ModelAdmin):
    list_display = ["short_id", "title", "owner", "created_at"]
    search_fields = ["short_id", "title", "owner__username"]
    readonly_fields = ["created_at", "updated_at"]


@admin.register(QVoteConfig)
class QVoteConfigAdmin(admin.ModelAdmin):
    """Admin interface for QVoteConfig model."""

    list_display = [
        "code",
        "current_phase",
        "schedule_mode",
        "enable_finals",
        "total_voters",
        "total_votes",
        "phase_changed_at",
    ]
    list_filter = ["current_phase", "schedule_mode", "enable_finals"]
    search_fields = ["code__short_id", "code__title"]
    readonly_fields = [
        "previous_phase",
        "phase_changed_at",
        "total_candidates",
        "approved_candidates",
        "total_voters",
        "total_votes",
        "finals_voters",
        "finals_votes",
        "stats_updated_at",
        "message_quota_used",
        "created_at",
        "updated_at",
    ]
    fieldsets = (
        ("Phase", {"fields": ("code", "current_phase", "previous_phase", "phase_changed_at")}),
        ("Schedule", {"fields": ("schedule_mode", "schedule", "enable_finals")}),
        (
            "Voting Rules",
            {"fields": ("max_selections_per_voter", "min_selections_per_voter", "max_vote_changes")},
        ),
        ("Registration", {"fields": ("allow_self_registration", "categories", "form_fields")}),
        ("Verification", {"fields": ("verification", "message_quota_limit", "message_quota_used")}),
        ("Tablet Mode", {"fields": ("tablet_mode",)}),
        (
            "Stats",
            {
                "fields": (
                    "total_candidates",
                    "approved_candidates",
                    "total_voters",
                    "total_votes",
                    "finals_voters",
                    "finals_votes",
                    "stats_updated_at",
                )
            },
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )


@admin.register(PhaseTransition)
class PhaseTransitionAdmin(admin.ModelAdmin):
    list_display = ["config", "from_phase", "to_phase", "trigger", "triggered_by", "created_at"]
    list_filter = ["trigger", "to_phase", "created_at"]
    readonly_fields = ["created_at"]
