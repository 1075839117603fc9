"""
Admin configuration for Votes app.
"""

from django.contrib import admin

from .models import Vote, VoteAttempt, VoteReset, VoteSelection


class VoteSelectionInline(admin.TabularInline):
    model = VoteSelection
    extra = 0
    readonly_fields = ["candidate"]


@admin.register(Vote)
class VoteAdmin(admin.ModelAdmin):
    """Admin interface for the vote ledger."""

    list_display = ["voter_id", "code", "round", "category_key", "phone", "ip_address", "created_at"]
    list_filter = ["round", "code", "created_at"]
    search_fields = ["voter_id", "code__short_id", "phone", "ip_address"]
    readonly_fields = ["created_at"]
    inlines = [VoteSelectionInline]
    fieldsets = (
        ("Vote Details", {"fields": ("code", "voter_id", "round", "category_key")}),
        ("Verification", {"fields": ("phone",)}),
        ("Tracking", {"fields": ("ip_address", "user_agent")}),
        ("Timestamp", {"fields": ("created_at",)}),
    )


@admin.register(VoteReset)
class VoteResetAdmin(admin.ModelAdmin):
    list_display = ["voter_id", "code", "round", "category_key", "removed_votes", "created_at"]
    list_filter = ["round", "created_at"]
    search_fields = ["voter_id", "code__short_id"]
    readonly_fields = ["created_at"]


@admin.register(VoteAttempt)
class VoteAttemptAdmin(admin.ModelAdmin):
    """Admin interface for VoteAttempt model (audit log)."""

    list_display = ["code", "voter_id", "round", "success", "error_code", "ip_address", "created_at"]
    list_filter = ["success", "error_code", "created_at"]
    search_fields = ["voter_id", "code__short_id", "ip_address", "error_message"]
    readonly_fields = ["created_at"]
    fieldsets = (
        ("Attempt Details", {"fields": ("code", "voter_id", "round", "category_key", "candidate_ids")}),
        ("Tracking", {"fields": ("ip_address", "user_agent")}),
        ("Outcome", {"fields": ("success", "error_code", "error_message")}),
        ("Timestamp", {"fields": ("created_at",)}),
    )
