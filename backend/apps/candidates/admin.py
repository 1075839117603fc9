"""
Admin configuration for Candidates app.
"""

from django.contrib import admin

from .models import Candidate, CandidatePhoto


class CandidatePhotoInline(admin.TabularInline):
    model = CandidatePhoto
    extra = 0
    readonly_fields = ["url", "size", "uploaded_at"]


@admin.register(Candidate)
class CandidateAdmin(admin.ModelAdmin):
    """Admin interface for Candidate model."""

    list_display = [
        "name",
        "code",
        "is_approved",
        "is_finalist",
        "is_hidden",
        "vote_count",
        "finals_vote_count",
        "source",
        "created_at",
    ]
    list_filter = ["is_approved", "is_finalist", "is_hidden", "source", "created_at"]
    search_fields = ["name", "code__short_id", "visitor_id"]
    readonly_fields = ["vote_count", "finals_vote_count", "created_at", "updated_at"]
    inlines = [CandidatePhotoInline]
    fieldsets = (
        ("Basic Information", {"fields": ("code", "name", "form_data", "display_order")}),
        ("Categories", {"fields": ("category_id", "category_ids")}),
        ("Status", {"fields": ("is_approved", "is_finalist", "is_hidden")}),
        ("Origin", {"fields": ("source", "visitor_id")}),
        ("Counters", {"fields": ("vote_count", "finals_vote_count")}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )
