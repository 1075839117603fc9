"""
Admin configuration for Verification app.
"""

from django.contrib import admin

from .models import MessageLog, VerificationCode, VerifiedVoter


@admin.register(VerificationCode)
class VerificationCodeAdmin(admin.ModelAdmin):
    list_display = ["phone", "code", "status", "method", "attempts", "expires_at", "blocked_until", "created_at"]
    list_filter = ["status", "method", "created_at"]
    search_fields = ["phone", "code__short_id"]
    readonly_fields = ["code_hash", "created_at", "verified_at"]


@admin.register(VerifiedVoter)
class VerifiedVoterAdmin(admin.ModelAdmin):
    list_display = ["phone", "name", "code", "votes_used", "max_votes", "session_expires_at", "last_verified_at"]
    search_fields = ["phone", "name", "code__short_id"]
    readonly_fields = ["session_token", "verified_at", "last_verified_at"]


@admin.register(MessageLog)
class MessageLogAdmin(admin.ModelAdmin):
    list_display = ["phone", "code", "method", "status", "locale", "created_at"]
    list_filter = ["method", "status", "created_at"]
    search_fields = ["phone", "code__short_id", "message_id"]
    readonly_fields = ["created_at"]
