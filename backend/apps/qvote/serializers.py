"""
Serializers for Q.Vote configuration and phase control.
"""

from rest_framework import serializers

from core.utils.helpers import coerce_datetime

from .models import QVoteConfig
from .phases import PHASE_ORDER, Phase

VERIFICATION_METHODS = ("whatsapp", "sms", "both")


def validate_phase_schedule(schedule, enable_finals=True):
    """
    Check a phase schedule at write time.

    Every key must be a phase, every value a timestamp, and timestamps must
    strictly increase in lifecycle order. Returns the schedule with
    normalized ISO values.
    """
    if not isinstance(schedule, dict):
        raise serializers.ValidationError("Schedule must be a mapping of phase to timestamp.")

    normalized = {}
    for key, value in schedule.items():
        if key not in Phase.values:
            raise serializers.ValidationError(f"Unknown phase '{key}'.")
        if value in (None, ""):
            continue
        when = coerce_datetime(value)
        if when is None:
            raise serializers.ValidationError(f"Invalid timestamp for phase '{key}'.")
        normalized[key] = when

    previous = None
    for phase in PHASE_ORDER:
        if phase.value not in normalized:
            continue
        if phase == Phase.FINALS and not enable_finals:
            continue
        when = normalized[phase.value]
        if previous is not None and when <= previous[1]:
            raise serializers.ValidationError(
                f"Phase '{phase.value}' is scheduled before or at the same time as '{previous[0]}'."
            )
        previous = (phase.value, when)

    return {key: when.isoformat() for key, when in normalized.items()}


class QVoteConfigSerializer(serializers.ModelSerializer):
    """
    Full Q.Vote config document as viewers and operators see it.

    The phone list of ``verification.authorized_voters`` is only included
    when the serializer context sets ``include_private``.
    """

    code_id = serializers.IntegerField(source="code.id", read_only=True)
    short_id = serializers.CharField(source="code.short_id", read_only=True)
    stats = serializers.SerializerMethodField()

    class Meta:
        model = QVoteConfig
        fields = [
            "code_id",
            "short_id",
            "current_phase",
            "previous_phase",
            "phase_changed_at",
            "schedule",
            "schedule_mode",
            "enable_finals",
            "max_selections_per_voter",
            "min_selections_per_voter",
            "max_vote_changes",
            "allow_self_registration",
            "categories",
            "form_fields",
            "verification",
            "tablet_mode",
            "message_quota_limit",
            "message_quota_used",
            "stats",
            "updated_at",
        ]
        read_only_fields = [
            "current_phase",
            "previous_phase",
            "phase_changed_at",
            "message_quota_used",
            "stats",
            "updated_at",
        ]

    def get_stats(self, obj):
        return obj.stats

    def to_representation(self, instance):
        data = super().to_representation(instance)
        verification = dict(instance.verification_settings)
        if not self.context.get("include_private"):
            verification.pop("authorized_voters", None)
        data["verification"] = verification
        data["tablet_mode"] = instance.tablet_settings
        return data

    def validate_categories(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("Categories must be a list.")
        seen = set()
        for category in value:
            if not isinstance(category, dict) or not category.get("id"):
                raise serializers.ValidationError("Each category needs an 'id'.")
            if category["id"] in seen:
                raise serializers.ValidationError(f"Duplicate category id '{category['id']}'.")
            seen.add(category["id"])
        return value

    def validate_verification(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Verification settings must be an object.")
        method = value.get("method", "whatsapp")
        if method not in VERIFICATION_METHODS:
            raise serializers.ValidationError(f"Unknown verification method '{method}'.")
        for key in ("max_votes_per_phone", "max_attempts", "block_duration_minutes"):
            if key in value and (not isinstance(value[key], int) or value[key] < 1):
                raise serializers.ValidationError(f"'{key}' must be a positive integer.")
        return value

    def validate_tablet_mode(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Tablet mode settings must be an object.")
        delay = value.get("reset_delay_seconds", 5)
        if not isinstance(delay, int) or delay < 1:
            raise serializers.ValidationError("'reset_delay_seconds' must be a positive integer.")
        return value

    def validate(self, attrs):
        instance = self.instance
        max_selections = attrs.get(
            "max_selections_per_voter", getattr(instance, "max_selections_per_voter", 3)
        )
        min_selections = attrs.get(
            "min_selections_per_voter", getattr(instance, "min_selections_per_voter", 1)
        )
        if max_selections < 1:
            raise serializers.ValidationError(
                {"max_selections_per_voter": "Must allow at least one selection."}
            )
        if min_selections > max_selections:
            raise serializers.ValidationError(
                {"min_selections_per_voter": "Cannot exceed max_selections_per_voter."}
            )

        if "schedule" in attrs:
            enable_finals = attrs.get("enable_finals", getattr(instance, "enable_finals", False))
            try:
                attrs["schedule"] = validate_phase_schedule(attrs["schedule"], enable_finals)
            except serializers.ValidationError as e:
                raise serializers.ValidationError({"schedule": e.detail})
        return attrs


class PhaseAdvanceSerializer(serializers.Serializer):
    phase = serializers.ChoiceField(choices=Phase.choices)


class ResultsQuerySerializer(serializers.Serializer):
    round = serializers.ChoiceField(choices=[1, 2], required=False)
    category_id = serializers.CharField(required=False, allow_blank=True)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)
