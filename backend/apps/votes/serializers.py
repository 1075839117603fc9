"""
Serializers for Votes app.
"""

from rest_framework import serializers

from .models import Vote


class VoteSerializer(serializers.ModelSerializer):
    """Ledger entry with the candidates it selected."""

    code_id = serializers.IntegerField(source="code.id", read_only=True)
    candidate_ids = serializers.SerializerMethodField()

    class Meta:
        model = Vote
        fields = [
            "id",
            "code_id",
            "voter_id",
            "round",
            "category_key",
            "candidate_ids",
            "created_at",
        ]
        read_only_fields = fields

    def get_candidate_ids(self, obj):
        return [s.candidate_id for s in obj.selections.all() if s.candidate_id is not None]


class VoteSubmitSerializer(serializers.Serializer):
    """Serializer for submitting a vote-set."""

    voter_id = serializers.CharField(max_length=128, help_text="Anonymous voter identity")
    candidate_ids = serializers.ListField(
        child=serializers.IntegerField(),
        allow_empty=True,
        help_text="Selected candidates",
    )
    round = serializers.ChoiceField(choices=[1, 2], required=False, allow_null=True)
    category_id = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    session_token = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)


class VoteResetSerializer(serializers.Serializer):
    voter_id = serializers.CharField(max_length=128)
    round = serializers.ChoiceField(choices=[1, 2], required=False, default=1)
    category_id = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)


class VoterStatusQuerySerializer(serializers.Serializer):
    voter_id = serializers.CharField(max_length=128)
