"""
Serializers for Candidates app.
"""

from rest_framework import serializers

from .models import Candidate, CandidatePhoto
from .services import CandidateFilters


class CandidatePhotoSerializer(serializers.ModelSerializer):
    class Meta:
        model = CandidatePhoto
        fields = ["id", "url", "thumbnail_url", "order", "size", "uploaded_at"]
        read_only_fields = fields


class CandidateSerializer(serializers.ModelSerializer):
    """Candidate as viewers and operators see it, photos included."""

    code_id = serializers.IntegerField(source="code.id", read_only=True)
    photos = CandidatePhotoSerializer(many=True, read_only=True)

    class Meta:
        model = Candidate
        fields = [
            "id",
            "code_id",
            "name",
            "form_data",
            "category_id",
            "category_ids",
            "photos",
            "is_approved",
            "is_finalist",
            "is_hidden",
            "vote_count",
            "finals_vote_count",
            "source",
            "display_order",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "code_id",
            "photos",
            "vote_count",
            "finals_vote_count",
            "source",
            "created_at",
            "updated_at",
        ]


class CandidateWriteSerializer(serializers.Serializer):
    """Validates candidate create/edit payloads before they reach the store."""

    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    form_data = serializers.DictField(required=False)
    category_id = serializers.CharField(max_length=64, required=False, allow_blank=True)
    category_ids = serializers.ListField(
        child=serializers.CharField(max_length=64), required=False
    )
    is_approved = serializers.BooleanField(required=False)
    is_finalist = serializers.BooleanField(required=False)
    is_hidden = serializers.BooleanField(required=False)
    display_order = serializers.IntegerField(required=False)
    visitor_id = serializers.CharField(max_length=128, required=False, allow_blank=True)

    def validate(self, attrs):
        if not self.partial and not attrs.get("name") and not attrs.get("form_data"):
            raise serializers.ValidationError("A candidate needs a name or form data.")
        return attrs


class BatchStatusSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    is_approved = serializers.BooleanField(required=False)
    is_finalist = serializers.BooleanField(required=False)
    is_hidden = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not any(key in attrs for key in ("is_approved", "is_finalist", "is_hidden")):
            raise serializers.ValidationError("Provide at least one status field to update.")
        return attrs


class CandidateQuerySerializer(serializers.Serializer):
    """Query-string filters for listing candidates."""

    approved_only = serializers.BooleanField(required=False, default=False)
    finalists_only = serializers.BooleanField(required=False, default=False)
    exclude_hidden = serializers.BooleanField(required=False, default=False)
    order_by_votes = serializers.BooleanField(required=False, default=False)
    category_id = serializers.CharField(required=False, allow_blank=True)
    round = serializers.ChoiceField(choices=[1, 2], required=False, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=500)

    def to_filters(self) -> CandidateFilters:
        data = self.validated_data
        return CandidateFilters(
            approved_only=data["approved_only"],
            finalists_only=data["finalists_only"],
            exclude_hidden=data["exclude_hidden"],
            order_by_votes=data["order_by_votes"],
            category_id=data.get("category_id") or None,
            round=int(data["round"]),
            limit=data.get("limit"),
        )
