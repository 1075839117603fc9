"""
Serializers for Verification app.
"""

from rest_framework import serializers


class SendCodeSerializer(serializers.Serializer):
    phone = serializers.CharField(max_length=32)
    locale = serializers.ChoiceField(choices=["he", "en"], required=False, default="he")


class VerifyCodeSerializer(serializers.Serializer):
    phone = serializers.CharField(max_length=32)
    code = serializers.CharField(max_length=10)


class VerificationStatusQuerySerializer(serializers.Serializer):
    phone = serializers.CharField(max_length=32)
    session_token = serializers.CharField(max_length=64, required=False, allow_blank=True)
