"""
INFORU WhatsApp & SMS delivery for verification codes.

Provides:
- WhatsApp OTP through an approved template (Hebrew or English)
- SMS OTP
- Preferred-channel delivery with SMS fallback

API documentation: https://apidoc.inforu.co.il
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import requests
from django.conf import settings
from requests.auth import HTTPBasicAuth

from core.utils.phone import mask_phone

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://capi.inforu.co.il"
DEFAULT_TEMPLATES = {"he": "234887", "en": "234889"}
SMS_MESSAGES = {
    "he": "קוד אימות: {code}",
    "en": "Verification code: {code}",
}
REQUEST_TIMEOUT = 10


class MessagingNotConfigured(Exception):
    """INFORU credentials are missing."""


@dataclass
class DeliveryResult:
    method: str
    success: bool
    message_id: str = ""
    error: str = ""


def to_inforu_phone(phone: str) -> str:
    """+972501234567 / 0501234567 -> 972501234567"""
    digits = "".join(ch for ch in phone if ch.isdigit())
    if digits.startswith("0"):
        digits = "972" + digits[1:]
    return digits


class InforuClient:
    """Thin client for the INFORU REST API."""

    def __init__(self, api_user=None, api_token=None, sender=None, base_url=None, session=None):
        self.api_user = api_user if api_user is not None else getattr(settings, "INFORU_API_USER", "")
        self.api_token = api_token if api_token is not None else getattr(settings, "INFORU_API_TOKEN", "")
        self.sender = sender or getattr(settings, "INFORU_SENDER", "QVote")
        self.base_url = (base_url or getattr(settings, "INFORU_BASE_URL", DEFAULT_BASE_URL)).rstrip("/")
        self.session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_user and self.api_token)

    def _auth_kwargs(self) -> dict:
        if not self.is_configured:
            raise MessagingNotConfigured(
                "INFORU API credentials not configured. Set INFORU_API_USER and INFORU_API_TOKEN."
            )
        # A token stored as a ready-made header is sent as is
        if self.api_token.startswith("Basic "):
            return {"headers": {"Authorization": self.api_token}}
        return {"auth": HTTPBasicAuth(self.api_user, self.api_token)}

    def _post(self, path: str, payload: dict) -> dict:
        response = self.session.post(
            f"{self.base_url}{path}",
            json=payload,
            timeout=REQUEST_TIMEOUT,
            **self._auth_kwargs(),
        )
        response.raise_for_status()
        try:
            return response.json()
        except ValueError:
            return {"message": response.text}

    def template_for(self, locale: str) -> str:
        templates = {
            "he": getattr(settings, "INFORU_WHATSAPP_TEMPLATE_HE", DEFAULT_TEMPLATES["he"]),
            "en": getattr(settings, "INFORU_WHATSAPP_TEMPLATE_EN", DEFAULT_TEMPLATES["en"]),
        }
        return templates["he"] if locale == "he" else templates["en"]

    def send_whatsapp_otp(self, phone: str, code: str, locale: str = "he") -> DeliveryResult:
        template_id = self.template_for(locale)
        payload = {
            "Data": {
                "TemplateId": template_id,
                "TemplateParameters": [{"Name": "[#1#]", "Type": "OTP", "Value": code}],
                "Recipients": [{"Phone": to_inforu_phone(phone)}],
            }
        }
        logger.info(f"Sending WhatsApp OTP to {mask_phone(phone)} (template {template_id})")

        try:
            result = self._post("/api/v2/WhatsApp/SendWhatsApp", payload)
        except (requests.exceptions.RequestException, MessagingNotConfigured) as e:
            logger.error(f"WhatsApp send to {mask_phone(phone)} failed: {e}")
            return DeliveryResult(method="whatsapp", success=False, error=str(e))

        if result.get("StatusId") == 1 or result.get("StatusDescription") == "Success":
            request_id = result.get("RequestId") or (result.get("Data") or {}).get("RequestId") or ""
            return DeliveryResult(method="whatsapp", success=True, message_id=str(request_id))

        error = (
            result.get("StatusDescription")
            or result.get("DetailedDescription")
            or result.get("error")
            or "Unknown error"
        )
        logger.error(f"WhatsApp send to {mask_phone(phone)} rejected: {error}")
        return DeliveryResult(method="whatsapp", success=False, error=str(error))

    def send_sms_otp(self, phone: str, code: str, locale: str = "he") -> DeliveryResult:
        message = SMS_MESSAGES.get(locale, SMS_MESSAGES["en"]).format(code=code)
        payload = {
            "User": self.api_user,
            "Token": (self.api_token or "").replace("Basic ", ""),
            "Recipients": [{"Phone": to_inforu_phone(phone)}],
            "Settings": {"Sender": self.sender},
            "Message": message,
        }
        logger.info(f"Sending SMS OTP to {mask_phone(phone)}")

        try:
            result = self._post("/api/v2/SMS/SendSms", payload)
        except (requests.exceptions.RequestException, MessagingNotConfigured) as e:
            logger.error(f"SMS send to {mask_phone(phone)} failed: {e}")
            return DeliveryResult(method="sms", success=False, error=str(e))

        message_id = result.get("MessageId") or result.get("messageId") or ""
        if result.get("Status") == 1 or result.get("status") == "sent" or result.get("success") or message_id:
            return DeliveryResult(method="sms", success=True, message_id=str(message_id))

        error = result.get("Description") or result.get("error") or result.get("message") or "Unknown error"
        logger.error(f"SMS send to {mask_phone(phone)} rejected: {error}")
        return DeliveryResult(method="sms", success=False, error=str(error))

    def send_otp(self, phone: str, code: str, method: str, locale: str = "he") -> Tuple[Optional[DeliveryResult], List[DeliveryResult]]:
        """
        Deliver a code over the configured channel(s).

        ``whatsapp`` and ``sms`` use a single channel; ``both`` tries
        WhatsApp first and falls back to SMS.

        Returns:
            (successful result or None, every attempt made)
        """
        attempts = []
        if method in ("whatsapp", "both"):
            attempts.append(self.send_whatsapp_otp(phone, code, locale))
            if attempts[-1].success:
                return attempts[-1], attempts
            if method == "whatsapp":
                return None, attempts
            logger.info("WhatsApp failed, falling back to SMS")

        attempts.append(self.send_sms_otp(phone, code, locale))
        return (attempts[-1] if attempts[-1].success else None), attempts


def get_messaging_client() -> InforuClient:
    return InforuClient()
