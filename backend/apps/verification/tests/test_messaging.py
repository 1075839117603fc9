"""
Tests for INFORU message delivery.
"""

from unittest.mock import MagicMock

import pytest
import requests

from apps.verification.messaging import InforuClient, to_inforu_phone


def make_client(*responses, token="secret"):
    session = MagicMock()
    replies = []
    for body in responses:
        if isinstance(body, Exception):
            replies.append(body)
            continue
        reply = MagicMock()
        reply.json.return_value = body
        replies.append(reply)
    session.post.side_effect = replies
    client = InforuClient(api_user="qvote", api_token=token, sender="QVote", base_url="https://inforu.test", session=session)
    return client, session


def test_to_inforu_phone():
    assert to_inforu_phone("+972501234567") == "972501234567"
    assert to_inforu_phone("050-123-4567") == "972501234567"


class TestWhatsApp:
    def test_success(self):
        client, session = make_client({"StatusId": 1, "RequestId": "abc"})

        result = client.send_whatsapp_otp("+972501234567", "1234", locale="en")

        assert result.success is True
        assert result.message_id == "abc"
        url = session.post.call_args.args[0]
        payload = session.post.call_args.kwargs["json"]
        assert url == "https://inforu.test/api/v2/WhatsApp/SendWhatsApp"
        assert payload["Data"]["TemplateId"] == "234889"
        assert payload["Data"]["TemplateParameters"][0]["Value"] == "1234"
        assert payload["Data"]["Recipients"] == [{"Phone": "972501234567"}]
        assert "auth" in session.post.call_args.kwargs

    def test_rejected(self):
        client, _ = make_client({"StatusId": -2, "StatusDescription": "Template not approved"})
        result = client.send_whatsapp_otp("+972501234567", "1234")
        assert result.success is False
        assert result.error == "Template not approved"

    def test_network_error(self):
        client, _ = make_client(requests.exceptions.ConnectionError("down"))
        result = client.send_whatsapp_otp("+972501234567", "1234")
        assert result.success is False
        assert "down" in result.error

    def test_basic_header_token(self):
        client, session = make_client({"StatusId": 1}, token="Basic dXNlcjpwYXNz")
        client.send_whatsapp_otp("+972501234567", "1234")
        assert session.post.call_args.kwargs["headers"] == {"Authorization": "Basic dXNlcjpwYXNz"}

    def test_not_configured(self):
        client = InforuClient(api_user="", api_token="", session=MagicMock())
        result = client.send_whatsapp_otp("+972501234567", "1234")
        assert result.success is False
        client.session.post.assert_not_called()


class TestSendOtp:
    def test_sms_only(self):
        client, session = make_client({"Status": 1, "MessageId": 77})

        delivered, attempts = client.send_otp("+972501234567", "4321", "sms", "he")

        assert delivered.method == "sms"
        assert delivered.message_id == "77"
        assert len(attempts) == 1
        assert session.post.call_args.args[0].endswith("/api/v2/SMS/SendSms")
        assert "4321" in session.post.call_args.kwargs["json"]["Message"]

    def test_fallback_to_sms(self):
        client, session = make_client({"StatusId": 0, "StatusDescription": "No WhatsApp"}, {"Status": 1})

        delivered, attempts = client.send_otp("+972501234567", "4321", "both")

        assert delivered.method == "sms"
        assert [a.method for a in attempts] == ["whatsapp", "sms"]
        assert session.post.call_count == 2

    def test_whatsapp_only_does_not_fall_back(self):
        client, session = make_client({"StatusId": 0, "StatusDescription": "No WhatsApp"})

        delivered, attempts = client.send_otp("+972501234567", "4321", "whatsapp")

        assert delivered is None
        assert len(attempts) == 1
        assert session.post.call_count == 1

    @pytest.mark.parametrize("body", [{"Status": 0, "Description": "Bad sender"}, {}])
    def test_sms_failure(self, body):
        client, _ = make_client(body)
        delivered, attempts = client.send_otp("+972501234567", "4321", "sms")
        assert delivered is None
        assert attempts[0].success is False
