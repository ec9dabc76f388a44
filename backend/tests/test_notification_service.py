"""
Notifier: phone formatting, message rendering, WhatsApp gateway calls
(through an httpx mock transport) and failure swallowing.
"""

import json
from datetime import date

import httpx
import pytest

from lendtrack.services import notification_service
from lendtrack.services.notification_service import (
    KIND_BORROW_REQUEST_ADMIN,
    KIND_BORROW_RETURNED,
    KIND_BORROW_STATUS,
    KIND_WELCOME,
    LogNotifier,
    NotificationError,
    WhatsAppNotifier,
    build_notifier,
    format_phone_number,
    notify,
    render_message,
)


class TestPhoneNumbers:

    @pytest.mark.parametrize("raw,expected", [
        ("081234567890", "6281234567890@c.us"),
        ("0812-3456-7890", "6281234567890@c.us"),
        ("6281234567890", "6281234567890@c.us"),
        ("+62 812 3456 7890", "6281234567890@c.us"),
    ])
    def test_normalised(self, raw, expected):
        assert format_phone_number(raw) == expected

    @pytest.mark.parametrize("raw", ["", "12345", "+1 555 0100"])
    def test_rejected(self, raw):
        with pytest.raises(ValueError):
            format_phone_number(raw)


class TestRendering:

    def test_status_messages(self):
        approved = render_message(KIND_BORROW_STATUS, {
            "username": "budi", "item_name": "Projector", "status": "ACTIVE",
            "date_return": date(2030, 1, 15),
        }, app_name="Lendtrack")
        assert "*approved*" in approved
        assert "15 January 2030" in approved
        assert approved.startswith("*Lendtrack*")

        rejected = render_message(KIND_BORROW_STATUS, {"item_name": "Projector", "status": "REJECTED"})
        assert "*rejected*" in rejected

    def test_admin_request_names_borrower(self):
        text = render_message(KIND_BORROW_REQUEST_ADMIN, {"username": "admin", "borrower": "budi", "item_name": "Camera"})
        assert "*budi*" in text
        assert "Hello admin" in text

    def test_returned_mentions_lateness(self):
        assert "3 day(s) late" in render_message(KIND_BORROW_RETURNED, {"late_days": 3})
        assert "on time" in render_message(KIND_BORROW_RETURNED, {"late_days": 0})

    def test_support_contact_and_unknown_kind(self):
        assert "Contact help@example.com" in render_message(KIND_WELCOME, {}, support="help@example.com")
        with pytest.raises(ValueError):
            render_message("promo", {})


class TestWhatsAppNotifier:

    def test_posts_chat_id_and_text(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        notifier = WhatsAppNotifier(
            "http://gateway.test/send", token="secret", transport=httpx.MockTransport(handler),
        )
        notifier.send("6281@c.us", KIND_WELCOME, {"username": "budi"})

        assert seen["url"] == "http://gateway.test/send"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["chatId"] == "6281@c.us"
        assert "Hello budi" in seen["body"]["text"]

    def test_http_error_becomes_notification_error(self):
        notifier = WhatsAppNotifier(
            "http://gateway.test/send",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )
        with pytest.raises(NotificationError):
            notifier.send("6281@c.us", KIND_WELCOME, {})

    def test_timeout_becomes_notification_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        notifier = WhatsAppNotifier("http://gateway.test/send", timeout=0.1, transport=httpx.MockTransport(handler))
        with pytest.raises(NotificationError):
            notifier.send("6281@c.us", KIND_WELCOME, {})

    def test_requires_url(self):
        with pytest.raises(ValueError):
            WhatsAppNotifier("")


class TestNotify:

    def test_failures_are_swallowed(self, caplog):
        class Broken(notification_service.Notifier):
            def send(self, to, kind, payload):
                raise RuntimeError("socket closed")

        assert notify("6281@c.us", KIND_WELCOME, {}, notifier=Broken()) is False
        assert "Unexpected error sending welcome notification" in caplog.text

    def test_notification_error_logged_as_warning(self, caplog):
        class Down(notification_service.Notifier):
            def send(self, to, kind, payload):
                raise NotificationError("gateway down")

        assert notify("6281@c.us", KIND_WELCOME, {}, notifier=Down()) is False
        assert "gateway down" in caplog.text

    def test_missing_number_skipped(self, notifier):
        assert notify(None, KIND_WELCOME, {}) is False
        assert notifier.sent == []

    def test_uses_application_notifier(self, notifier):
        assert notify("6281@c.us", KIND_WELCOME, {"username": "budi"}) is True
        assert notifier.sent == [("6281@c.us", KIND_WELCOME, {"username": "budi"})]


def test_build_notifier_from_config():
    assert isinstance(build_notifier({"NOTIFIER": "log"}), LogNotifier)
    whatsapp = build_notifier({"NOTIFIER": "whatsapp", "WHATSAPP_API_URL": "http://gw", "WHATSAPP_TIMEOUT_SECONDS": 2})
    assert isinstance(whatsapp, WhatsAppNotifier)
    assert whatsapp.timeout == 2.0
    with pytest.raises(ValueError):
        build_notifier({"NOTIFIER": "carrier-pigeon"})
