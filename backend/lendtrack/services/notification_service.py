# Overview: Service-layer operations for WhatsApp notifications; best-effort, never on the critical path.

"""
Notification delivery

DESIGN:
- A Notifier has one method: send(to, kind, payload).
- The application holds exactly one notifier, built from config at startup
  (init_notifier) and stored in app.extensions. Tests swap in their own.
- notify() is the only entry point services use. It renders, sends, logs
  and swallows every failure: a notification can never fail a borrow,
  a transition or a registration.

Kinds:
- welcome               account created
- borrow_requested      borrower: request received, waiting for approval
- borrow_request_admin  admin: incoming request to confirm
- borrow_status         borrower: request approved (ACTIVE) or rejected
- borrow_returned       borrower: return recorded, with late days
- password_reset        one-time code for the forgot-password flow
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime

import httpx
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

EXTENSION_KEY = "lendtrack.notifier"

KIND_WELCOME = "welcome"
KIND_BORROW_REQUESTED = "borrow_requested"
KIND_BORROW_REQUEST_ADMIN = "borrow_request_admin"
KIND_BORROW_STATUS = "borrow_status"
KIND_BORROW_RETURNED = "borrow_returned"
KIND_PASSWORD_RESET = "password_reset"


class NotificationError(Exception):
    """Raised by a notifier when delivery fails."""


# =============================================================================
# PHONE NUMBERS
# =============================================================================

def format_phone_number(number: str) -> str:
    """
    Normalise a phone number to a WhatsApp chat id.

    "0812-3456" -> "628123456@c.us", "62812..." kept, anything else rejected.
    """
    cleaned = re.sub(r"\D", "", number or "")
    if cleaned.startswith("0"):
        return f"62{cleaned[1:]}@c.us"
    if cleaned.startswith("62"):
        return f"{cleaned}@c.us"
    raise ValueError("Invalid phone number format")


def _display_phone(chat_id: str) -> str:
    return re.sub(r"@(c\.us|s\.whatsapp\.net)$", "", chat_id)


# =============================================================================
# TEMPLATES
# =============================================================================

def _format_date(value) -> str:
    if isinstance(value, (datetime, date)):
        return value.strftime("%d %B %Y")
    return str(value) if value else "-"


def render_message(kind: str, payload: dict, *, app_name: str = "Lendtrack", support: str = "") -> str:
    """Render the plain-text body of a message."""
    name = payload.get("username") or "User"
    item = payload.get("item_name") or "item"
    date_borrow = _format_date(payload.get("date_borrow"))
    due = _format_date(payload.get("date_return"))

    if kind == KIND_WELCOME:
        body = "Your account has been created successfully."
    elif kind == KIND_BORROW_REQUESTED:
        body = (
            f"You have successfully requested *{item}* from our warehouse "
            f"(borrowed {date_borrow}, due {due}). Please wait for admin confirmation."
        )
    elif kind == KIND_BORROW_REQUEST_ADMIN:
        body = (
            f"You have an incoming borrow request from *{payload.get('borrower') or 'a user'}* "
            f"for *{item}* (borrowed {date_borrow}, due {due}). Please confirm the request."
        )
    elif kind == KIND_BORROW_STATUS:
        status = (payload.get("status") or "").upper()
        if status == "ACTIVE":
            body = (
                f"Your borrowing request for the item *{item}* has been *approved* by the admin. "
                f"Please return it by the due date: {due}."
            )
        elif status == "REJECTED":
            body = (
                f"We regret to inform you that your borrowing request for the item *{item}* "
                f"has been *rejected* by the admin."
            )
        else:
            body = f"Your borrowing request for the item *{item}* is now {status}."
    elif kind == KIND_BORROW_RETURNED:
        late_days = int(payload.get("late_days") or 0)
        lateness = f"{late_days} day(s) late" if late_days else "on time"
        body = f"Your return of *{item}* has been recorded ({lateness}). Thank you."
    elif kind == KIND_PASSWORD_RESET:
        body = (
            f"Your password reset code is *{payload.get('code')}*. "
            f"It expires in {payload.get('expires_minutes')} minute(s). "
            "Ignore this message if you did not ask for it."
        )
    else:
        raise ValueError(f"Unknown notification kind: {kind}")

    lines = [f"*{app_name}*", "", f"Hello {name},", body]
    if support:
        lines += ["", f"Questions? Contact {support}"]
    return "\n".join(lines)


# =============================================================================
# NOTIFIERS
# =============================================================================

class Notifier:
    """Interface: deliver one message. Implementations raise NotificationError on failure."""

    def send(self, to: str, kind: str, payload: dict) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Renders and logs messages instead of delivering them."""

    def __init__(self, app_name: str = "Lendtrack", support: str = ""):
        self.app_name = app_name
        self.support = support

    def send(self, to: str, kind: str, payload: dict) -> None:
        text = render_message(kind, payload, app_name=self.app_name, support=self.support)
        logger.info("Notification %s to %s:\n%s", kind, _display_phone(to), text)


class WhatsAppNotifier(Notifier):
    """
    Posts messages to a WhatsApp HTTP gateway.

    Request: POST {api_url} with {"chatId": "628xx@c.us", "text": "..."} and
    an optional bearer token. Every call is bounded by timeout seconds.
    """

    def __init__(
        self,
        api_url: str,
        *,
        token: str = "",
        timeout: float = 5.0,
        app_name: str = "Lendtrack",
        support: str = "",
        transport: httpx.BaseTransport | None = None,
    ):
        if not api_url:
            raise ValueError("WHATSAPP_API_URL is required for the whatsapp notifier")
        self.api_url = api_url
        self.token = token
        self.timeout = timeout
        self.app_name = app_name
        self.support = support
        self.transport = transport

    def send(self, to: str, kind: str, payload: dict) -> None:
        text = render_message(kind, payload, app_name=self.app_name, support=self.support)
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.api_url, json={"chatId": to, "text": text}, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"WhatsApp delivery to {_display_phone(to)} failed: {exc}") from exc
        logger.info("Message %s sent to %s", kind, _display_phone(to))


def build_notifier(config) -> Notifier:
    kind = (config.get("NOTIFIER") or "log").lower()
    app_name = config.get("APP_NAME", "Lendtrack")
    support = config.get("SUPPORT_CONTACT", "")
    if kind == "whatsapp":
        return WhatsAppNotifier(
            config.get("WHATSAPP_API_URL", ""),
            token=config.get("WHATSAPP_API_TOKEN", ""),
            timeout=float(config.get("WHATSAPP_TIMEOUT_SECONDS", 5)),
            app_name=app_name,
            support=support,
        )
    if kind == "log":
        return LogNotifier(app_name=app_name, support=support)
    raise ValueError(f"Unknown NOTIFIER: {kind}")


def init_notifier(app, notifier: Notifier | None = None) -> Notifier:
    """Attach the application notifier (opened at startup, lives with the app)."""
    notifier = notifier or build_notifier(app.config)
    app.extensions[EXTENSION_KEY] = notifier
    return notifier


def get_notifier() -> Notifier:
    if has_app_context() and EXTENSION_KEY in current_app.extensions:
        return current_app.extensions[EXTENSION_KEY]
    return LogNotifier()


def notify(to: str | None, kind: str, payload: dict, notifier: Notifier | None = None) -> bool:
    """
    Best-effort delivery. Returns True when the notifier accepted the message.

    Never raises: failures are logged and swallowed.
    """
    if not to:
        logger.warning("Skipping %s notification: no contact number", kind)
        return False
    notifier = notifier or get_notifier()
    try:
        notifier.send(to, kind, payload)
        return True
    except NotificationError as exc:
        logger.warning("Failed to send %s notification: %s", kind, exc)
    except Exception:
        logger.exception("Unexpected error sending %s notification", kind)
    return False
