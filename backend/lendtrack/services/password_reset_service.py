# Overview: Service-layer operations for the forgot-password flow; one-time codes delivered over WhatsApp.

"""
Password Reset

FLOW:
1. request_password_reset(email) issues a 6 digit code, valid for
   RESET_TOKEN_EXPIRES_MINUTES, and sends it to the account's number.
   Earlier unused codes of the same account are retired.
2. reset_password(email, code, new_password) consumes the code, stores the
   new bcrypt hash and revokes every open session of the account.

A code works once. Only its SHA-256 hash is stored, like session tokens.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from flask import current_app, has_app_context

from ..extensions import db
from ..errors import InvalidTokenError, NotFoundError, ValidationError
from ..models import PasswordResetToken, User
from lendtrack.time_utils import utcnow
from . import auth_service, notification_service, session_service
from .session_service import hash_token

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_MINUTES = 5
CODE_DIGITS = 6


def _expires_minutes() -> int:
    if has_app_context():
        return int(current_app.config.get("RESET_TOKEN_EXPIRES_MINUTES", DEFAULT_EXPIRES_MINUTES))
    return DEFAULT_EXPIRES_MINUTES


def generate_code() -> str:
    return f"{secrets.randbelow(10 ** CODE_DIGITS):0{CODE_DIGITS}d}"


def _active_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=email, is_active=True).first()


def request_password_reset(email: str, *, notifier=None) -> tuple[PasswordResetToken, str]:
    """
    Issue a reset code for the account registered under email.

    Returns (token row, plaintext code). The code only leaves the server
    through the notifier.

    Raises:
        NotFoundError: no active account with this email
    """
    user = _active_user_by_email(email)
    if user is None:
        raise NotFoundError("Account not found")

    now = utcnow()
    minutes = _expires_minutes()
    db.session.query(PasswordResetToken).filter(
        PasswordResetToken.user_id == user.id,
        PasswordResetToken.used_at.is_(None),
    ).update({PasswordResetToken.used_at: now}, synchronize_session=False)

    code = generate_code()
    token = PasswordResetToken(
        user_id=user.id,
        code_hash=hash_token(code),
        created_at=now,
        expires_at=now + timedelta(minutes=minutes),
    )
    db.session.add(token)
    db.session.commit()

    logger.info("Password reset code issued for user %s", user.id)
    notification_service.notify(
        user.number,
        notification_service.KIND_PASSWORD_RESET,
        {"username": user.username, "code": code, "expires_minutes": minutes},
        notifier=notifier,
    )
    return token, code


def reset_password(email: str, code: str, new_password: str) -> User:
    """
    Replace the password of the account behind email.

    Raises:
        InvalidTokenError: code unknown, already used or expired
        ValidationError: new password is weak or equal to the current one
    """
    user = _active_user_by_email(email)
    token = None
    if user is not None:
        token = db.session.query(PasswordResetToken).filter_by(
            user_id=user.id,
            code_hash=hash_token(code),
        ).filter(PasswordResetToken.used_at.is_(None)).first()

    now = utcnow()
    if token is None or token.expires_at < now:
        raise InvalidTokenError("Reset code is invalid or has expired")

    if auth_service.verify_password(new_password, user.password_hash):
        raise ValidationError("Try another password")

    user.password_hash = auth_service.hash_password(new_password)
    token.used_at = now
    revoked = session_service.revoke_user_sessions(user.id, "Password reset")
    db.session.commit()

    logger.info("Password reset for user %s (%s session(s) revoked)", user.id, revoked)
    return user
