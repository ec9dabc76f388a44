# Overview: Service-layer operations for bearer sessions issued at login.

"""
Bearer sessions.

The client holds a random 64 hex char token; the database only keeps its
SHA-256 digest. A session ends when it is revoked (logout, account
deactivated) or SESSION_LIFETIME after it was issued, whichever comes first.
"""

import hashlib
import secrets
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, User
from lendtrack.time_utils import utcnow


SESSION_LIFETIME = timedelta(days=7)


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """Open a session for user_id. Returns (row, plaintext token)."""
    if db.session.query(User).filter_by(id=user_id).first() is None:
        raise ValueError("User not found")

    token = generate_token()
    issued = utcnow()
    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=issued,
        last_used_at=issued,
        expires_at=issued + SESSION_LIFETIME,
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> User | None:
    """
    Resolve a bearer token to its user, or None.

    A live token whose user was deactivated is revoked on the spot.
    """
    session = _live_session(token)
    if session is None or session.expires_at < utcnow():
        return None

    user = session.user
    if user is None or not user.is_active:
        _revoke(session, "User account deactivated")
        db.session.commit()
        return None

    session.last_used_at = utcnow()
    db.session.commit()
    return user


def revoke_session(token: str, reason: str = "User logout") -> bool:
    session = _live_session(token)
    if session is None:
        return False
    _revoke(session, reason)
    db.session.commit()
    return True


def revoke_user_sessions(user_id: int, reason: str) -> int:
    """Revoke every live session of a user. The caller commits."""
    sessions = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    for session in sessions:
        _revoke(session, reason)
    return len(sessions)
