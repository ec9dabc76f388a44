# Overview: Service-layer operations for users and auth; the user directory the borrow core reads from.

"""
Authentication Service

WHY: Every borrow names a borrower and an approving admin. Both must be real
accounts with a WhatsApp number. Uses bcrypt for password hashing and
validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12 unless BCRYPT_ROUNDS overrides)
- Minimum 8 characters, upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
- Username, email and phone number are globally unique
"""

import logging
import re

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..errors import AuthError, DuplicateError, NotFoundError, ValidationError
from ..models import User
from ..models.auth import ROLE_ADMIN, ROLE_BORROWER, USER_ROLES
from lendtrack.time_utils import utcnow
from . import notification_service

logger = logging.getLogger(__name__)


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


# =============================================================================
# USER DIRECTORY
# =============================================================================

def get_user_by_id(user_id: int | None) -> User | None:
    if user_id is None:
        return None
    return db.session.query(User).filter_by(id=user_id).first()


def require_user(user_id: int) -> User:
    user = get_user_by_id(user_id)
    if user is None:
        raise NotFoundError("User does not exist")
    return user


def require_admin(user_id: int) -> User:
    """An account that may approve borrows."""
    user = db.session.query(User).filter_by(id=user_id, role=ROLE_ADMIN).first()
    if user is None:
        raise NotFoundError("Admin account does not exist")
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def create_user(
    username: str,
    email: str,
    password: str,
    number: str,
    role: str = ROLE_BORROWER,
) -> User:
    """
    Create new user with bcrypt password hashing.

    number is normalised to the WhatsApp chat id form before the uniqueness
    check, so "0812..." and "62812..." collide.

    Raises:
        ValidationError: bad role, phone number or weak password
        DuplicateError: username, email or number already registered
    """
    if role not in USER_ROLES:
        raise ValidationError("Role must be one of: " + ", ".join(USER_ROLES))

    try:
        chat_id = notification_service.format_phone_number(number)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    if db.session.query(User).filter_by(email=email).first():
        raise DuplicateError("Email is already registered")
    if db.session.query(User).filter_by(username=username).first():
        raise DuplicateError("Username is already registered")
    if db.session.query(User).filter_by(number=chat_id).first():
        raise DuplicateError("Number is already registered")

    # Hash password with bcrypt (validates strength automatically)
    password_hash = hash_password(password)

    user = User(
        username=username,
        email=email,
        number=chat_id,
        password_hash=password_hash,
        role=role,
    )

    db.session.add(user)
    db.session.commit()
    logger.info("User %s created with role %s", user.id, role)
    return user


def register_user(username: str, email: str, password: str, number: str) -> User:
    """Self-service registration: always a BORROWER, welcomed over WhatsApp."""
    user = create_user(username, email, password, number, role=ROLE_BORROWER)
    notification_service.notify(
        user.number,
        notification_service.KIND_WELCOME,
        {"username": user.username},
    )
    return user


def authenticate(username: str, password: str) -> User:
    """
    Authenticate user with username (or email) and password.

    Updates last_login_at on success. Raises AuthError otherwise; the
    message never says which half of the credentials was wrong.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password, user.password_hash):
        raise AuthError("Invalid login details")

    user.last_login_at = utcnow()
    db.session.commit()
    return user
