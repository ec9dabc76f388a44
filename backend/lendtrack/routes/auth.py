# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/lendtrack/routes/auth.py
"""
Authentication API routes

- POST /register  self-service sign-up, always a BORROWER
- POST /login     username or email + password, returns a session token
- POST /logout    revokes the presented token
- GET  /me        the authenticated user
- POST /forgot-password  sends a one-time reset code over WhatsApp
- POST /reset-password   email + code + new password
"""

from flask import Blueprint, request, current_app, g

from ..errors import LendtrackError, ValidationError
from ..responses import fail, ok, server_error
from ..services import auth_service
from ..services import password_reset_service, session_service
from ..validation import validate_forgot_password, validate_register, validate_reset_password
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Request body:
    {
        "username": "budi",
        "email": "budi@example.com",
        "password": "Str0ng!pass",
        "number": "081234567890"
    }

    Returns:
        201: user created (a welcome message is sent best-effort)
        400: invalid input or weak password
        409: username, email or number already registered
    """
    try:
        data = validate_register(request.get_json(silent=True))
        user = auth_service.register_user(
            username=data["username"],
            email=data["email"],
            password=data["password"],
            number=data["number"],
        )
        return ok("Registration successful", user.to_dict(), 201)
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return server_error()


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            raise ValidationError("username/email and password required")

        user = auth_service.authenticate(username, password)

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return ok("Login successful", {
            "user": user.to_dict(),
            "token": token,
            "expires_at": session.expires_at.isoformat() + "Z",
        })
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to log in")
        return server_error()


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return ok("Logout successful")


@auth_bp.get("/me")
@require_auth
def me_route():
    return ok("Current user", g.current_user.to_dict())


@auth_bp.post("/forgot-password")
def forgot_password_route():
    """
    Request body: {"email": "budi@example.com"}

    The code goes to the WhatsApp number of the account, never into the response.
    """
    try:
        data = validate_forgot_password(request.get_json(silent=True))
        password_reset_service.request_password_reset(data["email"])
        return ok("Password reset code has been sent")
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to issue password reset code")
        return server_error()


@auth_bp.post("/reset-password")
def reset_password_route():
    """
    Request body: {"email": "...", "code": "123456", "password": "N3w!pass"}

    Returns:
        200: password replaced, all sessions of the account revoked
        400: invalid or expired code, weak or unchanged password
    """
    try:
        data = validate_reset_password(request.get_json(silent=True))
        password_reset_service.reset_password(data["email"], data["code"], data["password"])
        return ok("Password reset successful")
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to reset password")
        return server_error()
