# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, g

from .responses import error
from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require a valid session token.

    Sets g.current_user to the authenticated User.

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return error("Authentication required", "UNAUTHORIZED", 401)

        user = session_service.validate_session(token)
        if not user:
            return error("Invalid or expired token", "UNAUTHORIZED", 401)

        g.current_user = user
        g.session_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require the authenticated user to hold one of roles. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return error("Authentication required", "UNAUTHORIZED", 401)

            if g.current_user.role not in roles:
                return error(
                    f"Requires role: {', '.join(roles)}",
                    "FORBIDDEN",
                    403,
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def is_staff(user) -> bool:
    from .models.auth import ROLE_ADMIN, ROLE_EDITOR
    return user.role in (ROLE_ADMIN, ROLE_EDITOR)
