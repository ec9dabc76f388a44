# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/lendtrack/routes/admin.py
"""
Admin routes for users and deletions.

Provides endpoints for:
- User management (list, fetch one, look up an admin, create with any role)
- Deleting users, inventory items and borrows, optionally with cascade

All endpoints require an ADMIN session.
"""

from flask import Blueprint, request, current_app

from ..errors import LendtrackError
from ..models.auth import ROLE_ADMIN
from ..responses import fail, ok, server_error
from ..services import auth_service, deletion_service
from ..validation import validate_register
from ..decorators import require_auth, require_role

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _cascade_flag() -> bool:
    return request.args.get("cascade", "false").lower() in ("1", "true", "yes")


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_role(ROLE_ADMIN)
def list_users():
    users = auth_service.list_users()
    return ok("Users fetched successfully", [u.to_dict() for u in users])


@admin_bp.get("/users/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_user(user_id: int):
    try:
        user = auth_service.require_user(user_id)
        return ok("User fetched successfully", user.to_dict())
    except LendtrackError as e:
        return fail(e)


@admin_bp.get("/admins/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_admin(user_id: int):
    """Look up an approving admin, e.g. to fill admin_id of a borrow request."""
    try:
        user = auth_service.require_admin(user_id)
        return ok("Account fetched successfully", user.to_dict())
    except LendtrackError as e:
        return fail(e)


@admin_bp.post("/users")
@require_auth
@require_role(ROLE_ADMIN)
def create_user():
    """
    Create a user with an explicit role (ADMIN, EDITOR or BORROWER).

    Same body as /api/auth/register plus "role".
    """
    try:
        payload = request.get_json(silent=True) or {}
        role = payload.pop("role", None) if isinstance(payload, dict) else None
        data = validate_register(payload)
        user = auth_service.create_user(
            username=data["username"],
            email=data["email"],
            password=data["password"],
            number=data["number"],
            role=role or "BORROWER",
        )
        return ok("User created successfully", user.to_dict(), 201)
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return server_error()


# =============================================================================
# DELETION
# =============================================================================

def _delete(kind: str, entity_id: int):
    try:
        result = deletion_service.delete_entity(kind, entity_id, cascade=_cascade_flag())
        return ok(f"{kind.capitalize()} deleted successfully", result)
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to delete %s %s", kind, entity_id)
        return server_error()


@admin_bp.delete("/users/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_user(user_id: int):
    return _delete(deletion_service.KIND_USER, user_id)


@admin_bp.delete("/inventory/<int:item_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_inventory(item_id: int):
    return _delete(deletion_service.KIND_INVENTORY, item_id)


@admin_bp.delete("/borrows/<int:borrow_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_borrow(borrow_id: int):
    return _delete(deletion_service.KIND_BORROW, borrow_id)
