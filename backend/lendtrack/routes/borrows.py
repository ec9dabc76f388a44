# Overview: Flask API routes for borrows and borrow lines; parses input and returns JSON responses.

# backend/lendtrack/routes/borrows.py
"""
Borrow API routes

WORKFLOW:
1. Borrower requests items (POST /api/borrows). Stock is reserved, lines are PENDING.
2. Admin approves or rejects, per borrow or per line.
3. Admin marks the items RETURNED; stock is released and late days recorded.

ACCESS:
- Borrowers create borrows for themselves and read their own.
- ADMIN/EDITOR read everything and edit borrow headers.
- Only ADMIN changes line status.
"""

from flask import Blueprint, request, current_app, g

from ..errors import LendtrackError, PermissionDenied
from ..models.auth import ROLE_ADMIN, ROLE_EDITOR
from ..responses import fail, ok, server_error
from ..services import borrow_detail_service, borrow_service
from ..validation import validate_borrow_create, validate_borrow_update, validate_status_change
from ..decorators import is_staff, require_auth, require_role


borrows_bp = Blueprint("borrows", __name__, url_prefix="/api/borrows")
borrow_details_bp = Blueprint("borrow_details", __name__, url_prefix="/api/borrow-details")


# =============================================================================
# CREATE / READ
# =============================================================================

@borrows_bp.post("")
@require_auth
def create_borrow_route():
    """
    Request body (single line):
    {
        "admin_id": 1,
        "inventory_id": 3,
        "quantity": 2,
        "date_borrow": "2026-10-20",
        "date_return": "2026-10-25"   (optional, default +DEFAULT_LOAN_DAYS)
    }

    or several lines with "items": [{"inventory_id": 3, "quantity": 2}, ...].

    Returns:
        201: borrow created, lines PENDING
        400: validation, insufficient stock or item not available
        404: item, user or admin not found
    """
    try:
        data = validate_borrow_create(
            request.get_json(silent=True),
            default_user_id=g.current_user.id,
        )
        if data["user_id"] != g.current_user.id and not is_staff(g.current_user):
            raise PermissionDenied("You can only borrow for yourself")

        result = borrow_service.create_borrow(**data)
        return ok("Borrow request created successfully", result.to_dict(), 201)
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to create borrow")
        return server_error()


@borrows_bp.get("/mine")
@require_auth
def my_borrows_route():
    borrows = borrow_service.list_borrows_for_user(g.current_user.id)
    return ok(
        "Borrow records fetched successfully",
        [b.to_dict(include_details=True) for b in borrows],
    )


@borrows_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_EDITOR)
def list_borrows_route():
    borrows = borrow_service.list_borrows()
    return ok(
        "Borrow records fetched successfully",
        [b.to_dict(include_details=True) for b in borrows],
    )


@borrows_bp.get("/<int:borrow_id>")
@require_auth
def get_borrow_route(borrow_id: int):
    try:
        borrow = borrow_service.get_borrow(borrow_id)
        if borrow.user_id != g.current_user.id and not is_staff(g.current_user):
            raise PermissionDenied("You can only view your own borrows")
        return ok("Borrow record fetched successfully", borrow.to_dict(include_details=True))
    except LendtrackError as e:
        return fail(e)


# =============================================================================
# UPDATE / STATUS
# =============================================================================

@borrows_bp.patch("/<int:borrow_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_EDITOR)
def update_borrow_route(borrow_id: int):
    try:
        data = validate_borrow_update(request.get_json(silent=True))
        borrow = borrow_service.update_borrow(borrow_id, **data)
        return ok("Borrow updated successfully", borrow.to_dict(include_details=True))
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to update borrow")
        return server_error()


@borrows_bp.post("/<int:borrow_id>/status")
@require_auth
@require_role(ROLE_ADMIN)
def borrow_status_route(borrow_id: int):
    """
    Move every line of a borrow to ACTIVE, REJECTED or RETURNED.

    Request body: {"status": "ACTIVE"} (optional "returned_at" with RETURNED)
    """
    try:
        data = validate_status_change(request.get_json(silent=True))
        result = borrow_detail_service.transition_borrow(
            borrow_id,
            data["status"],
            g.current_user.id,
            returned_at=data["returned_at"],
        )
        return ok(f"Borrow status updated to {data['status']}", result.to_dict())
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to update borrow status")
        return server_error()


@borrow_details_bp.post("/<int:detail_id>/status")
@require_auth
@require_role(ROLE_ADMIN)
def borrow_detail_status_route(detail_id: int):
    """Move one borrow line. Same body as /api/borrows/<id>/status."""
    try:
        data = validate_status_change(request.get_json(silent=True))
        result = borrow_detail_service.transition_borrow_detail(
            detail_id,
            data["status"],
            g.current_user.id,
            returned_at=data["returned_at"],
        )
        return ok(f"Borrow status updated to {data['status']}", result.to_dict())
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to update borrow detail status")
        return server_error()
