# Overview: Flask API routes for return records; parses input and returns JSON responses.

# backend/lendtrack/routes/returns.py
"""
Return Record API Routes

- GET    /api/returns                 all records (ADMIN)
- GET    /api/returns/user/<user_id>  one user's records with live late days
- PATCH  /api/returns/<id>            correct dates or late days (ADMIN)
- DELETE /api/returns/<id>            (ADMIN)
"""

from flask import Blueprint, request, current_app, g

from ..errors import LendtrackError, PermissionDenied
from ..models.auth import ROLE_ADMIN
from ..responses import fail, ok, server_error
from ..services import return_service
from ..validation import validate_return_update
from ..decorators import require_auth, require_role


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_returns_route():
    records = return_service.list_returns()
    return ok("Return records fetched successfully", [r.to_dict() for r in records])


@returns_bp.get("/user/<int:user_id>")
@require_auth
def user_returns_route(user_id: int):
    try:
        if user_id != g.current_user.id and not g.current_user.is_admin:
            raise PermissionDenied("You can only view your own returns")
        records = return_service.list_returns_for_user(user_id)
        return ok("Return records fetched successfully", records)
    except LendtrackError as e:
        return fail(e)


@returns_bp.patch("/<int:record_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_return_route(record_id: int):
    try:
        patch = validate_return_update(request.get_json(silent=True))
        record = return_service.update_return(record_id, patch)
        return ok("Return record updated successfully", record.to_dict())
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to update return record")
        return server_error()


@returns_bp.delete("/<int:record_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_return_route(record_id: int):
    try:
        return_service.delete_return(record_id)
        return ok("Return record deleted successfully")
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to delete return record")
        return server_error()
