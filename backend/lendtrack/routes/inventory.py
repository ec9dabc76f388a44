# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/lendtrack/routes/inventory.py
"""
Inventory API routes

Reads are open to any authenticated user; writes need ADMIN or EDITOR.
Stock changes caused by borrowing never go through these routes.
"""

from flask import Blueprint, request, current_app

from ..errors import LendtrackError
from ..models.auth import ROLE_ADMIN, ROLE_EDITOR
from ..responses import fail, ok, server_error
from ..services import inventory_service
from ..validation import validate_inventory_create, validate_inventory_update
from ..decorators import require_auth, require_role


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
def list_inventory_route():
    items = inventory_service.list_inventory()
    return ok("Inventory fetched successfully", [item.to_dict() for item in items])


@inventory_bp.get("/<int:item_id>")
@require_auth
def get_inventory_route(item_id: int):
    try:
        item = inventory_service.get_inventory(item_id)
        return ok("Inventory fetched successfully", item.to_dict())
    except LendtrackError as e:
        return fail(e)


@inventory_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_EDITOR)
def create_inventory_route():
    """
    Request body:
    {
        "name": "Projector",
        "code": "PRJ-01",
        "quantity": 3
    }
    """
    try:
        data = validate_inventory_create(request.get_json(silent=True))
        item = inventory_service.create_inventory(
            name=data["name"],
            code=data["code"],
            quantity=data["quantity"],
        )
        return ok("Inventory created successfully", item.to_dict(), 201)
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to create inventory")
        return server_error()


@inventory_bp.patch("/<int:item_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_EDITOR)
def update_inventory_route(item_id: int):
    """
    Partial update of name, code, quantity or condition.

    quantity 0 forces "Out of Stock"; "Out of Stock" with stock left is rejected.
    """
    try:
        patch = validate_inventory_update(request.get_json(silent=True))
        item = inventory_service.update_inventory(item_id, patch)
        return ok("Inventory updated successfully", item.to_dict())
    except LendtrackError as e:
        return fail(e)
    except Exception:
        current_app.logger.exception("Failed to update inventory")
        return server_error()
