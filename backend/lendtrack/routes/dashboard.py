# Overview: Flask API route for the admin dashboard.

from flask import Blueprint

from ..models.auth import ROLE_ADMIN
from ..responses import ok
from ..services import dashboard_service
from ..decorators import require_auth, require_role

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def dashboard_route():
    metrics = dashboard_service.dashboard_metrics()
    if not metrics["item_details"]:
        return ok("No borrowed records found", metrics)
    return ok("Items Borrowed records fetched successfully", metrics)
