# Overview: Flask API route for system health; reports database reachability.

"""
GET /health

200 when the database answers, 503 otherwise. The body carries a few row
counts so a deploy can be sanity-checked without logging in.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import BorrowDetail, InventoryItem, User
from ..models.borrows import OUTSTANDING_STATUSES
from lendtrack.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database() -> dict:
    started = time.perf_counter()
    try:
        counts = {
            "users": db.session.query(User).count(),
            "inventory_items": db.session.query(InventoryItem).count(),
            "outstanding_lines": db.session.query(BorrowDetail)
            .filter(BorrowDetail.status.in_(OUTSTANDING_STATUSES))
            .count(),
        }
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "error": "Database error",
        }

    return {
        "status": "healthy",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "details": counts,
    }


@system_bp.get("/health")
def health():
    database = check_database()
    body = {
        "status": database["status"],
        "app": current_app.config.get("APP_NAME"),
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return body, 200 if database["status"] == "healthy" else 503
