# Overview: Uniform JSON envelopes for API responses.

"""
Success: {"success": true, "message": ..., "data": ...}
Failure: {"success": false, "message": ..., "errorKind": ...}
"""

from __future__ import annotations

from flask import current_app, jsonify

from .errors import LendtrackError, ServerError

GENERIC_SERVER_MESSAGE = "Internal server error"


def ok(message: str, data=None, status: int = 200):
    return jsonify({"success": True, "message": message, "data": data}), status


def error(message: str, kind: str, status: int, **extra):
    body = {"success": False, "message": message, "errorKind": kind}
    body.update(extra)
    return jsonify(body), status


def _expose_details() -> bool:
    return bool(current_app.config.get("EXPOSE_ERROR_DETAILS") or current_app.testing)


def fail(exc: LendtrackError):
    """Translate a domain error into its JSON envelope and status code."""
    extra = {}
    current_status = getattr(exc, "current_status", None)
    if current_status is not None:
        extra["currentStatus"] = current_status
    dependent_count = getattr(exc, "dependent_count", None)
    if dependent_count is not None:
        extra["dependentCount"] = dependent_count

    if isinstance(exc, ServerError):
        if _expose_details():
            if exc.detail:
                extra["detail"] = exc.detail
            return error(exc.message, exc.kind, exc.status_code, **extra)
        return error(GENERIC_SERVER_MESSAGE, exc.kind, exc.status_code)

    return error(exc.message, exc.kind, exc.status_code, **extra)


def server_error():
    return error(GENERIC_SERVER_MESSAGE, ServerError.kind, ServerError.status_code)
