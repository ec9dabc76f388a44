from __future__ import annotations
from datetime import date, datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from lendtrack.errors import ValidationError
from lendtrack.models import InventoryItem, ReturnRecord
from lendtrack.models.borrows import (
    BORROW_STATUS_ACTIVE,
    BORROW_STATUS_REJECTED,
    BORROW_STATUS_RETURNED,
)
from lendtrack.models.inventory import CONDITION_AVAILABLE, INVENTORY_CONDITIONS
from lendtrack.time_utils import parse_iso_datetime, today


# Statuses an admin may request through the API
REQUESTABLE_STATUSES = (BORROW_STATUS_ACTIVE, BORROW_STATUS_REJECTED, BORROW_STATUS_RETURNED)


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


INVENTORY_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "quantity", "condition"},
    required_on_create={"name", "code", "quantity"},
)

INVENTORY_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "quantity", "condition"},
)

RETURN_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"quantity", "date_return", "returned_at", "late_days"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """Strict integer: rejects bools, floats, decimals and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_datetime(value: Any, field: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
        if dt is None:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
        return dt
    raise ValidationError(f"{field} must be an ISO-8601 datetime")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        return coerce_datetime(value, col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


# =============================================================================
# INVENTORY
# =============================================================================

def _check_length(patch: dict, field: str, low: int, high: int) -> None:
    if field in patch and not (low <= len(patch[field]) <= high):
        raise ValidationError(f"{field} must be between {low} and {high} characters")


def enforce_rules_inventory_create(patch: dict) -> None:
    _check_length(patch, "name", 3, 100)
    _check_length(patch, "code", 3, 20)
    if patch["quantity"] <= 0:
        raise ValidationError("Quantity must be a positive number")
    if patch.get("condition") not in (None, CONDITION_AVAILABLE):
        raise ValidationError("A new item can only be registered as Available")


def enforce_rules_inventory_update(patch: dict) -> None:
    if not patch:
        raise ValidationError("Request data is empty or invalid")
    _check_length(patch, "name", 3, 100)
    _check_length(patch, "code", 3, 20)
    if "quantity" in patch and patch["quantity"] < 0:
        raise ValidationError("Quantity cannot be negative")
    if "condition" in patch and patch["condition"] not in INVENTORY_CONDITIONS:
        raise ValidationError("Condition must be one of: " + ", ".join(INVENTORY_CONDITIONS))


def validate_inventory_create(payload: dict) -> dict:
    patch = validate_payload(
        model=InventoryItem, payload=payload, policy=INVENTORY_CREATE_POLICY, partial=False
    )
    enforce_rules_inventory_create(patch)
    return patch


def validate_inventory_update(payload: dict) -> dict:
    patch = validate_payload(
        model=InventoryItem, payload=payload, policy=INVENTORY_UPDATE_POLICY, partial=True
    )
    enforce_rules_inventory_update(patch)
    return patch


# =============================================================================
# BORROWS
# =============================================================================

def _require_dict(payload) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _positive_int(value: Any, field: str) -> int:
    number = coerce_int(value, field)
    if number <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return number


def validate_borrow_create(payload: dict, *, default_user_id: int | None = None, now: date | None = None) -> dict:
    """
    Shape of a borrow request.

    Either inventory_id + quantity or items: [{inventory_id, quantity}].
    date_borrow may not lie before today (date-only comparison).
    """
    payload = _require_dict(payload)
    allowed = {"user_id", "admin_id", "inventory_id", "quantity", "items", "date_borrow", "date_return"}
    for k in payload:
        if k not in allowed:
            raise ValidationError(f"Field not allowed: {k}")

    cleaned: dict = {}

    user_id = payload.get("user_id", default_user_id)
    if user_id is None:
        raise ValidationError("user_id is required")
    cleaned["user_id"] = _positive_int(user_id, "user_id")

    if payload.get("admin_id") is None:
        raise ValidationError("admin_id is required")
    cleaned["admin_id"] = _positive_int(payload["admin_id"], "admin_id")

    if payload.get("date_borrow") in (None, ""):
        raise ValidationError("date_borrow is required")
    date_borrow = coerce_datetime(payload["date_borrow"], "date_borrow")
    if date_borrow.date() < (now or today()):
        raise ValidationError("Borrow date cannot be in the past")
    cleaned["date_borrow"] = date_borrow

    if payload.get("date_return") not in (None, ""):
        date_return = coerce_datetime(payload["date_return"], "date_return")
        if date_return <= date_borrow:
            raise ValidationError("Return date must be after borrow date")
        cleaned["date_return"] = date_return

    items = payload.get("items")
    if items is not None:
        if "inventory_id" in payload:
            raise ValidationError("Provide either inventory_id or items, not both")
        if not isinstance(items, list) or not items:
            raise ValidationError("items must be a non-empty list")
        lines = []
        for entry in items:
            if not isinstance(entry, dict) or "inventory_id" not in entry:
                raise ValidationError("Each item needs an inventory_id")
            lines.append({
                "inventory_id": _positive_int(entry["inventory_id"], "inventory_id"),
                "quantity": _positive_int(entry.get("quantity", 1), "quantity"),
            })
        cleaned["items"] = lines
    else:
        if payload.get("inventory_id") is None:
            raise ValidationError("inventory_id is required")
        cleaned["inventory_id"] = _positive_int(payload["inventory_id"], "inventory_id")
        cleaned["quantity"] = _positive_int(payload.get("quantity", 1), "quantity")

    return cleaned


def validate_borrow_update(payload: dict) -> dict:
    payload = _require_dict(payload)
    for k in payload:
        if k not in ("quantity", "date_return"):
            raise ValidationError(f"Field not allowed: {k}")

    cleaned: dict = {}
    if payload.get("quantity") is not None:
        cleaned["quantity"] = _positive_int(payload["quantity"], "quantity")
    if payload.get("date_return") not in (None, ""):
        cleaned["date_return"] = coerce_datetime(payload["date_return"], "date_return")
    if not cleaned:
        raise ValidationError("No valid data provided for update")
    return cleaned


def validate_status_change(payload: dict) -> dict:
    payload = _require_dict(payload)
    status = str(payload.get("status") or "").strip().upper()
    if status not in REQUESTABLE_STATUSES:
        raise ValidationError("Status must be one of: " + ", ".join(REQUESTABLE_STATUSES))

    cleaned = {"status": status, "returned_at": None}
    if payload.get("returned_at") not in (None, ""):
        if status != BORROW_STATUS_RETURNED:
            raise ValidationError("returned_at is only accepted with status RETURNED")
        cleaned["returned_at"] = coerce_datetime(payload["returned_at"], "returned_at")
    return cleaned


# =============================================================================
# RETURNS / USERS
# =============================================================================

def validate_return_update(payload: dict) -> dict:
    patch = validate_payload(
        model=ReturnRecord, payload=payload, policy=RETURN_UPDATE_POLICY, partial=True
    )
    if not patch:
        raise ValidationError("No valid data provided for update")
    if "late_days" in patch and (patch["late_days"] is None or patch["late_days"] < 0):
        raise ValidationError("late_days must be a non-negative integer")
    if "quantity" in patch and patch["quantity"] <= 0:
        raise ValidationError("Quantity must be a positive integer")
    return patch


def validate_register(payload: dict) -> dict:
    """Strength of the password and the phone format are checked by auth_service."""
    payload = _require_dict(payload)
    cleaned = {}
    for field in ("username", "email", "password", "number"):
        value = payload.get(field)
        if value is None or not str(value).strip():
            raise ValidationError(f"{field} is required")
        cleaned[field] = str(value).strip() if field != "password" else str(value)

    if not (3 <= len(cleaned["username"]) <= 64):
        raise ValidationError("username must be between 3 and 64 characters")
    if "@" not in cleaned["email"] or len(cleaned["email"]) > 255:
        raise ValidationError("email must be a valid email address")
    return cleaned


def validate_forgot_password(payload: dict) -> dict:
    payload = _require_dict(payload)
    email = str(payload.get("email") or "").strip()
    if "@" not in email:
        raise ValidationError("email must be a valid email address")
    return {"email": email}


def validate_reset_password(payload: dict) -> dict:
    cleaned = validate_forgot_password(payload)
    code = str(payload.get("code") or "").strip()
    if not code:
        raise ValidationError("Reset code is required")
    password = payload.get("password")
    if not isinstance(password, str) or not password:
        raise ValidationError("password is required")
    cleaned.update({"code": code, "password": password})
    return cleaned
