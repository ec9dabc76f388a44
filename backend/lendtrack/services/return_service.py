# Overview: Service-layer operations for return records; lateness bookkeeping per borrow.

"""
Return Records

WHY: Each borrow carries a return record from the moment it is created. The
record mirrors the borrow and due dates and caches late_days, so listing
returns does not need to walk every borrow line.

LATE DAYS:
- Returned records keep the value computed when the item came back.
- Outstanding records are measured against today. list_returns_for_user()
  computes this live; recompute_late_days() writes it back for every record
  and is meant to be run from the CLI.
"""

from __future__ import annotations

import logging
from datetime import date

from flask import current_app, has_app_context

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Borrow, ReturnRecord
from ..models.borrows import BORROW_STATUS_REJECTED, BORROW_STATUS_RETURNED, OUTSTANDING_STATUSES
from lendtrack.time_utils import normalize_datetime
from .concurrency import run_unit_of_work
from .late_fee_service import DEFAULT_LOAN_DAYS, compute_late_days, resolve_due_date

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"quantity", "date_return", "returned_at", "late_days"}


def _default_loan_days() -> int:
    if has_app_context():
        return current_app.config.get("DEFAULT_LOAN_DAYS", DEFAULT_LOAN_DAYS)
    return DEFAULT_LOAN_DAYS


def _record_status(record: ReturnRecord) -> str | None:
    """
    The first open status while any line is outstanding. Once settled,
    RETURNED if at least one line came back and REJECTED if none was lent.
    """
    borrow = record.borrow
    if borrow is None or not borrow.details:
        return None
    statuses = [d.status for d in borrow.details]
    open_statuses = [s for s in statuses if s in OUTSTANDING_STATUSES]
    if open_statuses:
        return open_statuses[0]
    if BORROW_STATUS_RETURNED in statuses:
        return BORROW_STATUS_RETURNED
    return BORROW_STATUS_REJECTED


def live_late_days(record: ReturnRecord, *, today: date | None = None) -> int:
    """Late days as of today for an outstanding record, the cached value otherwise."""
    if record.returned_at is not None:
        return record.late_days or 0

    status = _record_status(record)
    if status == BORROW_STATUS_REJECTED:
        # Nothing left the shelf
        return 0
    borrow = record.borrow
    due = resolve_due_date(
        date_borrow=record.date_borrow,
        borrow_due_date=borrow.date_return if borrow else None,
        return_record_date=record.date_return,
        status=status,
        default_loan_days=_default_loan_days(),
    )
    return compute_late_days(due, None, status=status, today=today)


def get_return(record_id: int) -> ReturnRecord:
    record = db.session.query(ReturnRecord).filter_by(id=record_id).first()
    if record is None:
        raise NotFoundError("Return record not found")
    return record


def list_returns() -> list[ReturnRecord]:
    return (
        db.session.query(ReturnRecord)
        .order_by(ReturnRecord.date_return.desc(), ReturnRecord.id.desc())
        .all()
    )


def list_returns_for_user(user_id: int, *, today: date | None = None) -> list[dict]:
    """Return records of one user, with late_days computed live."""
    records = (
        db.session.query(ReturnRecord)
        .join(Borrow, ReturnRecord.borrow_id == Borrow.id)
        .filter(Borrow.user_id == user_id)
        .order_by(ReturnRecord.date_return.desc(), ReturnRecord.id.desc())
        .all()
    )
    results = []
    for record in records:
        data = record.to_dict()
        data["late_days"] = live_late_days(record, today=today)
        data["status"] = _record_status(record)
        results.append(data)
    return results


def update_return(record_id: int, patch: dict) -> ReturnRecord:
    """
    Correct a return record.

    late_days is recomputed from the dates unless given explicitly.
    """
    if not patch:
        raise ValidationError("No valid data provided for update")
    unknown = set(patch) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")
    if "late_days" in patch and (not isinstance(patch["late_days"], int) or patch["late_days"] < 0):
        raise ValidationError("late_days must be a non-negative integer")
    if "quantity" in patch and (not isinstance(patch["quantity"], int) or patch["quantity"] <= 0):
        raise ValidationError("Quantity must be a positive integer")

    def _op():
        record = get_return(record_id)
        if "quantity" in patch:
            record.quantity = patch["quantity"]
        if "date_return" in patch:
            record.date_return = normalize_datetime(patch["date_return"]) if patch["date_return"] else None
        if "returned_at" in patch:
            record.returned_at = normalize_datetime(patch["returned_at"]) if patch["returned_at"] else None

        if "late_days" in patch:
            record.late_days = patch["late_days"]
        elif record.returned_at is not None:
            due = record.date_return or resolve_due_date(
                date_borrow=record.date_borrow,
                default_loan_days=_default_loan_days(),
            )
            record.late_days = compute_late_days(due, record.returned_at)
        else:
            record.late_days = live_late_days(record)

        db.session.commit()
        return record

    return run_unit_of_work(_op, failure_message="Failed to update return record")


def delete_return(record_id: int) -> None:
    def _op():
        record = get_return(record_id)
        db.session.delete(record)
        db.session.commit()

    run_unit_of_work(_op, failure_message="Failed to delete return record")
    logger.info("Return record %s deleted", record_id)


def recompute_late_days(*, today: date | None = None) -> int:
    """Refresh cached late_days of every record. Returns how many changed."""
    def _op():
        changed = 0
        for record in db.session.query(ReturnRecord).all():
            value = live_late_days(record, today=today)
            if value != record.late_days:
                record.late_days = value
                changed += 1
        db.session.commit()
        return changed

    changed = run_unit_of_work(_op, failure_message="Failed to recompute late days")
    logger.info("Recomputed late days: %s record(s) changed", changed)
    return changed
