# Overview: Service-layer operations for borrow lines; the status state machine and its stock side effects.

"""
Borrow Detail Lifecycle

STATES:
    PENDING  (initial, set by create_borrow)
    ACTIVE   (admin approved)
    REJECTED (admin declined, terminal)
    RETURNED (item back on the shelf, terminal)

LEGAL TRANSITIONS:
    PENDING -> ACTIVE | REJECTED
    ACTIVE  -> RETURNED
    PENDING -> RETURNED  only while ALLOW_PENDING_RETURN is on. This is an
                         admin shortcut kept on purpose, not an accident of
                         the table below.

SIDE EFFECTS (same transaction as the status change):
    -> REJECTED  release the reserved units when RESTOCK_ON_REJECT is on
    -> RETURNED  release the reserved units, stamp the actual return time,
                 compute late days onto the borrow's return record

After commit the borrower is told about approval, rejection or return.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app, has_app_context

from ..extensions import db
from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..models import Borrow, BorrowDetail, ReturnRecord
from ..models.borrows import (
    BORROW_STATUS_ACTIVE,
    BORROW_STATUS_PENDING,
    BORROW_STATUS_REJECTED,
    BORROW_STATUS_RETURNED,
    BORROW_STATUSES,
    OUTSTANDING_STATUSES,
)
from lendtrack.time_utils import normalize_datetime, utcnow
from . import inventory_service, notification_service
from .concurrency import begin_write, lock_for_update, run_unit_of_work
from .late_fee_service import DEFAULT_LOAN_DAYS, compute_late_days, resolve_due_date

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BORROW_STATUS_PENDING: {BORROW_STATUS_ACTIVE, BORROW_STATUS_REJECTED},
    BORROW_STATUS_ACTIVE: {BORROW_STATUS_RETURNED},
    BORROW_STATUS_REJECTED: set(),
    BORROW_STATUS_RETURNED: set(),
}


def can_transition(current: str, target: str, *, allow_pending_return: bool = True) -> bool:
    if target in ALLOWED_TRANSITIONS.get(current, set()):
        return True
    return (
        allow_pending_return
        and current == BORROW_STATUS_PENDING
        and target == BORROW_STATUS_RETURNED
    )


@dataclass
class TransitionResult:
    borrow_id: int
    previous_statuses: dict[int, str]
    status: str
    details: list[BorrowDetail]
    late_days: int | None = None
    notices: list[tuple[str, str, dict]] = field(default_factory=list, repr=False)

    def to_dict(self) -> dict:
        return {
            "borrow_id": self.borrow_id,
            "status": self.status,
            "previous_statuses": {str(k): v for k, v in self.previous_statuses.items()},
            "late_days": self.late_days,
            "details": [d.to_dict(include_item=True) for d in self.details],
        }


def _config(name: str, default):
    if has_app_context():
        return current_app.config.get(name, default)
    return default


def _normalize_target(target: str) -> str:
    status = (target or "").strip().upper()
    if status not in BORROW_STATUSES:
        raise ValidationError("Status must be one of: " + ", ".join(BORROW_STATUSES))
    if status == BORROW_STATUS_PENDING:
        raise ValidationError("A borrow line cannot be moved back to PENDING")
    return status


# =============================================================================
# INTERNALS (run inside the caller's transaction)
# =============================================================================

def _placeholder_record(borrow: Borrow) -> ReturnRecord | None:
    for record in borrow.returns:
        if record.returned_at is None:
            return record
    return borrow.returns[-1] if borrow.returns else None


def _record_return(detail: BorrowDetail, returned_at: datetime) -> int:
    """Stamp the return and cache late days on the borrow's return record."""
    borrow = detail.borrow
    record = _placeholder_record(borrow)

    due = resolve_due_date(
        date_borrow=borrow.date_borrow,
        borrow_due_date=borrow.date_return,
        return_record_date=record.date_return if record else None,
        status=detail.status,
        default_loan_days=_config("DEFAULT_LOAN_DAYS", DEFAULT_LOAN_DAYS),
    )
    late_days = compute_late_days(due, returned_at)

    if record is None:
        record = ReturnRecord(
            borrow_id=borrow.id,
            quantity=borrow.quantity,
            date_borrow=borrow.date_borrow,
            date_return=due,
            late_days=0,
        )
        db.session.add(record)
        borrow.returns.append(record)

    # Multi-line borrows: the record keeps the latest return and the worst lateness
    record.late_days = max(record.late_days or 0, late_days)

    if all(d.status not in OUTSTANDING_STATUSES for d in borrow.details):
        borrow.returned_at = returned_at
        record.returned_at = returned_at

    return late_days


def _apply(detail: BorrowDetail, target: str, actor_id: int | None, returned_at: datetime | None) -> int | None:
    """Validate and apply one transition. Returns late days for RETURNED."""
    current = detail.status
    if not can_transition(current, target, allow_pending_return=_config("ALLOW_PENDING_RETURN", True)):
        raise InvalidTransitionError(
            f"Borrow cannot be updated. Current status is {current}.",
            current_status=current,
        )

    now = utcnow()
    detail.status = target
    detail.decided_at = now
    detail.decided_by_user_id = actor_id

    if target == BORROW_STATUS_REJECTED:
        if _config("RESTOCK_ON_REJECT", True):
            inventory_service.release(detail.inventory_id, detail.quantity)
        return None

    if target == BORROW_STATUS_RETURNED:
        inventory_service.release(detail.inventory_id, detail.quantity)
        return _record_return(detail, returned_at or now)

    return None


def _notice_for(borrow: Borrow, details: list[BorrowDetail], target: str, late_days: int | None):
    user = borrow.user
    if user is None:
        return None
    payload = {
        "username": user.username,
        "item_name": ", ".join(d.inventory.name for d in details if d.inventory),
        "date_borrow": borrow.date_borrow,
        "date_return": borrow.date_return,
        "status": target,
    }
    if target == BORROW_STATUS_RETURNED:
        payload["late_days"] = late_days or 0
        return (user.number, notification_service.KIND_BORROW_RETURNED, payload)
    return (user.number, notification_service.KIND_BORROW_STATUS, payload)


def _send(result: TransitionResult, notifier) -> None:
    for to, kind, payload in result.notices:
        notification_service.notify(to, kind, payload, notifier=notifier)


# =============================================================================
# PUBLIC API
# =============================================================================

def transition_borrow_detail(
    detail_id: int,
    target: str,
    actor_id: int | None = None,
    *,
    returned_at: datetime | None = None,
    notifier: notification_service.Notifier | None = None,
) -> TransitionResult:
    """
    Move one borrow line to target (transitionBorrowDetail).

    Raises:
        ValidationError: unknown target status
        NotFoundError: detail does not exist
        InvalidTransitionError: current status does not allow target
    """
    target = _normalize_target(target)
    if returned_at is not None:
        returned_at = normalize_datetime(returned_at)

    def _op():
        begin_write()
        detail = lock_for_update(db.session.query(BorrowDetail).filter_by(id=detail_id)).first()
        if detail is None:
            raise NotFoundError("Borrow detail not found")

        previous = detail.status
        late_days = _apply(detail, target, actor_id, returned_at)
        notice = _notice_for(detail.borrow, [detail], target, late_days)

        db.session.commit()
        return TransitionResult(
            borrow_id=detail.borrow_id,
            previous_statuses={detail.id: previous},
            status=target,
            details=[detail],
            late_days=late_days,
            notices=[notice] if notice else [],
        )

    result = run_unit_of_work(_op, failure_message="Failed to update borrow status")
    logger.info(
        "Borrow detail %s: %s -> %s (actor %s)",
        detail_id, result.previous_statuses[detail_id], target, actor_id,
    )
    _send(result, notifier)
    return result


def transition_borrow(
    borrow_id: int,
    target: str,
    actor_id: int | None = None,
    *,
    returned_at: datetime | None = None,
    notifier: notification_service.Notifier | None = None,
) -> TransitionResult:
    """
    Move every line of a borrow to target in one transaction.

    All lines must allow the transition; otherwise nothing changes.
    """
    target = _normalize_target(target)
    if returned_at is not None:
        returned_at = normalize_datetime(returned_at)

    def _op():
        begin_write()
        borrow = db.session.query(Borrow).filter_by(id=borrow_id).first()
        if borrow is None:
            raise NotFoundError("Borrow record not found")

        details = lock_for_update(
            db.session.query(BorrowDetail).filter_by(borrow_id=borrow_id).order_by(BorrowDetail.id)
        ).all()
        if not details:
            raise NotFoundError("Borrow detail not found")

        previous = {d.id: d.status for d in details}
        late_days = None
        for detail in details:
            line_late = _apply(detail, target, actor_id, returned_at)
            if line_late is not None:
                late_days = max(late_days or 0, line_late)

        notice = _notice_for(borrow, details, target, late_days)
        db.session.commit()
        return TransitionResult(
            borrow_id=borrow.id,
            previous_statuses=previous,
            status=target,
            details=details,
            late_days=late_days,
            notices=[notice] if notice else [],
        )

    result = run_unit_of_work(_op, failure_message="Failed to update borrow status")
    logger.info(
        "Borrow %s: %s line(s) -> %s (actor %s)",
        borrow_id, len(result.details), target, actor_id,
    )
    _send(result, notifier)
    return result
