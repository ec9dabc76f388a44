# Overview: Service-layer operations for borrows; the orchestrator that reserves stock and opens loans.

"""
Borrow Orchestrator

WHY: A borrow touches three tables (borrows, borrow_details, inventory_items)
plus a return placeholder. They must change together or not at all.

CREATE FLOW (create_borrow):
1. Validate dates: due date after borrow date, loan period within MAX_LOAN_DAYS.
2. Load every requested item (locked); each must be Available with enough stock.
3. Load borrower and admin; both must exist and have a contact number.
4. In one transaction: Borrow row, reserve stock, one PENDING BorrowDetail
   per line, ReturnRecord placeholder carrying the borrow and due dates.
5. Commit. Any failure before this point rolls everything back.
6. After commit: notify borrower and admin. Failures are logged only.

CONCURRENCY:
- The write transaction is opened before the stock check (BEGIN IMMEDIATE
  on SQLite, SELECT ... FOR UPDATE elsewhere) so two requests can never
  both pass the check on the same units.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from flask import current_app, has_app_context
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..errors import (
    InsufficientStockError,
    NotAvailableError,
    NotFoundError,
    ValidationError,
)
from ..models import Borrow, BorrowDetail, ReturnRecord
from ..models.auth import ROLE_ADMIN
from ..models.borrows import BORROW_STATUS_PENDING
from ..models.inventory import CONDITION_AVAILABLE
from lendtrack.time_utils import normalize_datetime
from . import auth_service, inventory_service, notification_service
from .concurrency import begin_write, run_unit_of_work
from .late_fee_service import DEFAULT_LOAN_DAYS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BorrowLine:
    inventory_id: int
    quantity: int


@dataclass
class BorrowResult:
    """Ids are captured before commit so they survive later deletes."""
    borrow_id: int
    detail_ids: list[int]
    borrow: Borrow
    details: list[BorrowDetail]
    return_record: ReturnRecord | None = None
    notices: list[tuple[str, str, dict]] = field(default_factory=list, repr=False)

    @property
    def detail_id(self) -> int | None:
        return self.detail_ids[0] if self.detail_ids else None

    def to_dict(self) -> dict:
        return {
            "borrow_id": self.borrow_id,
            "detail_id": self.detail_id,
            "borrow": self.borrow.to_dict(),
            "details": [d.to_dict() for d in self.details],
            "return_record": self.return_record.to_dict() if self.return_record else None,
        }


def _setting(name: str, default):
    if has_app_context():
        return current_app.config.get(name, default)
    return default


# =============================================================================
# VALIDATION (no database access)
# =============================================================================

def normalize_lines(
    inventory_id: int | None = None,
    quantity: int | None = None,
    items: list[dict] | None = None,
) -> list[BorrowLine]:
    """
    Accept either a single (inventory_id, quantity) or a list of items.

    Repeated inventory ids are merged into one line.
    """
    raw: list[tuple] = []
    if items:
        raw = [(entry.get("inventory_id"), entry.get("quantity", 1)) for entry in items]
    elif inventory_id is not None:
        raw = [(inventory_id, 1 if quantity is None else quantity)]

    if not raw:
        raise ValidationError("At least one inventory item is required")

    merged: dict[int, int] = {}
    for item_id, qty in raw:
        if item_id is None:
            raise ValidationError("Inventory ID is required")
        if not isinstance(qty, int) or isinstance(qty, bool) or qty <= 0:
            raise ValidationError("Quantity must be a positive integer")
        merged[item_id] = merged.get(item_id, 0) + qty

    return [BorrowLine(item_id, qty) for item_id, qty in merged.items()]


def validate_loan_period(
    date_borrow: datetime | None,
    date_return: datetime | None,
    *,
    default_loan_days: int = DEFAULT_LOAN_DAYS,
    max_loan_days: int | None = 14,
) -> tuple[datetime, datetime]:
    """
    Return (date_borrow, due_date), filling a missing due date with the
    default loan period.
    """
    if date_borrow is None:
        raise ValidationError("Borrow date is required")
    date_borrow = normalize_datetime(date_borrow)

    if date_return is None:
        date_return = date_borrow + timedelta(days=default_loan_days)
    date_return = normalize_datetime(date_return)

    if date_return <= date_borrow:
        raise ValidationError("Return date must be after borrow date")
    if max_loan_days and date_return - date_borrow > timedelta(days=max_loan_days):
        raise ValidationError(f"Loan period cannot exceed {max_loan_days} days")

    return date_borrow, date_return


# =============================================================================
# CREATE
# =============================================================================

def _add_borrow_detail(borrow: Borrow, line: BorrowLine) -> BorrowDetail:
    detail = BorrowDetail(
        borrow_id=borrow.id,
        inventory_id=line.inventory_id,
        quantity=line.quantity,
        status=BORROW_STATUS_PENDING,
    )
    db.session.add(detail)
    db.session.flush()
    return detail


def _add_return_placeholder(borrow: Borrow) -> ReturnRecord:
    record = ReturnRecord(
        borrow_id=borrow.id,
        quantity=borrow.quantity,
        date_borrow=borrow.date_borrow,
        date_return=borrow.date_return,
        late_days=0,
    )
    db.session.add(record)
    return record


def create_borrow(
    *,
    user_id: int,
    admin_id: int,
    date_borrow: datetime,
    date_return: datetime | None = None,
    inventory_id: int | None = None,
    quantity: int | None = None,
    items: list[dict] | None = None,
    notifier: notification_service.Notifier | None = None,
) -> BorrowResult:
    """
    Reserve stock and open a PENDING borrow (reserveAndCreateBorrow).

    Raises:
        ValidationError: bad dates or quantities, missing contact number
        NotFoundError: unknown item, borrower or admin
        NotAvailableError / InsufficientStockError: stock check failed
        ServerError: the transaction could not be committed
    """
    lines = normalize_lines(inventory_id, quantity, items)
    date_borrow, date_return = validate_loan_period(
        date_borrow,
        date_return,
        default_loan_days=_setting("DEFAULT_LOAN_DAYS", DEFAULT_LOAN_DAYS),
        max_loan_days=_setting("MAX_LOAN_DAYS", 14),
    )

    def _op():
        begin_write()

        items_by_id = {}
        for line in lines:
            item = inventory_service.get_inventory(line.inventory_id, lock=True)
            if item.condition != CONDITION_AVAILABLE:
                raise NotAvailableError(f"Item {item.name} is not available")
            if item.quantity < line.quantity:
                raise InsufficientStockError(
                    f"Insufficient quantity in inventory for {item.name}"
                )
            items_by_id[item.id] = item

        user = auth_service.get_user_by_id(user_id)
        admin = auth_service.get_user_by_id(admin_id)
        if user is None or admin is None:
            raise NotFoundError("User or admin details are missing.")
        if admin.role != ROLE_ADMIN:
            raise ValidationError("admin_id must reference an admin account")
        if not user.number or not admin.number:
            raise ValidationError("User or admin contact number is missing.")

        borrow = Borrow(
            quantity=sum(line.quantity for line in lines),
            date_borrow=date_borrow,
            date_return=date_return,
            user_id=user.id,
            admin_id=admin.id,
        )
        db.session.add(borrow)
        db.session.flush()

        details = []
        for line in lines:
            inventory_service.apply_reservation(items_by_id[line.inventory_id], line.quantity)
            details.append(_add_borrow_detail(borrow, line))

        record = _add_return_placeholder(borrow)

        item_names = ", ".join(items_by_id[line.inventory_id].name for line in lines)
        payload = {
            "item_name": item_names,
            "date_borrow": date_borrow,
            "date_return": date_return,
        }
        notices = [
            (user.number, notification_service.KIND_BORROW_REQUESTED,
             {**payload, "username": user.username}),
            (admin.number, notification_service.KIND_BORROW_REQUEST_ADMIN,
             {**payload, "username": admin.username, "borrower": user.username}),
        ]

        result = BorrowResult(
            borrow_id=borrow.id,
            detail_ids=[d.id for d in details],
            borrow=borrow,
            details=details,
            return_record=record,
            notices=notices,
        )
        db.session.commit()
        return result

    result = run_unit_of_work(_op, failure_message="Failed to create borrow")
    logger.info(
        "Borrow %s created for user %s (%s line(s))",
        result.borrow_id, user_id, len(result.details),
    )

    # Outside the transaction: best-effort only
    for to, kind, payload in result.notices:
        notification_service.notify(to, kind, payload, notifier=notifier)

    return result


# =============================================================================
# READ / UPDATE
# =============================================================================

def _borrow_query():
    return db.session.query(Borrow).options(
        selectinload(Borrow.details).selectinload(BorrowDetail.inventory),
        selectinload(Borrow.user),
    )


def get_borrow(borrow_id: int) -> Borrow:
    borrow = _borrow_query().filter(Borrow.id == borrow_id).first()
    if borrow is None:
        raise NotFoundError("Borrow record not found")
    return borrow


def list_borrows() -> list[Borrow]:
    return _borrow_query().order_by(Borrow.date_borrow.desc(), Borrow.id.desc()).all()


def list_borrows_for_user(user_id: int) -> list[Borrow]:
    return (
        _borrow_query()
        .filter(Borrow.user_id == user_id)
        .order_by(Borrow.date_borrow.desc(), Borrow.id.desc())
        .all()
    )


def get_detail(detail_id: int) -> BorrowDetail:
    detail = db.session.query(BorrowDetail).filter_by(id=detail_id).first()
    if detail is None:
        raise NotFoundError("Borrow detail not found")
    return detail


def update_borrow(
    borrow_id: int,
    *,
    quantity: int | None = None,
    date_return: datetime | None = None,
) -> Borrow:
    """
    Edit the header of a borrow. Stock is not touched; the return
    placeholder follows a new due date.
    """
    if quantity is None and date_return is None:
        raise ValidationError("No valid data provided for update")
    if quantity is not None and (not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0):
        raise ValidationError("Quantity must be a positive integer")

    def _op():
        borrow = db.session.query(Borrow).filter_by(id=borrow_id).first()
        if borrow is None:
            raise NotFoundError("Borrow record not found")

        if quantity is not None:
            borrow.quantity = quantity
        if date_return is not None:
            _, due = validate_loan_period(
                borrow.date_borrow,
                date_return,
                max_loan_days=_setting("MAX_LOAN_DAYS", 14),
            )
            borrow.date_return = due
            for record in borrow.returns:
                if record.returned_at is None:
                    record.date_return = due

        db.session.commit()
        return borrow

    return run_unit_of_work(_op, failure_message="Failed to update borrow")
