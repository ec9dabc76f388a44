# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/lendtrack/services/inventory_service.py
"""
Lendtrack Inventory Invariants (authoritative)

Inventory model:
- InventoryItem.quantity is the number of units on the shelf right now.
- Borrowing reserves (decrements) units; rejection and return release them.

Business invariants:
- quantity never goes negative.
- condition == "Out of Stock" <=> quantity == 0, after every write.
- Only items in condition "Available" can be reserved.

Transactions:
- reserve() and release() never commit. They run inside the caller's unit
  of work (borrow creation, status transitions) so stock and borrow rows
  commit or roll back together.
- update_inventory() and create_inventory() are standalone writes and commit.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    DuplicateError,
    InsufficientStockError,
    NotAvailableError,
    NotFoundError,
    ValidationError,
)
from ..models import InventoryItem
from ..models.inventory import (
    CONDITION_AVAILABLE,
    CONDITION_OUT_OF_STOCK,
    INVENTORY_CONDITIONS,
)
from lendtrack.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"name", "code", "quantity", "condition"}


def get_inventory(item_id: int, *, lock: bool = False) -> InventoryItem:
    query = db.session.query(InventoryItem).filter_by(id=item_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise NotFoundError("Inventory item not found")
    return item


def get_inventory_by_code(code: str) -> InventoryItem | None:
    return db.session.query(InventoryItem).filter_by(code=code).first()


def list_inventory() -> list[InventoryItem]:
    return (
        db.session.query(InventoryItem)
        .order_by(InventoryItem.created_at.desc(), InventoryItem.id.desc())
        .all()
    )


def create_inventory(name: str, code: str, quantity: int) -> InventoryItem:
    """Register a new item; a new item always starts Available."""
    if quantity <= 0:
        raise ValidationError("Quantity must be a positive number")
    if get_inventory_by_code(code) is not None:
        raise DuplicateError("Item with this code is already registered")

    item = InventoryItem(
        name=name,
        code=code,
        quantity=quantity,
        condition=CONDITION_AVAILABLE,
        last_stock_update=utcnow(),
    )
    db.session.add(item)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise DuplicateError("Item with this code is already registered") from exc
    return item


# =============================================================================
# LEDGER: reserve / release
# =============================================================================

def apply_reservation(item: InventoryItem, quantity: int) -> InventoryItem:
    """Decrement a loaded item in place, enforcing availability and stock."""
    if quantity <= 0:
        raise ValidationError("Quantity must be a positive number")
    if item.condition != CONDITION_AVAILABLE:
        raise NotAvailableError(f"Item {item.name} is not available (condition: {item.condition})")
    if item.quantity < quantity:
        raise InsufficientStockError(
            f"Insufficient quantity in inventory for {item.name}: "
            f"requested {quantity}, available {item.quantity}"
        )

    item.quantity -= quantity
    if item.quantity <= 0:
        item.quantity = 0
        item.condition = CONDITION_OUT_OF_STOCK
        item.last_stock_update = utcnow()
    return item


def apply_release(item: InventoryItem, quantity: int) -> InventoryItem:
    """Increment a loaded item in place; Out of Stock flips back to Available."""
    if quantity <= 0:
        raise ValidationError("Quantity must be a positive number")

    previous_condition = item.condition
    item.quantity += quantity
    if previous_condition == CONDITION_OUT_OF_STOCK and item.quantity > 0:
        item.condition = CONDITION_AVAILABLE
        item.last_stock_update = utcnow()
    return item


def reserve(item_id: int, quantity: int) -> InventoryItem:
    """
    Reserve units of an item inside the current transaction.

    Raises NotFoundError, NotAvailableError or InsufficientStockError.
    The caller commits.
    """
    item = get_inventory(item_id, lock=True)
    return apply_reservation(item, quantity)


def release(item_id: int, quantity: int) -> InventoryItem:
    """Return units of an item inside the current transaction. The caller commits."""
    item = get_inventory(item_id, lock=True)
    return apply_release(item, quantity)


# =============================================================================
# ADMIN EDITS
# =============================================================================

def _resolve_condition(item: InventoryItem, patch: dict) -> tuple[int, str, bool]:
    """
    Work out the (quantity, condition) an edit would leave behind.

    Returns (quantity, condition, stock_touched).
    """
    new_quantity = patch["quantity"] if "quantity" in patch else item.quantity
    requested = patch["condition"] if "condition" in patch else item.condition

    if requested not in INVENTORY_CONDITIONS:
        raise ValidationError(
            "Condition must be one of: " + ", ".join(INVENTORY_CONDITIONS)
        )
    if new_quantity < 0:
        raise ValidationError("Quantity cannot be negative")
    if "condition" in patch and requested == CONDITION_OUT_OF_STOCK and new_quantity != 0:
        raise ValidationError("Cannot set condition to Out of Stock while quantity is not zero")
    if "condition" in patch and requested != CONDITION_OUT_OF_STOCK and new_quantity == 0:
        raise ValidationError("Quantity zero requires condition Out of Stock")

    condition = requested
    stock_touched = False
    if "quantity" in patch:
        if new_quantity <= 0:
            condition = CONDITION_OUT_OF_STOCK
            stock_touched = True
        elif item.condition == CONDITION_OUT_OF_STOCK and condition == CONDITION_OUT_OF_STOCK:
            condition = CONDITION_AVAILABLE
            stock_touched = True

    if condition == CONDITION_OUT_OF_STOCK and new_quantity != 0:
        raise ValidationError("Out of Stock is only valid when quantity is zero")
    if new_quantity == 0 and condition != CONDITION_OUT_OF_STOCK:
        raise ValidationError("Quantity zero requires condition Out of Stock")

    return new_quantity, condition, stock_touched


def update_inventory(item_id: int, patch: dict) -> InventoryItem:
    """
    Apply an admin edit to an item.

    Rules:
    - quantity <= 0 forces "Out of Stock" and stamps last_stock_update
    - quantity > 0 on an "Out of Stock" item flips it to "Available"
    - explicit "Out of Stock" with non-zero quantity is rejected
    """
    if not patch:
        raise ValidationError("Request data is empty or invalid")
    unknown = set(patch) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")

    def _op():
        item = get_inventory(item_id, lock=True)
        quantity, condition, stock_touched = _resolve_condition(item, patch)

        if "code" in patch and patch["code"] != item.code:
            if get_inventory_by_code(patch["code"]) is not None:
                raise DuplicateError("Item with this code is already registered")
            item.code = patch["code"]
        if "name" in patch:
            item.name = patch["name"]

        if quantity != item.quantity or condition != item.condition:
            stock_touched = True
        item.quantity = quantity
        item.condition = condition
        if stock_touched:
            item.last_stock_update = utcnow()

        db.session.commit()
        return item

    item = run_with_retry(_op)
    logger.info("Inventory %s updated: %s", item_id, sorted(patch))
    return item

