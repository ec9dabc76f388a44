# Overview: Service-layer operations for deleting users, inventory and borrows with dependency checks.

"""
Deletion Policy

Default: refuse. A user with borrows, an item with borrow lines or a borrow
with lines is not deleted; DependencyError names how many rows block it.

cascade=True: dependents are deleted first, then the parent. Each level
commits on its own (children before parents), so an interrupted cascade
leaves orphan-free but partially deleted data. Lines that still hold stock
(PENDING or ACTIVE) release it before they go.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import DependencyError, NotFoundError, ValidationError
from ..models import Borrow, BorrowDetail, InventoryItem, PasswordResetToken, ReturnRecord, SessionToken, User
from ..models.borrows import OUTSTANDING_STATUSES
from . import inventory_service
from .concurrency import run_unit_of_work

logger = logging.getLogger(__name__)

KIND_USER = "user"
KIND_INVENTORY = "inventory"
KIND_BORROW = "borrow"

DELETABLE_KINDS = (KIND_USER, KIND_INVENTORY, KIND_BORROW)


def count_details_for_inventory(item_id: int) -> int:
    return db.session.query(BorrowDetail).filter_by(inventory_id=item_id).count()


def count_details_for_borrow(borrow_id: int) -> int:
    return db.session.query(BorrowDetail).filter_by(borrow_id=borrow_id).count()


def count_borrows_for_user(user_id: int) -> int:
    return db.session.query(Borrow).filter(
        db.or_(Borrow.user_id == user_id, Borrow.admin_id == user_id)
    ).count()


def _delete_details(details: list[BorrowDetail], *, restock: bool) -> None:
    """Remove borrow lines in one commit, giving back stock they still hold."""
    def _op():
        for detail in details:
            if restock and detail.status in OUTSTANDING_STATUSES:
                inventory_service.release(detail.inventory_id, detail.quantity)
            db.session.delete(detail)
        db.session.commit()

    run_unit_of_work(_op, failure_message="Failed to delete borrow details")


def _delete_borrow_rows(borrow_ids: list[int]) -> None:
    """Remove return records then the borrows themselves."""
    if not borrow_ids:
        return

    def _returns():
        db.session.query(ReturnRecord).filter(
            ReturnRecord.borrow_id.in_(borrow_ids)
        ).delete(synchronize_session=False)
        db.session.commit()

    def _borrows():
        db.session.query(Borrow).filter(Borrow.id.in_(borrow_ids)).delete(synchronize_session=False)
        db.session.commit()

    run_unit_of_work(_returns, failure_message="Failed to delete return records")
    run_unit_of_work(_borrows, failure_message="Failed to delete borrows")
    db.session.expire_all()


def _delete_parent(entity) -> None:
    def _op():
        db.session.delete(entity)
        db.session.commit()

    run_unit_of_work(_op, failure_message="Failed to delete record")


# =============================================================================
# PER KIND
# =============================================================================

def delete_inventory(item_id: int, *, cascade: bool = False) -> int:
    item = db.session.query(InventoryItem).filter_by(id=item_id).first()
    if item is None:
        raise NotFoundError("Inventory item not found")

    count = count_details_for_inventory(item_id)
    if count and not cascade:
        raise DependencyError(
            f"Cannot delete inventory because it has {count} related borrow detail(s)",
            dependent_count=count,
        )

    if count:
        details = db.session.query(BorrowDetail).filter_by(inventory_id=item_id).all()
        # The item itself is going away; nothing to give stock back to
        _delete_details(details, restock=False)

    _delete_parent(item)
    return count


def delete_borrow(borrow_id: int, *, cascade: bool = False) -> int:
    borrow = db.session.query(Borrow).filter_by(id=borrow_id).first()
    if borrow is None:
        raise NotFoundError("Borrow record not found")

    count = count_details_for_borrow(borrow_id)
    if count and not cascade:
        raise DependencyError(
            f"Cannot delete borrow because it has {count} related borrow detail(s)",
            dependent_count=count,
        )

    if count:
        details = db.session.query(BorrowDetail).filter_by(borrow_id=borrow_id).all()
        _delete_details(details, restock=True)

    _delete_borrow_rows([borrow_id])
    return count


def delete_user(user_id: int, *, cascade: bool = False) -> int:
    user = db.session.query(User).filter_by(id=user_id).first()
    if user is None:
        raise NotFoundError("User not found")

    count = count_borrows_for_user(user_id)
    if count and not cascade:
        raise DependencyError(
            f"Cannot delete user because they have {count} related borrow record(s)",
            dependent_count=count,
        )

    if count:
        borrow_ids = [
            row.id for row in db.session.query(Borrow.id).filter(
                db.or_(Borrow.user_id == user_id, Borrow.admin_id == user_id)
            )
        ]
        details = db.session.query(BorrowDetail).filter(BorrowDetail.borrow_id.in_(borrow_ids)).all()
        _delete_details(details, restock=True)
        _delete_borrow_rows(borrow_ids)

    def _sessions():
        db.session.query(SessionToken).filter_by(user_id=user_id).delete(synchronize_session=False)
        db.session.query(PasswordResetToken).filter_by(user_id=user_id).delete(synchronize_session=False)
        db.session.query(BorrowDetail).filter_by(decided_by_user_id=user_id).update(
            {BorrowDetail.decided_by_user_id: None}, synchronize_session=False
        )
        db.session.commit()

    run_unit_of_work(_sessions, failure_message="Failed to delete user sessions")
    db.session.expire_all()

    user = db.session.query(User).filter_by(id=user_id).first()
    _delete_parent(user)
    return count


_HANDLERS = {
    KIND_USER: delete_user,
    KIND_INVENTORY: delete_inventory,
    KIND_BORROW: delete_borrow,
}


def delete_entity(kind: str, entity_id: int, cascade: bool = False) -> dict:
    """
    Delete a user, inventory item or borrow (deleteEntity).

    Returns {"kind", "id", "deleted_dependents"}.

    Raises:
        ValidationError: unknown kind
        NotFoundError: entity does not exist
        DependencyError: dependents exist and cascade is off
    """
    handler = _HANDLERS.get(kind)
    if handler is None:
        raise ValidationError("Kind must be one of: " + ", ".join(DELETABLE_KINDS))

    removed = handler(entity_id, cascade=cascade)
    logger.info(
        "Deleted %s %s (cascade=%s, dependents removed=%s)",
        kind, entity_id, cascade, removed,
    )
    return {"kind": kind, "id": entity_id, "deleted_dependents": removed}
