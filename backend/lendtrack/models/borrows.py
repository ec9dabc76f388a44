from __future__ import annotations

from ..extensions import db
from lendtrack.time_utils import to_utc_z

# Borrow line lifecycle
BORROW_STATUS_PENDING = "PENDING"
BORROW_STATUS_ACTIVE = "ACTIVE"
BORROW_STATUS_REJECTED = "REJECTED"
BORROW_STATUS_RETURNED = "RETURNED"

BORROW_STATUSES = (
    BORROW_STATUS_PENDING,
    BORROW_STATUS_ACTIVE,
    BORROW_STATUS_REJECTED,
    BORROW_STATUS_RETURNED,
)

# Lines in these states still hold reserved stock
OUTSTANDING_STATUSES = (BORROW_STATUS_PENDING, BORROW_STATUS_ACTIVE)


class Borrow(db.Model):
    """
    Loan header owned by the requesting user.

    DATE SEMANTICS:
    - date_return is always the DUE date.
    - returned_at is the actual return time, set once every line is RETURNED.
    """
    __tablename__ = "borrows"
    __table_args__ = (
        db.Index("ix_borrows_user_date", "user_id", "date_borrow"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    date_borrow = db.Column(db.DateTime, nullable=False)
    date_return = db.Column(db.DateTime, nullable=True)
    returned_at = db.Column(db.DateTime, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    admin_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("borrows", lazy=True))
    admin = db.relationship("User", foreign_keys=[admin_id])
    details = db.relationship("BorrowDetail", back_populates="borrow", lazy=True, order_by="BorrowDetail.id")
    returns = db.relationship("ReturnRecord", back_populates="borrow", lazy=True, order_by="ReturnRecord.id")

    def __repr__(self) -> str:
        return f"<Borrow id={self.id} user_id={self.user_id} quantity={self.quantity}>"

    def to_dict(self, include_details: bool = False) -> dict:
        data = {
            "id": self.id,
            "quantity": self.quantity,
            "date_borrow": to_utc_z(self.date_borrow),
            "date_return": to_utc_z(self.date_return),
            "returned_at": to_utc_z(self.returned_at),
            "user_id": self.user_id,
            "admin_id": self.admin_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_details:
            data["username"] = self.user.username if self.user else None
            data["details"] = [d.to_dict(include_item=True) for d in self.details]
        return data


class BorrowDetail(db.Model):
    """
    One inventory line of a borrow; status is the authoritative loan state.

    LIFECYCLE:
        PENDING -> ACTIVE | REJECTED
        ACTIVE  -> RETURNED
        PENDING -> RETURNED (admin shortcut, see ALLOW_PENDING_RETURN)
    REJECTED and RETURNED are terminal.
    """
    __tablename__ = "borrow_details"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_borrow_details_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    borrow_id = db.Column(db.Integer, db.ForeignKey("borrows.id"), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    # Units of the item held by this line (released back on reject/return)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    status = db.Column(db.String(16), nullable=False, default=BORROW_STATUS_PENDING, index=True)

    decided_at = db.Column(db.DateTime, nullable=True)
    decided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    borrow = db.relationship("Borrow", back_populates="details")
    inventory = db.relationship("InventoryItem", backref=db.backref("borrow_details", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<BorrowDetail id={self.id} borrow_id={self.borrow_id} status={self.status}>"

    def to_dict(self, include_item: bool = False) -> dict:
        data = {
            "id": self.id,
            "borrow_id": self.borrow_id,
            "inventory_id": self.inventory_id,
            "quantity": self.quantity,
            "status": self.status,
            "decided_at": to_utc_z(self.decided_at),
            "decided_by_user_id": self.decided_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_item:
            data["inventory"] = {"name": self.inventory.name} if self.inventory else None
        return data


class ReturnRecord(db.Model):
    """
    Return-side bookkeeping of a borrow.

    date_return mirrors the borrow's due date; returned_at is the physical
    return. late_days is a cached value, refreshed on return and by
    return_service.recompute_late_days().
    """
    __tablename__ = "return_records"
    __table_args__ = (
        db.CheckConstraint("late_days >= 0", name="ck_return_records_late_days_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    borrow_id = db.Column(db.Integer, db.ForeignKey("borrows.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    date_borrow = db.Column(db.DateTime, nullable=False)
    date_return = db.Column(db.DateTime, nullable=True)
    returned_at = db.Column(db.DateTime, nullable=True)
    late_days = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    borrow = db.relationship("Borrow", back_populates="returns")

    def __repr__(self) -> str:
        return f"<ReturnRecord id={self.id} borrow_id={self.borrow_id} late_days={self.late_days}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "borrow_id": self.borrow_id,
            "quantity": self.quantity,
            "date_borrow": to_utc_z(self.date_borrow),
            "date_return": to_utc_z(self.date_return),
            "returned_at": to_utc_z(self.returned_at),
            "late_days": self.late_days,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
