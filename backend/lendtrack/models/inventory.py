from __future__ import annotations

from ..extensions import db
from lendtrack.time_utils import to_utc_z

# Inventory conditions (stored verbatim)
CONDITION_AVAILABLE = "Available"
CONDITION_OUT_OF_STOCK = "Out of Stock"
CONDITION_RESERVED = "Reserved"
CONDITION_DAMAGED = "Damaged"
CONDITION_DISCONTINUED = "Discontinued"

INVENTORY_CONDITIONS = (
    CONDITION_AVAILABLE,
    CONDITION_OUT_OF_STOCK,
    CONDITION_RESERVED,
    CONDITION_DAMAGED,
    CONDITION_DISCONTINUED,
)


class InventoryItem(db.Model):
    """
    Lendable item with an on-hand quantity.

    INVARIANT: condition == "Out of Stock" <=> quantity == 0. Every write goes
    through inventory_service, which enforces it.

    CONCURRENCY: quantity is mutated by concurrent borrow requests. Writers
    lock the row (SELECT ... FOR UPDATE) and version_id turns a lost update
    into a StaleDataError instead of a silent oversell.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    code = db.Column(db.String(20), nullable=False, unique=True, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    condition = db.Column(db.String(32), nullable=False, default=CONDITION_AVAILABLE)
    last_stock_update = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} code={self.code!r} quantity={self.quantity} condition={self.condition!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "quantity": self.quantity,
            "condition": self.condition,
            "last_stock_update": to_utc_z(self.last_stock_update),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
