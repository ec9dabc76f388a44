# Overview: Service-layer read model for the admin dashboard.

from __future__ import annotations

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Borrow, BorrowDetail
from ..models.borrows import (
    BORROW_STATUS_ACTIVE,
    BORROW_STATUS_PENDING,
    BORROW_STATUS_REJECTED,
    BORROW_STATUS_RETURNED,
)
from lendtrack.time_utils import to_utc_z

_SUMMARY_KEYS = {
    BORROW_STATUS_ACTIVE: "borrowed",
    BORROW_STATUS_RETURNED: "returned",
    BORROW_STATUS_PENDING: "pending",
    BORROW_STATUS_REJECTED: "rejected",
}


def dashboard_metrics() -> dict:
    """
    Every borrow line with its item, a status summary and the pending
    requests grouped by borrower id.
    """
    details = (
        db.session.query(BorrowDetail)
        .options(
            selectinload(BorrowDetail.inventory),
            selectinload(BorrowDetail.borrow).selectinload(Borrow.user),
        )
        .order_by(BorrowDetail.id)
        .all()
    )

    summary = {key: 0 for key in _SUMMARY_KEYS.values()}
    item_details = []
    pending_requests: dict[str, list[dict]] = {}

    for detail in details:
        summary[_SUMMARY_KEYS[detail.status]] += 1

        data = detail.to_dict()
        data["item"] = detail.inventory.to_dict() if detail.inventory else None
        item_details.append(data)

        if detail.status == BORROW_STATUS_PENDING and detail.borrow is not None:
            borrow = detail.borrow
            pending_requests.setdefault(str(borrow.user_id), []).append({
                "borrow_id": borrow.id,
                "detail_id": detail.id,
                "inventory_id": detail.inventory_id,
                "item_name": detail.inventory.name if detail.inventory else "Unknown Item",
                "username": borrow.user.username if borrow.user else None,
                "quantity": detail.quantity,
                "request_date": to_utc_z(borrow.date_borrow),
            })

    return {
        "item_details": item_details,
        "borrowed_summary": summary,
        "pending_requests": pending_requests,
    }
