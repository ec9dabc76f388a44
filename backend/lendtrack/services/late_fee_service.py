# Overview: Pure late-day arithmetic and due-date resolution for borrows and returns.

"""
Late days are whole calendar days past the due date.

Both dates are truncated to midnight before comparison so a time-of-day
component can never add or remove a day. A loan returned on or before its
due date is never late. An outstanding loan is measured against today,
which gives a live, growing estimate until the item comes back.

Nothing here touches the database; callers pass every date in.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from ..models.borrows import BORROW_STATUS_RETURNED
from lendtrack.time_utils import today as utc_today

DEFAULT_LOAN_DAYS = 7


def _as_date(value: date | datetime | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def compute_late_days(
    due_date: date | datetime | None,
    actual_return_date: date | datetime | None = None,
    *,
    status: str | None = None,
    today: date | None = None,
) -> int:
    """
    Whole days between the due date and the return (or today).

    - actual_return_date given: max(0, actual - due)
    - not returned and status is not RETURNED: max(0, today - due)
    - status RETURNED without an actual date: nothing to measure, 0
    - no due date: 0
    """
    due = _as_date(due_date)
    if due is None:
        return 0

    actual = _as_date(actual_return_date)
    if actual is None:
        if status == BORROW_STATUS_RETURNED:
            return 0
        actual = today or utc_today()

    return max(0, (actual - due).days)


def resolve_due_date(
    *,
    date_borrow: date | datetime | None,
    borrow_due_date: date | datetime | None = None,
    return_record_date: date | datetime | None = None,
    status: str | None = None,
    default_loan_days: int = DEFAULT_LOAN_DAYS,
) -> date | datetime | None:
    """
    Pick the due date used for lateness.

    Precedence:
    1. the due date stored on the borrow
    2. the return record's date, while the line is not RETURNED yet
    3. date_borrow + default_loan_days
    """
    if borrow_due_date is not None:
        return borrow_due_date
    if return_record_date is not None and status != BORROW_STATUS_RETURNED:
        return return_record_date
    if date_borrow is None:
        return None
    return date_borrow + timedelta(days=default_loan_days)
