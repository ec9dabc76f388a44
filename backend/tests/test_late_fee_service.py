"""
Late-day arithmetic and due-date resolution. No database involved.
"""

from datetime import date, datetime

from lendtrack.models.borrows import BORROW_STATUS_ACTIVE, BORROW_STATUS_RETURNED
from lendtrack.services.late_fee_service import compute_late_days, resolve_due_date


DUE = date(2024, 1, 10)


class TestComputeLateDays:

    def test_returned_on_due_date_is_not_late(self):
        assert compute_late_days(DUE, date(2024, 1, 10)) == 0

    def test_returned_five_days_after_due(self):
        assert compute_late_days(DUE, date(2024, 1, 15)) == 5

    def test_returned_early_is_not_late(self):
        assert compute_late_days(DUE, date(2024, 1, 5)) == 0

    def test_outstanding_loan_measured_against_today(self):
        assert compute_late_days(DUE, None, today=date(2024, 1, 12)) == 2

    def test_time_of_day_is_ignored(self):
        due = datetime(2024, 1, 10, 23, 59)
        actual = datetime(2024, 1, 11, 0, 1)
        assert compute_late_days(due, actual) == 1
        assert compute_late_days(datetime(2024, 1, 10, 8, 0), datetime(2024, 1, 10, 22, 0)) == 0

    def test_returned_status_without_actual_date_is_zero(self):
        assert compute_late_days(DUE, None, status=BORROW_STATUS_RETURNED, today=date(2024, 2, 1)) == 0

    def test_active_status_keeps_growing(self):
        assert compute_late_days(DUE, None, status=BORROW_STATUS_ACTIVE, today=date(2024, 1, 20)) == 10

    def test_no_due_date(self):
        assert compute_late_days(None, date(2024, 1, 15)) == 0


class TestResolveDueDate:

    def test_borrow_due_date_wins(self):
        assert resolve_due_date(
            date_borrow=date(2024, 1, 1),
            borrow_due_date=date(2024, 1, 4),
            return_record_date=date(2024, 1, 9),
        ) == date(2024, 1, 4)

    def test_return_record_date_while_not_returned(self):
        assert resolve_due_date(
            date_borrow=date(2024, 1, 1),
            return_record_date=date(2024, 1, 9),
            status=BORROW_STATUS_ACTIVE,
        ) == date(2024, 1, 9)

    def test_return_record_date_ignored_once_returned(self):
        assert resolve_due_date(
            date_borrow=date(2024, 1, 1),
            return_record_date=date(2024, 1, 9),
            status=BORROW_STATUS_RETURNED,
        ) == date(2024, 1, 8)

    def test_default_loan_period(self):
        assert resolve_due_date(date_borrow=date(2024, 1, 1)) == date(2024, 1, 8)
        assert resolve_due_date(date_borrow=date(2024, 1, 1), default_loan_days=3) == date(2024, 1, 4)

    def test_nothing_to_resolve(self):
        assert resolve_due_date(date_borrow=None) is None
