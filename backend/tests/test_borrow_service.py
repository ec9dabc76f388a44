"""
Borrow orchestrator: validation before any write, all-or-nothing creation,
notifications after commit.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from lendtrack.errors import (
    ConflictError,
    InsufficientStockError,
    NotAvailableError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from lendtrack.extensions import db
from lendtrack.models import Borrow, BorrowDetail, ReturnRecord
from lendtrack.models.borrows import BORROW_STATUS_PENDING
from lendtrack.models.inventory import CONDITION_DAMAGED, CONDITION_OUT_OF_STOCK
from lendtrack.services import borrow_service, inventory_service
from lendtrack.services.notification_service import KIND_BORROW_REQUEST_ADMIN, KIND_BORROW_REQUESTED


def _counts():
    return (
        db.session.query(Borrow).count(),
        db.session.query(BorrowDetail).count(),
        db.session.query(ReturnRecord).count(),
    )


class TestCreateBorrow:

    def test_creates_pending_borrow_and_reserves(self, borrower, admin, projector, loan_dates, notifier):
        start, due = loan_dates
        result = borrow_service.create_borrow(
            user_id=borrower.id, admin_id=admin.id,
            inventory_id=projector.id, quantity=2,
            date_borrow=start, date_return=due,
        )

        assert result.borrow_id is not None
        assert result.detail_id is not None
        detail = db.session.get(BorrowDetail, result.detail_id)
        assert detail.status == BORROW_STATUS_PENDING
        assert detail.quantity == 2
        assert inventory_service.get_inventory(projector.id).quantity == 3

        borrow = db.session.get(Borrow, result.borrow_id)
        assert borrow.date_return == due
        assert borrow.returned_at is None
        record = borrow.returns[0]
        assert record.date_return == due
        assert record.late_days == 0

        assert notifier.kinds() == [KIND_BORROW_REQUESTED, KIND_BORROW_REQUEST_ADMIN]
        assert notifier.sent[0][0] == borrower.number
        assert notifier.sent[1][0] == admin.number

    def test_several_lines(self, borrower, admin, projector, camera, loan_dates, notifier):
        start, due = loan_dates
        result = borrow_service.create_borrow(
            user_id=borrower.id, admin_id=admin.id,
            items=[
                {"inventory_id": projector.id, "quantity": 1},
                {"inventory_id": camera.id, "quantity": 2},
                {"inventory_id": projector.id, "quantity": 1},
            ],
            date_borrow=start, date_return=due,
        )

        assert len(result.details) == 2
        assert result.detail_ids == [d.id for d in result.details]
        assert db.session.get(Borrow, result.borrow_id).quantity == 4
        assert inventory_service.get_inventory(projector.id).quantity == 3
        camera_after = inventory_service.get_inventory(camera.id)
        assert camera_after.quantity == 0
        assert camera_after.condition == CONDITION_OUT_OF_STOCK

    def test_missing_due_date_uses_default_loan_period(self, borrower, admin, projector, loan_dates, notifier):
        start, _ = loan_dates
        result = borrow_service.create_borrow(
            user_id=borrower.id, admin_id=admin.id,
            inventory_id=projector.id, quantity=1, date_borrow=start,
        )
        assert db.session.get(Borrow, result.borrow_id).date_return == start + timedelta(days=7)

    def test_notification_failure_does_not_fail_borrow(self, borrower, admin, projector, loan_dates, notifier):
        notifier.fail = True
        start, due = loan_dates
        result = borrow_service.create_borrow(
            user_id=borrower.id, admin_id=admin.id,
            inventory_id=projector.id, quantity=1,
            date_borrow=start, date_return=due,
        )
        assert result.borrow_id is not None
        assert notifier.sent == []


class TestCreateBorrowValidation:

    @pytest.mark.parametrize("days", [0, -1])
    def test_due_date_must_follow_borrow_date(self, borrower, admin, projector, loan_dates, days):
        start, _ = loan_dates
        with pytest.raises(ValidationError):
            borrow_service.create_borrow(
                user_id=borrower.id, admin_id=admin.id,
                inventory_id=projector.id, quantity=1,
                date_borrow=start, date_return=start + timedelta(days=days),
            )
        assert _counts() == (0, 0, 0)

    def test_loan_period_ceiling(self, app, borrower, admin, projector, loan_dates):
        start, _ = loan_dates
        with pytest.raises(ValidationError, match="14 days"):
            borrow_service.create_borrow(
                user_id=borrower.id, admin_id=admin.id,
                inventory_id=projector.id, quantity=1,
                date_borrow=start, date_return=start + timedelta(days=15),
            )

        app.config["MAX_LOAN_DAYS"] = 0
        result = borrow_service.create_borrow(
            user_id=borrower.id, admin_id=admin.id,
            inventory_id=projector.id, quantity=1,
            date_borrow=start, date_return=start + timedelta(days=30),
        )
        assert result.borrow_id is not None

    def test_insufficient_stock(self, borrower, admin, camera, loan_dates):
        start, due = loan_dates
        with pytest.raises(InsufficientStockError) as excinfo:
            borrow_service.create_borrow(
                user_id=borrower.id, admin_id=admin.id,
                inventory_id=camera.id, quantity=3,
                date_borrow=start, date_return=due,
            )
        assert isinstance(excinfo.value, ConflictError)
        assert _counts() == (0, 0, 0)
        assert inventory_service.get_inventory(camera.id).quantity == 2

    def test_item_not_available(self, borrower, admin, camera, loan_dates):
        camera.condition = CONDITION_DAMAGED
        db.session.commit()
        start, due = loan_dates
        with pytest.raises(NotAvailableError):
            borrow_service.create_borrow(
                user_id=borrower.id, admin_id=admin.id,
                inventory_id=camera.id, quantity=1,
                date_borrow=start, date_return=due,
            )

    def test_unknown_item(self, borrower, admin, loan_dates):
        start, due = loan_dates
        with pytest.raises(NotFoundError):
            borrow_service.create_borrow(
                user_id=borrower.id, admin_id=admin.id,
                inventory_id=404, quantity=1,
                date_borrow=start, date_return=due,
            )

    def test_unknown_admin(self, borrower, projector, loan_dates):
        start, due = loan_dates
        with pytest.raises(NotFoundError):
            borrow_service.create_borrow(
                user_id=borrower.id, admin_id=404,
                inventory_id=projector.id, quantity=1,
                date_borrow=start, date_return=due,
            )
        assert inventory_service.get_inventory(projector.id).quantity == 5

    def test_admin_must_be_admin(self, borrower, other_borrower, projector, loan_dates):
        start, due = loan_dates
        with pytest.raises(ValidationError):
            borrow_service.create_borrow(
                user_id=borrower.id, admin_id=other_borrower.id,
                inventory_id=projector.id, quantity=1,
                date_borrow=start, date_return=due,
            )

    @pytest.mark.parametrize("quantity", [0, -2, 1.5, True])
    def test_bad_quantity(self, borrower, admin, projector, loan_dates, quantity):
        start, due = loan_dates
        with pytest.raises(ValidationError):
            borrow_service.create_borrow(
                user_id=borrower.id, admin_id=admin.id,
                inventory_id=projector.id, quantity=quantity,
                date_borrow=start, date_return=due,
            )

    def test_no_lines(self, borrower, admin, loan_dates):
        start, due = loan_dates
        with pytest.raises(ValidationError):
            borrow_service.create_borrow(
                user_id=borrower.id, admin_id=admin.id,
                date_borrow=start, date_return=due,
            )


class TestAtomicity:

    def test_detail_failure_rolls_back_reservation(self, monkeypatch, borrower, admin, projector, loan_dates, notifier):
        def broken(borrow, line):
            raise IntegrityError("INSERT INTO borrow_details", {}, Exception("simulated failure"))

        monkeypatch.setattr(borrow_service, "_add_borrow_detail", broken)
        start, due = loan_dates

        with pytest.raises(ServerError) as excinfo:
            borrow_service.create_borrow(
                user_id=borrower.id, admin_id=admin.id,
                inventory_id=projector.id, quantity=2,
                date_borrow=start, date_return=due,
            )

        assert "simulated failure" in excinfo.value.detail
        assert inventory_service.get_inventory(projector.id).quantity == 5
        assert _counts() == (0, 0, 0)
        assert notifier.sent == []

    def test_second_line_failure_rolls_back_first(self, monkeypatch, borrower, admin, projector, camera, loan_dates):
        original = borrow_service._add_borrow_detail
        calls = []

        def fail_second(borrow, line):
            calls.append(line)
            if len(calls) == 2:
                raise IntegrityError("INSERT INTO borrow_details", {}, Exception("second line"))
            return original(borrow, line)

        monkeypatch.setattr(borrow_service, "_add_borrow_detail", fail_second)
        start, due = loan_dates

        with pytest.raises(ServerError):
            borrow_service.create_borrow(
                user_id=borrower.id, admin_id=admin.id,
                items=[
                    {"inventory_id": projector.id, "quantity": 1},
                    {"inventory_id": camera.id, "quantity": 1},
                ],
                date_borrow=start, date_return=due,
            )

        assert inventory_service.get_inventory(projector.id).quantity == 5
        assert inventory_service.get_inventory(camera.id).quantity == 2
        assert _counts() == (0, 0, 0)


class TestReadAndUpdate:

    def _create(self, borrower, admin, item, loan_dates, quantity=1):
        start, due = loan_dates
        return borrow_service.create_borrow(
            user_id=borrower.id, admin_id=admin.id,
            inventory_id=item.id, quantity=quantity,
            date_borrow=start, date_return=due,
        )

    def test_lists(self, borrower, other_borrower, admin, projector, loan_dates, notifier):
        mine = self._create(borrower, admin, projector, loan_dates)
        self._create(other_borrower, admin, projector, loan_dates)

        assert len(borrow_service.list_borrows()) == 2
        own = borrow_service.list_borrows_for_user(borrower.id)
        assert [b.id for b in own] == [mine.borrow_id]

        data = borrow_service.get_borrow(mine.borrow_id).to_dict(include_details=True)
        assert data["username"] == "budi"
        assert data["details"][0]["inventory"]["name"] == "Projector"

    def test_get_missing(self, db_session):
        with pytest.raises(NotFoundError):
            borrow_service.get_borrow(404)

    def test_update_due_date_moves_placeholder(self, borrower, admin, projector, loan_dates, notifier):
        result = self._create(borrower, admin, projector, loan_dates)
        start, _ = loan_dates
        new_due = start + timedelta(days=10)

        borrow = borrow_service.update_borrow(result.borrow_id, date_return=new_due)

        assert borrow.date_return == new_due
        assert borrow.returns[0].date_return == new_due
        assert inventory_service.get_inventory(projector.id).quantity == 4

    def test_update_validation(self, borrower, admin, projector, loan_dates, notifier):
        result = self._create(borrower, admin, projector, loan_dates)
        start, _ = loan_dates
        with pytest.raises(ValidationError):
            borrow_service.update_borrow(result.borrow_id)
        with pytest.raises(ValidationError):
            borrow_service.update_borrow(result.borrow_id, date_return=start - timedelta(days=1))
        with pytest.raises(NotFoundError):
            borrow_service.update_borrow(404, quantity=1)


def test_validate_loan_period_accepts_dates():
    start, due = borrow_service.validate_loan_period(datetime(2030, 1, 1).date(), None)
    assert start == datetime(2030, 1, 1)
    assert due == datetime(2030, 1, 8)
