"""
Deletion policy: refuse while dependents exist, cascade children first when
asked, and give back stock still held by outstanding lines.
"""

import pytest

from lendtrack.errors import DependencyError, NotFoundError, ValidationError
from lendtrack.extensions import db
from lendtrack.models import Borrow, BorrowDetail, InventoryItem, PasswordResetToken, ReturnRecord, SessionToken, User
from lendtrack.models.borrows import BORROW_STATUS_ACTIVE
from lendtrack.services import (
    borrow_detail_service,
    borrow_service,
    deletion_service,
    inventory_service,
    password_reset_service,
    session_service,
)


def _borrow(user, admin, item, loan_dates, quantity=1):
    start, due = loan_dates
    return borrow_service.create_borrow(
        user_id=user.id, admin_id=admin.id,
        inventory_id=item.id, quantity=quantity,
        date_borrow=start, date_return=due,
    )


class TestInventoryDeletion:

    def test_refused_with_dependents(self, borrower, admin, projector, loan_dates, notifier):
        detail_ids = [_borrow(borrower, admin, projector, loan_dates).detail_id for _ in range(3)]

        with pytest.raises(DependencyError) as excinfo:
            deletion_service.delete_entity("inventory", projector.id, cascade=False)

        assert excinfo.value.dependent_count == 3
        assert "3 related borrow detail(s)" in excinfo.value.message
        assert db.session.get(InventoryItem, projector.id) is not None
        assert db.session.query(BorrowDetail).filter(BorrowDetail.id.in_(detail_ids)).count() == 3

    def test_cascade_removes_dependents(self, borrower, admin, projector, loan_dates, notifier):
        detail_ids = [_borrow(borrower, admin, projector, loan_dates).detail_id for _ in range(3)]

        result = deletion_service.delete_entity("inventory", projector.id, cascade=True)

        assert result["deleted_dependents"] == 3
        with pytest.raises(NotFoundError):
            inventory_service.get_inventory(projector.id)
        for detail_id in detail_ids:
            with pytest.raises(NotFoundError):
                borrow_service.get_detail(detail_id)

    def test_without_dependents(self, projector):
        result = deletion_service.delete_entity("inventory", projector.id)
        assert result["deleted_dependents"] == 0
        assert db.session.query(InventoryItem).count() == 0


class TestBorrowDeletion:

    def test_refused_with_lines(self, borrower, admin, projector, loan_dates, notifier):
        result = _borrow(borrower, admin, projector, loan_dates)
        with pytest.raises(DependencyError, match="Cannot delete borrow because it has 1 related borrow detail"):
            deletion_service.delete_entity("borrow", result.borrow_id)

    def test_cascade_releases_stock(self, borrower, admin, projector, loan_dates, notifier):
        result = _borrow(borrower, admin, projector, loan_dates, quantity=3)
        borrow_detail_service.transition_borrow_detail(result.detail_id, BORROW_STATUS_ACTIVE, admin.id)
        assert inventory_service.get_inventory(projector.id).quantity == 2

        deletion_service.delete_entity("borrow", result.borrow_id, cascade=True)

        assert inventory_service.get_inventory(projector.id).quantity == 5
        assert db.session.query(Borrow).filter_by(id=result.borrow_id).count() == 0
        assert db.session.query(ReturnRecord).count() == 0
        assert db.session.query(BorrowDetail).count() == 0


class TestUserDeletion:

    def test_refused_with_borrows(self, borrower, admin, projector, loan_dates, notifier):
        _borrow(borrower, admin, projector, loan_dates)
        _borrow(borrower, admin, projector, loan_dates)

        with pytest.raises(DependencyError) as excinfo:
            deletion_service.delete_entity("user", borrower.id)
        assert excinfo.value.message == "Cannot delete user because they have 2 related borrow record(s)"

    def test_cascade(self, borrower, other_borrower, admin, projector, loan_dates, notifier):
        _borrow(borrower, admin, projector, loan_dates, quantity=2)
        kept = _borrow(other_borrower, admin, projector, loan_dates)
        session_service.create_session(borrower.id)
        borrower_id = borrower.id

        deletion_service.delete_entity("user", borrower_id, cascade=True)

        assert db.session.query(User).filter_by(id=borrower_id).count() == 0
        assert db.session.query(SessionToken).filter_by(user_id=borrower_id).count() == 0
        assert [b.id for b in db.session.query(Borrow).all()] == [kept.borrow_id]
        assert inventory_service.get_inventory(projector.id).quantity == 4

    def test_reset_codes_go_with_the_user(self, other_borrower, notifier):
        user_id = other_borrower.id
        password_reset_service.request_password_reset("sari@lendtrack.local")

        deletion_service.delete_entity("user", user_id)
        assert db.session.query(PasswordResetToken).filter_by(user_id=user_id).count() == 0

    def test_user_without_borrows(self, other_borrower):
        deletion_service.delete_entity("user", other_borrower.id)
        assert db.session.query(User).count() == 0


def test_unknown_kind_and_ids(db_session):
    with pytest.raises(ValidationError):
        deletion_service.delete_entity("store", 1)
    for kind in deletion_service.DELETABLE_KINDS:
        with pytest.raises(NotFoundError):
            deletion_service.delete_entity(kind, 404)
