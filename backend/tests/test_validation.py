from datetime import date, datetime

import pytest

from lendtrack.errors import ValidationError
from lendtrack.validation import (
    coerce_int,
    validate_borrow_create,
    validate_borrow_update,
    validate_inventory_create,
    validate_inventory_update,
    validate_register,
    validate_return_update,
    validate_status_change,
)


TODAY = date(2030, 1, 10)


class TestCoerceInt:

    @pytest.mark.parametrize("value,expected", [(3, 3), ("7", 7), (" 12 ", 12), ("-2", -2)])
    def test_accepts(self, value, expected):
        assert coerce_int(value, "quantity") == expected

    @pytest.mark.parametrize("value", [1.5, True, "1e3", "2.0", "", "abc", None, [1]])
    def test_rejects(self, value):
        with pytest.raises(ValidationError):
            coerce_int(value, "quantity")


class TestInventoryPayloads:

    def test_create(self):
        patch = validate_inventory_create({"name": " Projector ", "code": "PRJ-01", "quantity": "3"})
        assert patch == {"name": "Projector", "code": "PRJ-01", "quantity": 3}

    @pytest.mark.parametrize("payload", [
        {"name": "Pr", "code": "PRJ-01", "quantity": 3},
        {"name": "Projector", "code": "P1", "quantity": 3},
        {"name": "Projector", "code": "PRJ-01", "quantity": 0},
        {"name": "Projector", "code": "PRJ-01", "quantity": 3, "condition": "Damaged"},
        {"name": "Projector", "code": "PRJ-01"},
        {"name": "Projector", "code": "PRJ-01", "quantity": 3, "version_id": 9},
        ["not", "a", "dict"],
    ])
    def test_create_rejects(self, payload):
        with pytest.raises(ValidationError):
            validate_inventory_create(payload)

    def test_update(self):
        assert validate_inventory_update({"quantity": 0}) == {"quantity": 0}
        assert validate_inventory_update({"condition": "Damaged"}) == {"condition": "Damaged"}

    @pytest.mark.parametrize("payload", [{}, {"quantity": -1}, {"condition": "Lost"}, {"price": 1}])
    def test_update_rejects(self, payload):
        with pytest.raises(ValidationError):
            validate_inventory_update(payload)


class TestBorrowPayloads:

    def test_single_line_defaults(self):
        cleaned = validate_borrow_create(
            {"admin_id": 1, "inventory_id": 4, "date_borrow": "2030-01-10"},
            default_user_id=9, now=TODAY,
        )
        assert cleaned == {
            "user_id": 9,
            "admin_id": 1,
            "inventory_id": 4,
            "quantity": 1,
            "date_borrow": datetime(2030, 1, 10),
        }

    def test_items_and_offsets(self):
        cleaned = validate_borrow_create({
            "admin_id": 1,
            "date_borrow": "2030-01-11T10:00:00+07:00",
            "date_return": "2030-01-15T10:00:00Z",
            "items": [{"inventory_id": 4, "quantity": 2}, {"inventory_id": 5}],
        }, default_user_id=9, now=TODAY)
        assert cleaned["date_borrow"] == datetime(2030, 1, 11, 3, 0)
        assert cleaned["date_return"] == datetime(2030, 1, 15, 10, 0)
        assert cleaned["items"] == [{"inventory_id": 4, "quantity": 2}, {"inventory_id": 5, "quantity": 1}]

    @pytest.mark.parametrize("payload", [
        {"inventory_id": 4, "date_borrow": "2030-01-10"},
        {"admin_id": 1, "inventory_id": 4},
        {"admin_id": 1, "inventory_id": 4, "date_borrow": "2030-01-09"},
        {"admin_id": 1, "inventory_id": 4, "date_borrow": "yesterday"},
        {"admin_id": 1, "inventory_id": 4, "date_borrow": "2030-01-12", "date_return": "2030-01-11"},
        {"admin_id": 1, "date_borrow": "2030-01-10"},
        {"admin_id": 1, "date_borrow": "2030-01-10", "items": []},
        {"admin_id": 1, "date_borrow": "2030-01-10", "items": [{"quantity": 1}]},
        {"admin_id": 1, "date_borrow": "2030-01-10", "inventory_id": 4, "items": [{"inventory_id": 4}]},
        {"admin_id": 1, "date_borrow": "2030-01-10", "inventory_id": 4, "quantity": 1.5},
        {"admin_id": 1, "date_borrow": "2030-01-10", "inventory_id": 4, "status": "ACTIVE"},
    ])
    def test_rejects(self, payload):
        with pytest.raises(ValidationError):
            validate_borrow_create(payload, default_user_id=9, now=TODAY)

    def test_update(self):
        assert validate_borrow_update({"quantity": 2}) == {"quantity": 2}
        with pytest.raises(ValidationError):
            validate_borrow_update({})
        with pytest.raises(ValidationError):
            validate_borrow_update({"user_id": 3})

    def test_status_change(self):
        assert validate_status_change({"status": "active"}) == {"status": "ACTIVE", "returned_at": None}
        cleaned = validate_status_change({"status": "RETURNED", "returned_at": "2030-01-12"})
        assert cleaned["returned_at"] == datetime(2030, 1, 12)
        for payload in ({"status": "PENDING"}, {}, {"status": "ACTIVE", "returned_at": "2030-01-12"}):
            with pytest.raises(ValidationError):
                validate_status_change(payload)


def test_return_update():
    assert validate_return_update({"late_days": 2}) == {"late_days": 2}
    with pytest.raises(ValidationError):
        validate_return_update({"late_days": -2})
    with pytest.raises(ValidationError):
        validate_return_update({"borrow_id": 1})


def test_register():
    cleaned = validate_register({"username": " budi ", "email": "b@x.io", "password": "Pw1!", "number": "0812"})
    assert cleaned["username"] == "budi"
    assert cleaned["password"] == "Pw1!"
    with pytest.raises(ValidationError):
        validate_register({"username": "budi", "email": "nope", "password": "x", "number": "0812"})
    with pytest.raises(ValidationError):
        validate_register({"username": "budi", "email": "b@x.io", "number": "0812"})
