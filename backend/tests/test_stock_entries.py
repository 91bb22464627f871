from contextlib import contextmanager
from datetime import date
from decimal import Decimal

import pytest

from backend.app.errors import InvalidInput
from backend.app.routers import stock_entries as stock_router

SELLER = {"id": "seller-s", "role": "vendedor"}
TODAY = date(2026, 3, 10)


class _DummyCursor:
    def __init__(self, rows):
        self._rows = rows
        self.executed: list[tuple[str, tuple]] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, sql, params=None):
        self.executed.append((sql, tuple(params or ())))

    def fetchall(self):
        return list(self._rows)


class _DummyConn:
    def __init__(self, cursor):
        self._cursor = cursor

    def cursor(self):
        return self._cursor


class _DummyDb:
    def __init__(self, rows=()):
        self.cur = _DummyCursor(list(rows))

    @contextmanager
    def connection(self):
        yield _DummyConn(self.cur)


@pytest.fixture(autouse=True)
def _fixed_today(monkeypatch):
    monkeypatch.setattr(stock_router, "_today", lambda: TODAY)


def _list(db, **params):
    args = {"product_id": None, "productId": None, "low_stock": None, "expiration_days": None}
    args.update(params)
    return stock_router.list_stock_entries(**args, user=SELLER, db=db)


def test_list_requires_a_filter():
    db = _DummyDb()
    with pytest.raises(InvalidInput) as exc_info:
        _list(db)
    assert exc_info.value.status_code == 400
    assert db.cur.executed == []


@pytest.mark.parametrize("raw", ["abc", "0", "-4", "1.5"])
def test_list_rejects_bad_product_id(raw):
    db = _DummyDb()
    with pytest.raises(InvalidInput):
        _list(db, product_id=raw)
    assert db.cur.executed == []


def test_list_returns_entries_with_totals():
    db = _DummyDb(
        [
            {
                "id": 11,
                "product_id": 5,
                "initial_quantity": 24,
                "current_quantity": 10,
                "barcode": "7801234",
                "purchase_price": Decimal("450.00"),
                "sale_price_unit": Decimal("700.00"),
                "sale_price_wholesale": Decimal("600.00"),
                "expiration_date": date(2026, 3, 15),
                "created_at": None,
            },
            {
                "id": 12,
                "product_id": 5,
                "initial_quantity": 12,
                "current_quantity": 4,
                "barcode": "7801234",
                "purchase_price": Decimal("500.00"),
                "sale_price_unit": Decimal("700.00"),
                "sale_price_wholesale": None,
                "expiration_date": None,
                "created_at": None,
            },
        ]
    )

    out = _list(db, productId="5")

    assert out["success"] is True
    assert [e["days_until_expiration"] for e in out["stock_entries"]] == [5, None]
    assert out["totals"] == {"quantity": 14, "value": Decimal("6500.00"), "entries_count": 2}
    _, params = db.cur.executed[0]
    assert params == (5,)


def test_low_stock_takes_priority():
    db = _DummyDb([{"product_id": 3, "product_name": "Pan", "brand_name": None, "min_stock": 10, "total_stock": 2}])
    out = _list(db, product_id="5", low_stock="10", expiration_days="7")
    assert out["count"] == 1
    assert out["threshold"] == 10
    assert out["low_stock_products"][0]["product_name"] == "Pan"
    assert "HAVING" in db.cur.executed[0][0]


def test_expiring_window_is_relative_to_today():
    db = _DummyDb([])
    out = _list(db, expiration_days="7")
    assert out == {"success": True, "expiring_products": [], "days_ahead": 7, "count": 0}
    _, params = db.cur.executed[0]
    assert params == (TODAY, date(2026, 3, 17))


def test_expiration_days_must_be_integer():
    with pytest.raises(InvalidInput):
        _list(_DummyDb(), expiration_days="soon")


def test_product_entries_flag_expiry():
    db = _DummyDb(
        [
            {"id": 1, "remaining_quantity": 3, "expiration_date": date(2026, 3, 8)},
            {"id": 2, "remaining_quantity": 5, "expiration_date": date(2026, 3, 17)},
            {"id": 3, "remaining_quantity": 2, "expiration_date": date(2026, 4, 30)},
            {"id": 4, "remaining_quantity": 6, "expiration_date": None},
        ]
    )

    out = stock_router.product_stock_entries("42", user=SELLER, db=db)

    flags = [(e["id"], e["is_expired"], e["is_near_expiration"]) for e in out["stock_entries"]]
    assert flags == [(1, True, False), (2, False, True), (3, False, False), (4, False, False)]
    assert out["total_entries"] == 4
    assert out["total_stock"] == 16
    assert "message" not in out
    assert db.cur.executed[0][1] == (42,)


def test_product_entries_empty_has_message():
    out = stock_router.product_stock_entries("42", user=SELLER, db=_DummyDb([]))
    assert out["stock_entries"] == []
    assert out["total_stock"] == 0
    assert out["message"]


def test_product_entries_rejects_bad_id():
    with pytest.raises(InvalidInput):
        stock_router.product_stock_entries("x1", user=SELLER, db=_DummyDb())
