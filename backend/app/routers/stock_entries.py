from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends

from ..config import settings
from ..db import Database, get_db
from ..deps import require_seller
from ..errors import InvalidInput

router = APIRouter(tags=["stock"])

NEAR_EXPIRATION_DAYS = 7


def _today() -> date:
    return datetime.now(timezone.utc).astimezone(ZoneInfo(settings.timezone)).date()


def _parse_int(raw: Optional[str], name: str, *, minimum: int = 0) -> int:
    try:
        v = int(str(raw).strip())
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} must be an integer")
    if v < minimum:
        raise InvalidInput(f"{name} must be >= {minimum}")
    return v


def _days_until(expiration_date, today: date) -> Optional[int]:
    if expiration_date is None:
        return None
    if isinstance(expiration_date, datetime):
        expiration_date = expiration_date.date()
    return (expiration_date - today).days


def _low_stock(db: Database, threshold: int) -> dict:
    # Each product is compared against its own min_stock; `threshold` is echoed for older clients.
    with db.connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT p.id AS product_id,
                       p.name AS product_name,
                       p.brand_name,
                       p.min_stock,
                       COALESCE(SUM(se.current_quantity), 0)::int AS total_stock
                FROM products p
                LEFT JOIN stock_entries se ON se.product_id = p.id AND se.current_quantity > 0
                GROUP BY p.id, p.name, p.brand_name, p.min_stock
                HAVING COALESCE(SUM(se.current_quantity), 0) <= p.min_stock
                ORDER BY total_stock ASC, p.name ASC
                """
            )
            rows = cur.fetchall()
    return {"success": True, "low_stock_products": rows, "threshold": threshold, "count": len(rows)}


def _expiring(db: Database, days: int, today: date) -> dict:
    with db.connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT se.id,
                       se.product_id,
                       p.name AS product_name,
                       p.brand_name,
                       se.current_quantity,
                       se.expiration_date,
                       (se.expiration_date - %s::date) AS days_until_expiration
                FROM stock_entries se
                JOIN products p ON p.id = se.product_id
                WHERE se.current_quantity > 0
                  AND se.expiration_date IS NOT NULL
                  AND se.expiration_date <= %s
                ORDER BY se.expiration_date ASC
                """,
                (today, today + timedelta(days=days)),
            )
            rows = cur.fetchall()
    return {"success": True, "expiring_products": rows, "days_ahead": days, "count": len(rows)}


@router.get("/api/stock-entries")
def list_stock_entries(
    product_id: Optional[str] = None,
    productId: Optional[str] = None,
    low_stock: Optional[str] = None,
    expiration_days: Optional[str] = None,
    user=Depends(require_seller),
    db: Database = Depends(get_db),
):
    """
    Stock entries with available quantity for one product.

    `low_stock` and `expiration_days` switch the endpoint to the matching alert list.
    """
    if low_stock:
        return _low_stock(db, _parse_int(low_stock, "low_stock"))
    today = _today()
    if expiration_days:
        return _expiring(db, _parse_int(expiration_days, "expiration_days"), today)

    raw_id = product_id or productId
    if not raw_id:
        raise InvalidInput("product_id, low_stock or expiration_days is required")
    pid = _parse_int(raw_id, "product_id", minimum=1)

    with db.connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT id, product_id, initial_quantity, current_quantity,
                       barcode, purchase_price, sale_price_unit, sale_price_wholesale,
                       expiration_date, entry_date AS created_at
                FROM stock_entries
                WHERE product_id = %s AND current_quantity > 0
                ORDER BY expiration_date ASC NULLS LAST, entry_date ASC
                """,
                (pid,),
            )
            rows = cur.fetchall()

    entries = [{**r, "days_until_expiration": _days_until(r["expiration_date"], today)} for r in rows]
    quantity = sum(int(r["current_quantity"] or 0) for r in rows)
    value = sum(
        (Decimal(int(r["current_quantity"] or 0)) * Decimal(str(r["purchase_price"] or 0)) for r in rows),
        Decimal("0"),
    )
    return {
        "success": True,
        "stock_entries": entries,
        "totals": {"quantity": quantity, "value": value, "entries_count": len(rows)},
    }


@router.get("/api/products/{product_id}/stock-entries")
def product_stock_entries(product_id: str, user=Depends(require_seller), db: Database = Depends(get_db)):
    """
    Available stock for a product in FIFO order: earliest expiry first, undated last.
    """
    pid = _parse_int(product_id, "product_id", minimum=1)
    today = _today()
    with db.connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT id, product_id, barcode, current_quantity AS remaining_quantity,
                       initial_quantity, expiration_date, entry_date AS created_at,
                       purchase_price, sale_price_unit, sale_price_wholesale
                FROM stock_entries
                WHERE product_id = %s AND current_quantity > 0
                ORDER BY
                  CASE WHEN expiration_date IS NULL THEN 1 ELSE 0 END,
                  expiration_date ASC,
                  entry_date ASC
                """,
                (pid,),
            )
            rows = cur.fetchall()

    entries = []
    for r in rows:
        days = _days_until(r["expiration_date"], today)
        entries.append(
            {
                **r,
                "days_until_expiration": days,
                "is_expired": days is not None and days < 0,
                "is_near_expiration": days is not None and 0 <= days <= NEAR_EXPIRATION_DAYS,
            }
        )
    out = {
        "success": True,
        "stock_entries": entries,
        "total_entries": len(entries),
        "total_stock": sum(int(r["remaining_quantity"] or 0) for r in rows),
    }
    if not entries:
        out["message"] = "no stock available for this product"
    return out
